import os
import logging

from utils.env import get_env_str, get_env_bool, get_env_int
from utils.redaction import redact_database_url

logger = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# -----------------------------------------------------------------------------
# Dotenv loading (LOCAL ONLY)
# -----------------------------------------------------------------------------
# Rules:
# - Hosted environments are configured via real environment variables.
# - Tests must be deterministic and must NOT implicitly ingest a developer's repo-root .env.
# - Local dev may use .env for convenience.
_FLASK_ENV_EARLY = (os.getenv("FLASK_ENV") or "").strip().lower()
_APP_STAGE_EARLY = (os.getenv("APP_STAGE") or "").strip().lower()

if _FLASK_ENV_EARLY not in {"test", "testing"} and _APP_STAGE_EARLY not in {"test", "testing"}:
    try:
        from dotenv import load_dotenv
        load_dotenv(dotenv_path=os.path.join(BASE_DIR, ".env"), override=False)
    except ImportError:
        # Dotenv is convenience for local dev; absence should not crash.
        pass

# -----------------------------------------------------------------------------
# Environment / Stage
# -----------------------------------------------------------------------------
def _normalize_stage(raw: str) -> str:
    raw = (raw or "").strip().lower()
    if raw in {"prod", "production"}:
        return "production"
    if raw in {"stage", "staging"}:
        return "staging"
    if raw in {"test", "testing"}:
        return "test"
    return "dev"


FLASK_ENV = (os.getenv("FLASK_ENV", "development") or "development").strip().lower()
APP_STAGE = _normalize_stage(os.getenv("APP_STAGE", "dev"))

IS_TEST = APP_STAGE == "test" or FLASK_ENV in {"test", "testing"}
IS_STAGING = APP_STAGE == "staging"
IS_PRODUCTION = APP_STAGE == "production"
IS_SECURE_ENV = IS_STAGING or IS_PRODUCTION

DEBUG = FLASK_ENV != "production" and not IS_PRODUCTION
TESTING = IS_TEST

# -----------------------------------------------------------------------------
# Public URLs
# -----------------------------------------------------------------------------
def _strip_trailing_slash(url: str) -> str:
    return url[:-1] if url.endswith("/") else url


# Origin printed on every sticker: https://<app-domain>/qr/<CODE_KEY>
PUBLIC_BASE_URL = _strip_trailing_slash(get_env_str("PUBLIC_BASE_URL", default="https://stckr.io"))

# Where unresolvable input is sent (no detail on why).
GENERIC_REDIRECT_URL = _strip_trailing_slash(get_env_str("GENERIC_REDIRECT_URL", default=PUBLIC_BASE_URL))

# Custom URI scheme registered by the mobile shell (stckr://qr/<CODE_KEY>).
APP_LINK_SCHEME = get_env_str("APP_LINK_SCHEME", default="stckr")


def _require_https(name: str, value: str) -> None:
    if not value.lower().startswith("https://"):
        raise RuntimeError(f"CRITICAL: {name} must be HTTPS in {APP_STAGE} stage. Got: {value}")


def _forbid_substrings(name: str, value: str, forbidden: list[str]) -> None:
    lower = value.lower()
    for s in forbidden:
        if s in lower:
            raise RuntimeError(
                f"CRITICAL: {name} contains forbidden string '{s}' in {APP_STAGE} stage. Link safety violated."
            )


# Printed stickers live forever: staging & production must never mint localhost links.
if IS_SECURE_ENV:
    if not os.getenv("PUBLIC_BASE_URL"):
        raise RuntimeError(f"CRITICAL: PUBLIC_BASE_URL environment variable is required in {APP_STAGE} stage.")

    _require_https("PUBLIC_BASE_URL", PUBLIC_BASE_URL)

    if IS_PRODUCTION:
        _forbid_substrings("PUBLIC_BASE_URL", PUBLIC_BASE_URL, ["staging", "localhost", "127.0.0.1"])
    else:
        _forbid_substrings("PUBLIC_BASE_URL", PUBLIC_BASE_URL, ["localhost", "127.0.0.1"])

# -----------------------------------------------------------------------------
# Database (Postgres-only)
# -----------------------------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required.")

# Normalize postgres:// -> postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
    os.environ["DATABASE_URL"] = DATABASE_URL

if not DATABASE_URL.startswith("postgresql://"):
    # Never include credentials in errors/logs.
    raise ValueError(
        "CRITICAL: DATABASE_URL must be a PostgreSQL URL (postgresql://...). "
        f"Got: {redact_database_url(DATABASE_URL)}. Non-Postgres DBs are forbidden."
    )

# Every storage call is bounded; expiry surfaces as a transient error.
DB_CONNECT_TIMEOUT = get_env_int("DB_CONNECT_TIMEOUT", default=5, minimum=1)
DB_STATEMENT_TIMEOUT_MS = get_env_int("DB_STATEMENT_TIMEOUT_MS", default=5000, minimum=100)

# -----------------------------------------------------------------------------
# Secrets
# -----------------------------------------------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    if IS_SECURE_ENV:
        raise ValueError(f"SECRET_KEY must be set in {APP_STAGE} environment.")
    SECRET_KEY = "dev-secret-key-change-this"
    logger.warning("[Config] WARNING: Using default SECRET_KEY for development. DO NOT use in real environments!")

# Keys the user-id fingerprints in claim logs.
LOG_ID_SALT = os.getenv("LOG_ID_SALT") or SECRET_KEY

# -----------------------------------------------------------------------------
# Proxy / Cookie Security
# -----------------------------------------------------------------------------
TRUST_PROXY_HEADERS = get_env_bool("TRUST_PROXY_HEADERS", default=False)
PROXY_FIX_NUM_PROXIES = get_env_int("PROXY_FIX_NUM_PROXIES", default=1, minimum=1)

SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
SESSION_COOKIE_SECURE = IS_SECURE_ENV
REMEMBER_COOKIE_HTTPONLY = True
REMEMBER_COOKIE_SECURE = IS_SECURE_ENV
PREFERRED_URL_SCHEME = "https" if IS_SECURE_ENV else "http"

MAX_CONTENT_LENGTH = 64 * 1024

# -----------------------------------------------------------------------------
# QR Codes
# -----------------------------------------------------------------------------
# 6 chars over a 31-symbol alphabet ~= 8.9e8 keys; collisions are retried at mint.
QR_CODE_LENGTH = get_env_int("QR_CODE_LENGTH", default=6, minimum=6)
QR_MINT_MAX_BATCH = get_env_int("QR_MINT_MAX_BATCH", default=500, minimum=1)
QR_MINT_DEFAULT_BATCH = 9

# -----------------------------------------------------------------------------
# Claims
# -----------------------------------------------------------------------------
CLAIM_MAX_ATTEMPTS = get_env_int("CLAIM_MAX_ATTEMPTS", default=3, minimum=1)
CLAIM_RETRY_BACKOFF_MS = get_env_int("CLAIM_RETRY_BACKOFF_MS", default=50, minimum=0)

# -----------------------------------------------------------------------------
# Scan Audit
# -----------------------------------------------------------------------------
SCAN_AUDIT_ENABLED = get_env_bool("SCAN_AUDIT_ENABLED", default=True)
SCAN_AUDIT_QUEUE_SIZE = get_env_int("SCAN_AUDIT_QUEUE_SIZE", default=1000, minimum=1)

# -----------------------------------------------------------------------------
# Rate Limits
# -----------------------------------------------------------------------------
RESOLVE_RATE_LIMIT = get_env_str("RESOLVE_RATE_LIMIT", default="120 per minute")
RATELIMIT_STORAGE_URI = get_env_str("RATELIMIT_STORAGE_URI", default="memory://")
