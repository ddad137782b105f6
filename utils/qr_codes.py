"""
Canonical QR Code Key Helpers

Single source of truth for turning scanned/typed input into a canonical code
key, and for generating fresh keys at mint time.

CRITICAL: No other file should implement its own normalization logic. The same
physical sticker is reached through a camera scan (raw code), a tapped web link
(https://stckr.io/qr/<code>) and the app deep link (stckr://qr/<code>); all of
them must land on the same key.
"""
import re
import secrets
from urllib.parse import urlsplit, parse_qs

# URL-safe alphabet for code generation (uppercase alphanumeric, no confusing chars)
DEFAULT_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"  # No 0/O, 1/I/L

DEFAULT_CODE_LENGTH = 6

# Query parameters that may carry the code, in priority order.
RECOGNIZED_QUERY_PARAMS = ("code", "qr", "codeId", "qrCodeId")

# Schemes whose host is a real network location rather than part of the path.
WEB_SCHEMES = frozenset({"http", "https"})

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def _extract_from_url(value: str):
    """
    Return the code-bearing part of ``value`` if it parses as a URL, else None.

    A URL needs a scheme plus a host or a path. For custom schemes such as
    ``stckr://qr/B12F4`` the "host" (``qr``) is treated as the first path
    segment, matching how app deep links are built.
    """
    try:
        parts = urlsplit(value)
    except ValueError:
        return None

    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return None
    if not parts.netloc and not parts.path:
        return None

    params = parse_qs(parts.query, keep_blank_values=True)
    for name in RECOGNIZED_QUERY_PARAMS:
        for candidate in params.get(name, []):
            if candidate:
                return candidate

    segments = [seg for seg in parts.path.split("/") if seg]
    if parts.scheme.lower() not in WEB_SCHEMES and parts.netloc:
        segments.insert(0, parts.netloc)

    if segments:
        return segments[-1]

    # Parsed, but nothing code-shaped in it: fall back to the raw input.
    return value


def normalize_code_key(raw) -> str:
    """
    Normalize arbitrary scanned or typed input to the canonical code key.

    Never raises. Input with no ASCII letters or digits normalizes to "",
    which every lookup treats as "not found".

    >>> normalize_code_key("https://stckr.io/qr/b12f4?utm_source=sticker")
    'B12F4'
    >>> normalize_code_key("stckr://qr/B12F4")
    'B12F4'
    >>> normalize_code_key(" b12f4 ")
    'B12F4'
    """
    s = (raw or "").strip() if isinstance(raw, str) else ""
    if not s:
        return ""

    from_url = _extract_from_url(s)
    if from_url is not None:
        s = from_url

    s = s.split("?", 1)[0].split("#", 1)[0]
    s = _NON_ALNUM_RE.sub("", s)
    return s.upper()


def generate_code_key(length: int = DEFAULT_CODE_LENGTH, alphabet: str | None = None) -> str:
    """
    Generate a random candidate code key.

    Uniqueness is NOT checked here; the registry inserts candidates with
    ON CONFLICT DO NOTHING and retries on collision.
    """
    if length < 1:
        raise ValueError("length must be positive")
    if alphabet is None:
        alphabet = DEFAULT_ALPHABET
    # Use secrets for cryptographic randomness
    return ''.join(secrets.choice(alphabet) for _ in range(length))
