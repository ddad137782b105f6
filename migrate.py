#!/usr/bin/env python3
import sys
import os
from dotenv import load_dotenv

# Load .env before reading any environment variables
dotenv_path = os.path.join(os.path.dirname(__file__), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path)
    print("[Manage] Loaded .env file")

# Run from any cwd: local modules and alembic.ini live next to this script
ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT)

from utils.redaction import redact_database_url


def migrate(revision="head"):
    """Upgrade the schema with Alembic. Does not import the Flask app."""
    database_url = os.environ.get("DATABASE_URL", "").strip()

    if not database_url:
        print("[Manage] ERROR: DATABASE_URL environment variable is not set.")
        sys.exit(1)

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
        os.environ["DATABASE_URL"] = database_url

    if not database_url.startswith("postgresql://"):
        print(f"[Manage] ERROR: Only Postgres is supported (got {redact_database_url(database_url)})")
        sys.exit(1)

    print(f"[Manage] Migrating {redact_database_url(database_url)} to '{revision}'...")
    try:
        from alembic.config import Config
        from alembic import command

        alembic_cfg = Config(os.path.join(ROOT, "alembic.ini"))
        alembic_cfg.set_main_option("script_location", os.path.join(ROOT, "migrations"))
        command.upgrade(alembic_cfg, revision)
    except Exception as e:
        print(f"[Manage] Alembic migration FAILED: {type(e).__name__}: {e}")
        sys.exit(1)

    print("[Manage] Database migration completed successfully.")


if __name__ == "__main__":
    migrate(sys.argv[1] if len(sys.argv) > 1 else "head")
