# migrations/env.py
"""
Alembic environment for the QR schema.

Reads DATABASE_URL directly instead of importing config.py, so one-off
migration jobs do not need the app's secrets. DDL runs with a short
lock_timeout: a migration that cannot get its lock fails fast instead of
queueing every claim write behind it.
"""
from logging.config import fileConfig
from pathlib import Path
import os
import sys

from alembic import context
from sqlalchemy import create_engine, pool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from utils.redaction import redact_database_url

MIGRATION_LOCK_TIMEOUT = os.environ.get("MIGRATION_LOCK_TIMEOUT", "10s")

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Schema is written as explicit op.* calls; there is no ORM metadata.
target_metadata = None


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip() or (config.get_main_option("sqlalchemy.url") or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set and sqlalchemy.url is empty; cannot run migrations.")
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if not url.startswith("postgresql://"):
        raise RuntimeError(f"Only Postgres is supported for DATABASE_URL. Got: {redact_database_url(url)}")
    return url


def run_migrations_offline() -> None:
    """Emit SQL to stdout (alembic upgrade --sql)."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        transaction_per_migration=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(
        _database_url(),
        poolclass=pool.NullPool,
        connect_args={"options": f"-c lock_timeout={MIGRATION_LOCK_TIMEOUT}"},
    )
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            transaction_per_migration=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
