"""
psycopg2 failures mapped onto the QR error taxonomy.

Shared by every service that talks to Postgres on the claim and resolve
paths, so a timeout or a dropped connection surfaces as Transient no matter
which statement hit it.
"""
import logging
from contextlib import contextmanager

import psycopg2
from psycopg2 import errors as pg_errors

from services.errors import CodeNotFound, ItemNotOwned, TransientStoreConflict

logger = logging.getLogger(__name__)

CODE_FK_CONSTRAINT = "qr_claims_code_key_fkey"

TRANSIENT_ERRORS = (
    pg_errors.SerializationFailure,
    pg_errors.DeadlockDetected,
    pg_errors.LockNotAvailable,
    pg_errors.QueryCanceled,
    psycopg2.OperationalError,
    psycopg2.InterfaceError,
)


def _safe_rollback(db):
    try:
        db.rollback()
    except psycopg2.Error as e:
        # Connection already gone; the server discards the transaction.
        logger.warning(f"[DB] Rollback failed: {type(e).__name__}")


def translate_store_error(db, exc, *, code_key=None, item_id=None):
    """
    Roll back and map a psycopg2 error onto the QR taxonomy.

    Returns the exception to raise, or None if ``exc`` is not a store error
    we know how to classify.
    """
    _safe_rollback(db)
    if isinstance(exc, TRANSIENT_ERRORS):
        return TransientStoreConflict(f"{type(exc).__name__} during store access")
    if isinstance(exc, pg_errors.ForeignKeyViolation):
        constraint = getattr(getattr(exc, 'diag', None), 'constraint_name', None)
        if constraint == CODE_FK_CONSTRAINT:
            return CodeNotFound(code_key)
        # Item deleted between the ownership select and the insert.
        return ItemNotOwned(item_id)
    return None


@contextmanager
def store_errors(db, *, code_key=None, item_id=None):
    """Run a block of statements on ``db``; psycopg2 errors leave as QR errors."""
    try:
        yield db
    except psycopg2.Error as e:
        mapped = translate_store_error(db, e, code_key=code_key, item_id=item_id)
        if mapped is None:
            raise
        raise mapped from e
