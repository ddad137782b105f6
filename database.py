import logging

import psycopg2
from psycopg2.extras import DictCursor
from flask import g

from config import DATABASE_URL, DB_CONNECT_TIMEOUT, DB_STATEMENT_TIMEOUT_MS, IS_PRODUCTION
from utils.redaction import redact_database_url

logger = logging.getLogger(__name__)


def connect_db(db_url=None):
    """
    Open a standalone Postgres connection.

    Used outside the request cycle (audit worker thread, CLI commands).
    Every statement on the connection is bounded by DB_STATEMENT_TIMEOUT_MS.
    """
    db_url = db_url or DATABASE_URL
    try:
        conn = psycopg2.connect(
            db_url,
            cursor_factory=DictCursor,
            connect_timeout=DB_CONNECT_TIMEOUT,
            options=f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
        )
    except Exception as e:
        logger.error(
            "[DB] Connection Failed (%s) while connecting to %s",
            type(e).__name__,
            redact_database_url(db_url),
        )
        raise
    return PostgresDB(conn)


def get_db():
    """
    Per-request connection, cached on flask.g and closed on teardown.

    A cached connection that psycopg2 has marked closed (server restart,
    network drop) is replaced, so a retry within the same request gets a
    live connection.
    """
    db = g.get('db')
    if db is not None and db.closed:
        logger.warning("[DB] Cached connection is closed, reconnecting")
        g.pop('db', None)
        db = None
    if db is None:
        g.db = db = connect_db()
    return db


def close_connection(exception=None):
    db = g.pop('db', None)
    if db is not None:
        db.close()


class PostgresDB:
    """
    Strict Postgres wrapper.
    Passes SQL through to psycopg2 without modification.
    Expects %s placeholders.
    """
    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=None):
        cur = self._conn.cursor()
        try:
            cur.execute(sql, params)
            return cur
        except Exception as e:
            # In PROD, do NOT log raw SQL (PII Risk)
            logger.error(f"[DB] Query Failed: {type(e).__name__}: {e}")
            if not IS_PRODUCTION:
                logger.error(f"[DB] SQL: {sql}")
            raise

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()

    @property
    def closed(self):
        return bool(self._conn.closed)

    def cursor(self):
        return self._conn.cursor()

    # Intentionally omitted: lastrowid (Use RETURNING + fetchone)
