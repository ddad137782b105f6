#!/usr/bin/env python3
"""Block until Postgres accepts connections and the QR schema is present.

Run by the container entrypoint between `migrate.py` and gunicorn. Exits 1 on
timeout so the orchestrator restarts the container.
"""

from __future__ import annotations

import os
import sys
import time

import psycopg2

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from utils.redaction import redact_database_url

REQUIRED_TABLES = ("qr_codes", "qr_claims", "qr_scan_events", "items", "users")


def check_ready(database_url: str, require_schema: bool = True) -> None:
    conn = psycopg2.connect(database_url, connect_timeout=3)
    try:
        cur = conn.cursor()
        cur.execute("SELECT 1")
        cur.fetchone()
        if require_schema:
            for table in REQUIRED_TABLES:
                cur.execute("SELECT to_regclass(%s)", (f"public.{table}",))
                if cur.fetchone()[0] is None:
                    raise RuntimeError(f"table {table} missing (run migrate.py)")
        cur.close()
    finally:
        conn.close()


def wait_for_db(database_url: str, timeout_seconds: int = 60, sleep_seconds: float = 1.0,
                require_schema: bool = True) -> None:
    start = time.time()
    while True:
        try:
            check_ready(database_url, require_schema=require_schema)
            print("[wait_for_db] Postgres is ready")
            return
        except Exception as e:
            elapsed = time.time() - start
            if elapsed >= timeout_seconds:
                print(f"[wait_for_db] TIMEOUT after {timeout_seconds}s: {type(e).__name__}: {e}")
                raise
            print(f"[wait_for_db] Not ready yet ({elapsed:.1f}s): {type(e).__name__}")
            time.sleep(sleep_seconds)


def main() -> int:
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if not database_url:
        print("[wait_for_db] DATABASE_URL is not set")
        return 1

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    timeout = int(os.environ.get("DB_WAIT_TIMEOUT", "60"))
    require_schema = "--no-schema" not in sys.argv[1:]
    print(f"[wait_for_db] Waiting for Postgres: {redact_database_url(database_url)}")
    try:
        wait_for_db(database_url, timeout_seconds=timeout, require_schema=require_schema)
        return 0
    except Exception:
        return 1


if __name__ == "__main__":
    sys.exit(main())
