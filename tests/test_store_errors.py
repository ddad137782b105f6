"""
Store failures outside the upsert itself: precondition reads that time out
and connections that drop mid-request must surface as Transient, never as
raw psycopg2 errors.
"""
import psycopg2
import pytest
from flask import g
from psycopg2 import errors as pg_errors

from services.claim_store import ClaimStore
from services.claims import ClaimService
from services.code_registry import CodeRegistry
from services.errors import TransientStoreConflict
from services.items import ItemDirectory
from services.store_errors import store_errors
from utils.timestamps import utc_now


def _scripted_db(mocker, *, on_code_lookup=None, on_upsert=None):
    """
    PostgresDB stand-in answering the claim path's three statements.

    ``on_code_lookup`` / ``on_upsert`` are exceptions to raise for that
    statement. A connection-class error also marks the connection closed,
    the way psycopg2 does when the server goes away.
    """
    db = mocker.Mock(closed=False)

    def fail(exc):
        if isinstance(exc, psycopg2.InterfaceError) or type(exc) is psycopg2.OperationalError:
            db.closed = True
        raise exc

    def execute(sql, params=None):
        if db.closed:
            raise psycopg2.InterfaceError("connection already closed")
        cur = mocker.Mock()
        if "INSERT INTO qr_claims" in sql:
            if on_upsert is not None:
                fail(on_upsert)
            cur.fetchone.return_value = {
                "user_id": params[0],
                "code_key": params[1],
                "item_id": params[2],
                "claimed_at": utc_now(),
                "inserted": True,
            }
        elif "FROM qr_codes" in sql:
            if on_code_lookup is not None:
                fail(on_code_lookup)
            cur.fetchone.return_value = {"?column?": 1}
        elif "FROM items" in sql:
            cur.fetchone.return_value = {"id": params[0], "user_id": params[1], "name": "Drill"}
        return cur

    db.execute.side_effect = execute
    return db


def _service(get_db, max_attempts=3):
    return ClaimService(
        ClaimStore(get_db),
        CodeRegistry(get_db),
        ItemDirectory(get_db),
        max_attempts=max_attempts,
        backoff_ms=0,
    )


class ReconnectingProvider:
    """Mirrors database.get_db: a closed cached connection is replaced."""

    def __init__(self, connections):
        self._pending = list(connections)
        self.current = None
        self.opened = 0

    def __call__(self):
        if self.current is None or self.current.closed:
            self.current = self._pending.pop(0)
            self.opened += 1
        return self.current


class TestStoreErrors:

    def test_timeout_maps_to_transient_after_rollback(self, mocker):
        db = mocker.Mock()
        with pytest.raises(TransientStoreConflict):
            with store_errors(db):
                raise pg_errors.QueryCanceled("canceling statement due to statement timeout")
        db.rollback.assert_called_once()

    def test_unclassified_errors_propagate_unchanged(self, mocker):
        db = mocker.Mock()
        with pytest.raises(pg_errors.UndefinedTable):
            with store_errors(db):
                raise pg_errors.UndefinedTable("relation does not exist")
        db.rollback.assert_called_once()

    def test_rollback_failure_is_tolerated(self, mocker):
        db = mocker.Mock()
        db.rollback.side_effect = psycopg2.InterfaceError("connection already closed")
        with pytest.raises(TransientStoreConflict):
            with store_errors(db):
                raise psycopg2.InterfaceError("connection already closed")


class TestPreconditionReads:

    def test_registry_timeout_is_transient(self, mocker):
        db = _scripted_db(mocker, on_code_lookup=pg_errors.QueryCanceled("statement timeout"))
        with pytest.raises(TransientStoreConflict):
            CodeRegistry(lambda: db).exists("X7QK2P")
        db.rollback.assert_called_once()

    def test_item_lookup_on_closed_connection_is_transient(self, mocker):
        db = mocker.Mock()
        db.execute.side_effect = psycopg2.InterfaceError("connection already closed")
        with pytest.raises(TransientStoreConflict):
            ItemDirectory(lambda: db).get_owned("user-a", "item-1")

    def test_claim_lookup_timeout_is_transient(self, mocker):
        db = mocker.Mock()
        db.execute.side_effect = pg_errors.QueryCanceled("statement timeout")
        with pytest.raises(TransientStoreConflict):
            ClaimStore(lambda: db).find("user-a", "X7QK2P")


class TestClaimRetries:

    def test_precondition_timeout_exhausts_to_transient(self, mocker):
        db = _scripted_db(mocker, on_code_lookup=pg_errors.QueryCanceled("statement timeout"))

        with pytest.raises(TransientStoreConflict) as exc:
            _service(lambda: db).claim("user-a", "X7QK2P", "item-1")

        assert exc.value.attempts == 3
        assert db.rollback.call_count == 3

    def test_dropped_connection_without_reconnect_is_transient(self, mocker):
        db = _scripted_db(mocker, on_upsert=psycopg2.OperationalError("server closed the connection unexpectedly"))

        with pytest.raises(TransientStoreConflict) as exc:
            _service(lambda: db).claim("user-a", "X7QK2P", "item-1")

        assert exc.value.attempts == 3

    def test_dropped_connection_retries_on_fresh_connection(self, mocker):
        dead = _scripted_db(mocker, on_upsert=psycopg2.OperationalError("server closed the connection unexpectedly"))
        fresh = _scripted_db(mocker)
        provider = ReconnectingProvider([dead, fresh])

        result = _service(provider).claim("user-a", "X7QK2P", "item-1")

        assert result.status == "created"
        assert provider.opened == 2
        fresh.commit.assert_called_once()

    def test_failed_reconnect_is_transient(self, mocker):
        dead = _scripted_db(mocker, on_upsert=psycopg2.OperationalError("server closed the connection unexpectedly"))
        calls = {"n": 0}

        def provider():
            calls["n"] += 1
            if calls["n"] == 1 or not dead.closed:
                return dead
            raise psycopg2.OperationalError("could not connect to server")

        with pytest.raises(TransientStoreConflict) as exc:
            _service(provider).claim("user-a", "X7QK2P", "item-1")

        assert exc.value.attempts == 3


class TestRequestConnection:

    def test_closed_cached_connection_is_replaced(self, app, mocker):
        from database import get_db

        fresh = mocker.Mock(closed=False)
        connect = mocker.patch("database.connect_db", return_value=fresh)

        with app.app_context():
            g.db = mocker.Mock(closed=True)
            assert get_db() is fresh
            assert get_db() is fresh

        connect.assert_called_once()

    def test_live_cached_connection_is_reused(self, app, mocker):
        from database import get_db

        live = mocker.Mock(closed=False)
        connect = mocker.patch("database.connect_db")

        with app.app_context():
            g.db = live
            assert get_db() is live

        connect.assert_not_called()
