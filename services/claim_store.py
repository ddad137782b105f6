"""
Claim Store: sole writer of the qr_claims table.

Every mutation is one statement followed by a commit. psycopg2 errors are
translated into the QR error taxonomy after the transaction is rolled back,
so callers never see a half-applied claim.
"""
from models import Claim, ClaimedItem
from services.errors import ItemNotOwned
from services.store_errors import store_errors

_UPSERT_SQL = """
    INSERT INTO qr_claims (user_id, code_key, item_id, claimed_at, updated_at)
    SELECT %s, %s, i.id, NOW(), NOW()
    FROM items i
    WHERE i.id = %s AND i.user_id = %s
    ON CONFLICT (user_id, code_key) DO UPDATE
    SET item_id = EXCLUDED.item_id,
        claimed_at = CASE
            WHEN qr_claims.item_id = EXCLUDED.item_id THEN qr_claims.claimed_at
            ELSE NOW()
        END,
        updated_at = NOW()
    RETURNING user_id, code_key, item_id, claimed_at, (xmax = 0) AS inserted
"""

_CLAIMED_ITEM_SQL = """
    SELECT c.code_key, c.item_id, i.name AS item_name, c.claimed_at
    FROM qr_claims c
    JOIN items i ON i.id = c.item_id AND i.user_id = c.user_id
"""


class ClaimStore:
    def __init__(self, get_db):
        self._get_db = get_db

    def upsert(self, user_id, code_key, item_id):
        """
        Create or retarget the (user_id, code_key) claim in one statement.

        Ownership of ``item_id`` is re-checked inside the INSERT ... SELECT, so
        a concurrent ownership change cannot slip in between check and write.

        Returns:
            (Claim, created): created is True for a fresh row.
        """
        db = self._get_db()
        with store_errors(db, code_key=code_key, item_id=item_id):
            row = db.execute(
                _UPSERT_SQL, (str(user_id), code_key, str(item_id), str(user_id))
            ).fetchone()
            if row is None:
                db.rollback()
                raise ItemNotOwned(item_id)
            db.commit()

        return Claim.from_row(row), bool(row['inserted'])

    def delete(self, user_id, code_key) -> bool:
        db = self._get_db()
        with store_errors(db, code_key=code_key):
            row = db.execute(
                "DELETE FROM qr_claims WHERE user_id = %s AND code_key = %s RETURNING code_key",
                (str(user_id), code_key)
            ).fetchone()
            db.commit()
        return row is not None

    def find(self, user_id, code_key):
        """Caller-scoped lookup: 0 or 1 ClaimedItem."""
        if not user_id or not code_key:
            return []
        db = self._get_db()
        with store_errors(db, code_key=code_key):
            rows = db.execute(
                _CLAIMED_ITEM_SQL + " WHERE c.user_id = %s AND c.code_key = %s",
                (str(user_id), code_key)
            ).fetchall()
        return [ClaimedItem.from_row(r) for r in rows]

    def list_for_user(self, user_id):
        if not user_id:
            return []
        db = self._get_db()
        with store_errors(db):
            rows = db.execute(
                _CLAIMED_ITEM_SQL + " WHERE c.user_id = %s ORDER BY c.claimed_at DESC, c.code_key",
                (str(user_id),)
            ).fetchall()
        return [ClaimedItem.from_row(r) for r in rows]
