"""
Code Registry: durable store of every minted code (one row per physical sticker).

Source of truth for "does this code exist". Admin-only operations (mint, purge,
packs) live here too; nothing outside this module writes qr_codes rows.
"""
import logging

from models import Code, CodePack
from services.store_errors import store_errors
from utils.qr_codes import DEFAULT_CODE_LENGTH, generate_code_key, normalize_code_key

logger = logging.getLogger(__name__)


class CodeRegistry:
    def __init__(self, get_db, *, code_length=DEFAULT_CODE_LENGTH, max_batch=500, max_tries=1000):
        """
        Args:
            get_db: Callable returning the current PostgresDB connection.
            code_length: Length of freshly minted keys.
            max_batch: Upper bound for a single mint() call.
            max_tries: Collision retries per code before giving up.
        """
        self._get_db = get_db
        self.code_length = code_length
        self.max_batch = max_batch
        self.max_tries = max_tries

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def exists(self, code_key: str) -> bool:
        """Empty keys never match anything (never a wildcard)."""
        if not code_key:
            return False
        db = self._get_db()
        with store_errors(db, code_key=code_key):
            row = db.execute(
                "SELECT 1 FROM qr_codes WHERE code_key = %s", (code_key,)
            ).fetchone()
        return row is not None

    def get(self, code_key: str):
        if not code_key:
            return None
        db = self._get_db()
        with store_errors(db, code_key=code_key):
            row = db.execute(
                "SELECT code_key, pack_id, minted_at FROM qr_codes WHERE code_key = %s",
                (code_key,)
            ).fetchone()
        return Code.from_row(row) if row else None

    def list_codes(self, pack_id=None, limit=100, offset=0):
        db = self._get_db()
        limit = max(1, min(int(limit), 1000))
        offset = max(0, int(offset))
        if pack_id:
            rows = db.execute(
                """
                SELECT code_key, pack_id, minted_at FROM qr_codes
                WHERE pack_id = %s
                ORDER BY minted_at DESC, code_key
                LIMIT %s OFFSET %s
                """,
                (pack_id, limit, offset)
            ).fetchall()
        else:
            rows = db.execute(
                """
                SELECT code_key, pack_id, minted_at FROM qr_codes
                ORDER BY minted_at DESC, code_key
                LIMIT %s OFFSET %s
                """,
                (limit, offset)
            ).fetchall()
        return [Code.from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Admin: mint / purge
    # ------------------------------------------------------------------
    def mint(self, count: int, pack_id=None, *, _candidate_fn=None):
        """
        Mint ``count`` fresh codes in one transaction.

        Each candidate is inserted with ON CONFLICT DO NOTHING; a collision
        simply draws another candidate, so uniqueness is enforced by the
        primary key rather than a racy check-then-insert.

        Args:
            count: Number of codes, 1..max_batch
            pack_id: Optional print-batch to attach the codes to
            _candidate_fn: Test hook - callable(attempt) returning candidate keys

        Raises:
            ValueError: count out of range or unknown pack_id
            RuntimeError: max_tries collisions for a single code
        """
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise ValueError("count must be a positive integer")
        if count > self.max_batch:
            raise ValueError(f"count must be at most {self.max_batch}")

        db = self._get_db()
        try:
            if pack_id is not None:
                pack = db.execute("SELECT 1 FROM qr_code_packs WHERE id = %s", (pack_id,)).fetchone()
                if not pack:
                    raise ValueError(f"Unknown pack_id: {pack_id}")

            minted = []
            attempt = 0
            for _ in range(count):
                for _try in range(self.max_tries):
                    if _candidate_fn:
                        candidate = normalize_code_key(_candidate_fn(attempt))
                    else:
                        candidate = generate_code_key(self.code_length)
                    attempt += 1

                    row = db.execute(
                        """
                        INSERT INTO qr_codes (code_key, pack_id)
                        VALUES (%s, %s)
                        ON CONFLICT (code_key) DO NOTHING
                        RETURNING code_key, pack_id, minted_at
                        """,
                        (candidate, pack_id)
                    ).fetchone()
                    if row:
                        minted.append(Code.from_row(row))
                        break
                    logger.info("[Registry] Key collision on mint, retrying")
                else:
                    raise RuntimeError(f"Failed to generate unique code after {self.max_tries} attempts")
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[Registry] Minted {len(minted)} codes (pack={pack_id})")
        return minted

    def purge(self, code_key: str) -> dict:
        """
        Irreversibly delete a code, its claims (FK cascade) and its scan events.
        """
        code_key = normalize_code_key(code_key)
        result = {"deleted": False, "claims_deleted": 0, "scan_events_deleted": 0}
        if not code_key:
            return result

        db = self._get_db()
        try:
            # Row lock blocks new claims (their FK check needs KEY SHARE) until commit.
            locked = db.execute(
                "SELECT code_key FROM qr_codes WHERE code_key = %s FOR UPDATE", (code_key,)
            ).fetchone()
            claims = None
            if locked:
                claims = db.execute(
                    "SELECT COUNT(*) AS n FROM qr_claims WHERE code_key = %s", (code_key,)
                ).fetchone()
            scans = db.execute(
                "DELETE FROM qr_scan_events WHERE code_key_normalized = %s", (code_key,)
            )
            deleted = None
            if locked:
                deleted = db.execute(
                    "DELETE FROM qr_codes WHERE code_key = %s RETURNING code_key", (code_key,)
                ).fetchone()
            db.commit()
        except Exception:
            db.rollback()
            raise

        result["scan_events_deleted"] = scans.rowcount or 0
        if deleted:
            result["deleted"] = True
            result["claims_deleted"] = int(claims['n'] or 0)

        logger.warning(
            f"[Registry] PURGE code={code_key} deleted={result['deleted']} "
            f"claims={result['claims_deleted']} scan_events={result['scan_events_deleted']}"
        )
        return result

    # ------------------------------------------------------------------
    # Admin: packs
    # ------------------------------------------------------------------
    def create_pack(self, name: str, description=None, created_by=None) -> CodePack:
        name = (name or "").strip()
        if not name:
            raise ValueError("Pack name is required")

        db = self._get_db()
        try:
            row = db.execute(
                """
                INSERT INTO qr_code_packs (name, description, created_by)
                VALUES (%s, %s, %s)
                RETURNING id, name, description, created_by, created_at
                """,
                (name[:200], description, created_by)
            ).fetchone()
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"[Registry] Created pack {row['id']}")
        return CodePack.from_row(row)

    _PACK_STATS_SQL = """
        SELECT p.id, p.name, p.description, p.created_by, p.created_at,
               COUNT(DISTINCT c.code_key) AS code_count,
               COUNT(DISTINCT cl.code_key) AS claimed_code_count
        FROM qr_code_packs p
        LEFT JOIN qr_codes c ON c.pack_id = p.id
        LEFT JOIN qr_claims cl ON cl.code_key = c.code_key
    """

    def list_packs(self):
        rows = self._get_db().execute(
            self._PACK_STATS_SQL + " GROUP BY p.id ORDER BY p.created_at DESC"
        ).fetchall()
        return [CodePack.from_row(r) for r in rows]

    def get_pack(self, pack_id):
        row = self._get_db().execute(
            self._PACK_STATS_SQL + " WHERE p.id = %s GROUP BY p.id", (pack_id,)
        ).fetchone()
        return CodePack.from_row(row) if row else None

    def delete_pack(self, pack_id, purge_codes=False) -> dict:
        """
        Delete a pack. Its codes are detached (pack_id -> NULL) unless
        ``purge_codes`` is set, in which case each code is purged first.
        """
        db = self._get_db()
        purged = 0
        if purge_codes:
            rows = db.execute(
                "SELECT code_key FROM qr_codes WHERE pack_id = %s", (pack_id,)
            ).fetchall()
            for r in rows:
                if self.purge(r['code_key'])["deleted"]:
                    purged += 1

        try:
            deleted = db.execute(
                "DELETE FROM qr_code_packs WHERE id = %s RETURNING id", (pack_id,)
            ).fetchone()
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.warning(f"[Registry] Deleted pack {pack_id} (found={bool(deleted)}, codes_purged={purged})")
        return {"deleted": bool(deleted), "codes_purged": purged}
