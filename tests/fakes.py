"""
In-memory test doubles for the QR core's storage collaborators.

They mirror the Postgres semantics the services depend on: the claim upsert
is atomic (one lock around check-and-write), re-checks item ownership, and
keeps claimed_at when the same item is re-claimed.
"""
import threading
from datetime import timedelta

from models import Claim, ClaimedItem, Code, Item
from services.claims import ClaimService
from services.errors import CodeNotFound, ItemNotOwned, TransientStoreConflict
from services.qr_core import QRCore
from services.resolution import ResolutionService
from utils.timestamps import utc_now


class FakeRegistry:
    def __init__(self, codes=()):
        self.codes = {}
        self.exists_calls = 0
        for key in codes:
            self.add(key)

    def add(self, code_key, pack_id=None):
        self.codes[code_key] = Code(code_key=code_key, pack_id=pack_id, minted_at=utc_now())
        return self.codes[code_key]

    def exists(self, code_key):
        self.exists_calls += 1
        return bool(code_key) and code_key in self.codes

    def get(self, code_key):
        return self.codes.get(code_key)


class FakeItems:
    def __init__(self):
        self.items = {}

    def add(self, item_id, user_id, name):
        self.items[item_id] = Item(id=item_id, user_id=user_id, name=name)
        return self.items[item_id]

    def get_owned(self, user_id, item_id):
        item = self.items.get(item_id)
        if item is None or item.user_id != str(user_id):
            return None
        return item


class FakeClaimStore:
    def __init__(self, registry, items):
        self.registry = registry
        self.items = items
        self.rows = {}
        self.find_calls = 0
        self.upsert_calls = 0
        self._lock = threading.Lock()
        self._clock = utc_now()

    def _tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def upsert(self, user_id, code_key, item_id):
        with self._lock:
            self.upsert_calls += 1
            if code_key not in self.registry.codes:
                raise CodeNotFound(code_key)
            if self.items.get_owned(user_id, item_id) is None:
                raise ItemNotOwned(item_id)

            existing = self.rows.get((user_id, code_key))
            if existing is not None and existing.item_id == item_id:
                claimed_at = existing.claimed_at
            else:
                claimed_at = self._tick()
            claim = Claim(user_id=user_id, code_key=code_key, item_id=item_id, claimed_at=claimed_at)
            self.rows[(user_id, code_key)] = claim
            return claim, existing is None

    def delete(self, user_id, code_key):
        with self._lock:
            return self.rows.pop((user_id, code_key), None) is not None

    def _claimed_item(self, claim):
        item = self.items.items[claim.item_id]
        return ClaimedItem(
            code_key=claim.code_key,
            item_id=claim.item_id,
            item_name=item.name,
            claimed_at=claim.claimed_at,
        )

    def find(self, user_id, code_key):
        self.find_calls += 1
        claim = self.rows.get((user_id, code_key))
        return [self._claimed_item(claim)] if claim else []

    def list_for_user(self, user_id):
        claims = [c for (uid, _), c in self.rows.items() if uid == user_id]
        claims.sort(key=lambda c: c.claimed_at, reverse=True)
        return [self._claimed_item(c) for c in claims]


class FlakyClaimStore:
    """Wraps a store and raises TransientStoreConflict for the first ``failures`` upserts."""

    def __init__(self, inner, failures, before_failure=None):
        self.inner = inner
        self.failures = failures
        self.before_failure = before_failure
        self.attempts = 0

    def upsert(self, user_id, code_key, item_id):
        self.attempts += 1
        if self.attempts <= self.failures:
            if self.before_failure:
                self.before_failure(self.attempts)
            raise TransientStoreConflict("SerializationFailure during claim write")
        return self.inner.upsert(user_id, code_key, item_id)

    def __getattr__(self, name):
        return getattr(self.inner, name)


class RecordingAuditLog:
    def __init__(self, fail=False):
        self.events = []
        self.fail = fail

    def record(self, raw, normalized, user_id=None, platform="web", source="camera"):
        if self.fail:
            raise RuntimeError("audit sink down")
        self.events.append({
            "raw": raw,
            "normalized": normalized,
            "user_id": user_id,
            "platform": platform,
            "source": source,
        })


class FakeAdminRegistry(FakeRegistry):
    """Registry double for admin routes; records calls instead of touching Postgres."""

    def __init__(self, codes=()):
        super().__init__(codes)
        self.mint_calls = []
        self.purged = []

    def mint(self, count, pack_id=None):
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise ValueError("count must be a positive integer")
        self.mint_calls.append((count, pack_id))
        return [self.add(f"MINT{len(self.codes) + i:02d}", pack_id) for i in range(count)]

    def list_codes(self, pack_id=None, limit=100, offset=0):
        codes = [c for c in self.codes.values() if pack_id is None or c.pack_id == pack_id]
        return codes[offset:offset + limit]

    def purge(self, code_key):
        deleted = self.codes.pop(code_key, None) is not None
        self.purged.append(code_key)
        return {"deleted": deleted, "claims_deleted": 0, "scan_events_deleted": 0}

    def list_packs(self):
        return []

    def get_pack(self, pack_id):
        return None

    def create_pack(self, name, description=None, created_by=None):
        raise ValueError("Pack name is required")

    def delete_pack(self, pack_id, purge_codes=False):
        return {"deleted": False, "codes_purged": 0}


def build_fake_core(codes=(), *, base_url="https://stckr.io", audit_log=None, max_attempts=3):
    registry = FakeAdminRegistry(codes)
    items = FakeItems()
    store = FakeClaimStore(registry, items)
    audit_log = audit_log or RecordingAuditLog()
    claims = ClaimService(store, registry, items, max_attempts=max_attempts, backoff_ms=0)
    resolution = ResolutionService(registry, store, audit_log, base_url=base_url)
    return QRCore(
        registry=registry,
        items=items,
        claim_store=store,
        claims=claims,
        resolution=resolution,
        audit_log=audit_log,
        public_base_url=base_url,
    )
