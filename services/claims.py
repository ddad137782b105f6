"""
Claim Service: authenticated write path for (user, code) -> item claims.

State per (user_id, code_key):
    UNCLAIMED -> CLAIMED(item) -> CLAIMED(item') -> UNCLAIMED

The store performs the actual atomic upsert. This layer normalizes input,
checks preconditions, and retries transient store conflicts with a bounded
loop that re-checks the preconditions on every attempt.
"""
import logging
import time
from dataclasses import dataclass

from constants import CLAIM_STATUS_CREATED, CLAIM_STATUS_RETARGETED
from models import Claim
from services.errors import CodeNotFound, ItemNotOwned, TransientStoreConflict
from services.store_errors import TRANSIENT_ERRORS
from utils.qr_codes import normalize_code_key
from utils.redaction import redact_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimResult:
    claim: Claim
    created: bool

    @property
    def status(self):
        return CLAIM_STATUS_CREATED if self.created else CLAIM_STATUS_RETARGETED

    def to_dict(self):
        return {"status": self.status, "claim": self.claim.to_dict()}


class ClaimService:
    def __init__(self, store, registry, items, *, max_attempts=3, backoff_ms=50, sleep=time.sleep, log_salt=""):
        self.store = store
        self.registry = registry
        self.items = items
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_ms = max(0, int(backoff_ms))
        self._sleep = sleep
        self._log_salt = log_salt

    @staticmethod
    def _require_user(user_id):
        if not user_id:
            raise PermissionError("Authenticated caller required")
        return str(user_id)

    def _check_preconditions(self, user_id, code_key, item_id):
        if not self.registry.exists(code_key):
            raise CodeNotFound(code_key)
        if self.items.get_owned(user_id, item_id) is None:
            raise ItemNotOwned(item_id)

    def claim(self, user_id, code_key, item_id) -> ClaimResult:
        """
        Attach ``code_key`` to ``item_id`` for ``user_id``.

        Raises:
            PermissionError: no caller identity
            CodeNotFound: code is not in the registry
            ItemNotOwned: item missing or owned by someone else
            TransientStoreConflict: store conflict persisted past max_attempts
        """
        user_id = self._require_user(user_id)
        code_key = normalize_code_key(code_key)
        user_ref = redact_identifier(user_id, self._log_salt)

        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                self._check_preconditions(user_id, code_key, item_id)
                claim, created = self.store.upsert(user_id, code_key, item_id)
            except (CodeNotFound, ItemNotOwned) as e:
                logger.info(f"[QR] claim rejected: {e.kind} code={code_key} user={user_ref} attempt={attempt}")
                raise
            except TransientStoreConflict as e:
                last_error = e
            except TRANSIENT_ERRORS as e:
                # Raw psycopg2 errors here come from (re)opening the connection.
                last_error = TransientStoreConflict(f"{type(e).__name__} while connecting")
            else:
                result = ClaimResult(claim=claim, created=created)
                logger.info(f"[QR] claim {result.status} code={code_key} user={user_ref} attempt={attempt}")
                return result

            logger.warning(
                f"[QR] claim transient conflict code={code_key} user={user_ref} "
                f"attempt={attempt}/{self.max_attempts}: {last_error.message}"
            )
            if attempt < self.max_attempts and self.backoff_ms:
                self._sleep(self.backoff_ms * attempt / 1000.0)

        logger.error(f"[QR] claim rejected: retries exhausted code={code_key} user={user_ref}")
        raise TransientStoreConflict(
            last_error.message if last_error else None, attempts=self.max_attempts
        )

    def unclaim(self, user_id, code_key) -> dict:
        """Idempotent: a missing claim reports deleted=False."""
        user_id = self._require_user(user_id)
        code_key = normalize_code_key(code_key)
        if not code_key:
            return {"deleted": False}

        deleted = self.store.delete(user_id, code_key)
        logger.info(f"[QR] unclaim code={code_key} user={redact_identifier(user_id, self._log_salt)} deleted={deleted}")
        return {"deleted": deleted}

    def get_claims(self, user_id, code_key):
        user_id = self._require_user(user_id)
        return self.store.find(user_id, normalize_code_key(code_key))

    def list_claims(self, user_id):
        user_id = self._require_user(user_id)
        return self.store.list_for_user(user_id)
