"""
Resolution Service: privacy-preserving read path for scans.

Anonymous callers only ever get the canonical landing redirect. No registry or
claim lookup is performed for them, so the response cannot distinguish an
unknown code from one claimed by any number of users.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from constants import (
    DEFAULT_SCAN_PLATFORM,
    DEFAULT_SCAN_SOURCE,
    RESOLVE_STATUS_INVALID,
    RESOLVE_STATUS_OWNED,
    RESOLVE_STATUS_REDIRECT,
    RESOLVE_STATUS_UNCLAIMED_BY_CALLER,
)
from utils.qr_codes import normalize_code_key
from utils.qr_urls import code_landing_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionOutcome:
    status: str
    code_key: Optional[str] = None
    redirect_url: Optional[str] = None
    item_id: Optional[str] = None
    item_name: Optional[str] = None

    def to_dict(self):
        if self.status == RESOLVE_STATUS_INVALID:
            return {"status": self.status}
        if self.status == RESOLVE_STATUS_REDIRECT:
            return {"status": self.status, "redirectUrl": self.redirect_url, "codeKey": self.code_key}
        if self.status == RESOLVE_STATUS_OWNED:
            return {
                "status": self.status,
                "codeKey": self.code_key,
                "item": {"id": self.item_id, "name": self.item_name},
            }
        return {"status": self.status, "codeKey": self.code_key}


class ResolutionService:
    def __init__(self, registry, claim_store, audit_log, *, base_url, generic_redirect_url=None):
        self.registry = registry
        self.claim_store = claim_store
        self.audit_log = audit_log
        self.base_url = base_url
        self.generic_redirect_url = generic_redirect_url or base_url

    def _redirect(self, code_key):
        return ResolutionOutcome(
            status=RESOLVE_STATUS_REDIRECT,
            code_key=code_key,
            redirect_url=code_landing_url(self.base_url, code_key),
        )

    def resolve(self, raw_input, caller_user_id=None,
                platform=DEFAULT_SCAN_PLATFORM, source=DEFAULT_SCAN_SOURCE) -> ResolutionOutcome:
        code_key = normalize_code_key(raw_input)
        caller = str(caller_user_id) if caller_user_id else None

        if not code_key:
            outcome = ResolutionOutcome(status=RESOLVE_STATUS_INVALID, redirect_url=self.generic_redirect_url)
        elif caller is None:
            outcome = self._redirect(code_key)
        elif not self.registry.exists(code_key):
            outcome = self._redirect(code_key)
        else:
            claims = self.claim_store.find(caller, code_key)
            if claims:
                outcome = ResolutionOutcome(
                    status=RESOLVE_STATUS_OWNED,
                    code_key=code_key,
                    item_id=str(claims[0].item_id),
                    item_name=claims[0].item_name,
                )
            else:
                outcome = ResolutionOutcome(status=RESOLVE_STATUS_UNCLAIMED_BY_CALLER, code_key=code_key)

        try:
            self.audit_log.record(
                raw_input if isinstance(raw_input, str) else "",
                code_key,
                caller,
                platform,
                source,
            )
        except Exception as e:
            logger.warning(f"[Audit] record failed: {type(e).__name__}")
        logger.debug(f"[QR] resolve status={outcome.status} authenticated={caller is not None}")
        return outcome
