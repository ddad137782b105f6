"""
Wiring for the QR core. build_core() is called once per app; the resulting
QRCore is stored on app.extensions['qr_core'] and handed to the blueprints.
"""
from dataclasses import dataclass

import config
from database import get_db
from services.claim_store import ClaimStore
from services.claims import ClaimService
from services.code_registry import CodeRegistry
from services.items import ItemDirectory
from services.resolution import ResolutionService
from services.scan_audit import PostgresScanEventSink, ScanAuditLog


@dataclass
class QRCore:
    registry: CodeRegistry
    items: ItemDirectory
    claim_store: ClaimStore
    claims: ClaimService
    resolution: ResolutionService
    audit_log: ScanAuditLog
    public_base_url: str


def build_core(get_db_fn=get_db, *, audit_sink=None, audit_enabled=None) -> QRCore:
    registry = CodeRegistry(
        get_db_fn,
        code_length=config.QR_CODE_LENGTH,
        max_batch=config.QR_MINT_MAX_BATCH,
    )
    items = ItemDirectory(get_db_fn)
    claim_store = ClaimStore(get_db_fn)
    audit_log = ScanAuditLog(
        audit_sink or PostgresScanEventSink(),
        queue_size=config.SCAN_AUDIT_QUEUE_SIZE,
        enabled=config.SCAN_AUDIT_ENABLED if audit_enabled is None else audit_enabled,
    )
    claims = ClaimService(
        claim_store,
        registry,
        items,
        max_attempts=config.CLAIM_MAX_ATTEMPTS,
        backoff_ms=config.CLAIM_RETRY_BACKOFF_MS,
        log_salt=config.LOG_ID_SALT,
    )
    resolution = ResolutionService(
        registry,
        claim_store,
        audit_log,
        base_url=config.PUBLIC_BASE_URL,
        generic_redirect_url=config.GENERIC_REDIRECT_URL,
    )
    return QRCore(
        registry=registry,
        items=items,
        claim_store=claim_store,
        claims=claims,
        resolution=resolution,
        audit_log=audit_log,
        public_base_url=config.PUBLIC_BASE_URL,
    )
