"""
Error taxonomy for the QR claim/resolution core.

Only CodeNotFound, ItemNotOwned and an exhausted TransientStoreConflict are
ever visible to callers of the write path. InvalidInput is recovered on the
read path, and AuditWriteFailure is always swallowed.
"""


class QRError(Exception):
    """Base exception for QR core errors."""
    kind = "QRError"
    http_status = 500

    def __init__(self, message=None):
        self.message = message or self.kind
        super().__init__(self.message)

    def to_dict(self):
        return {"kind": self.kind}


class InvalidInput(QRError):
    kind = "InvalidInput"
    http_status = 400

    def __init__(self, raw=None):
        self.raw = raw
        super().__init__("Input does not normalize to a code key")


class CodeNotFound(QRError):
    kind = "CodeNotFound"
    http_status = 404

    def __init__(self, code_key):
        self.code_key = code_key
        super().__init__(f"QR code not found: {code_key!r}")


class ItemNotOwned(QRError):
    kind = "ItemNotOwned"
    http_status = 403

    def __init__(self, item_id):
        self.item_id = item_id
        super().__init__(f"Item {item_id!r} is not owned by the caller")


class TransientStoreConflict(QRError):
    """Storage conflict or timeout. Safe to retry; no partial state was written."""
    kind = "Transient"
    http_status = 503

    def __init__(self, message=None, attempts=None):
        self.attempts = attempts
        super().__init__(message or "Transient storage conflict")


class AuditWriteFailure(QRError):
    kind = "AuditWriteFailure"

    def __init__(self, cause):
        self.cause = cause
        super().__init__(f"Scan audit write failed: {type(cause).__name__}")
