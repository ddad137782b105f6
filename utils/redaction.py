"""Helpers that keep credentials and raw account ids out of log lines."""

from __future__ import annotations

import hashlib
import hmac
from urllib.parse import urlsplit, urlunsplit


def redact_database_url(url: str) -> str:
    """
    DATABASE_URL with the password replaced by ``****``.

    Host, port, database and query (sslmode etc.) are kept so connection
    problems stay diagnosable from the log line alone.
    """
    raw = (url or "").strip()
    if not raw:
        return "EMPTY_DATABASE_URL"
    try:
        parts = urlsplit(raw)
        host = parts.hostname or "unknown-host"
        if parts.port:
            host = f"{host}:{parts.port}"
        if parts.username:
            host = f"{parts.username}:****@{host}"
        path = parts.path if parts.path.strip("/") else "/unknown-db"
        return urlunsplit((parts.scheme or "postgresql", host, path, parts.query, ""))
    except ValueError:
        return "INVALID_DATABASE_URL"


def redact_identifier(value, salt: str = "") -> str | None:
    """
    Short stable fingerprint of a user or item id for log lines.

    HMAC-SHA256 keyed with ``salt``: the same id always maps to the same 12
    hex chars, so one account's claim history can be followed through the
    logs, but guessable ids cannot be recovered without the key.
    """
    if value is None or value == "":
        return None
    digest = hmac.new((salt or "").encode("utf-8"), str(value).encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()[:12]
