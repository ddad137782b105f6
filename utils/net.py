"""
Client address helpers shared by logging and rate limiting.
"""
from flask import request


def get_client_ip() -> str:
    """
    Client IP for the current request.

    With TRUST_PROXY_HEADERS enabled, ProxyFix has already rewritten
    request.remote_addr from X-Forwarded-For, so this is the real client.
    Anonymous scans are rate limited on this value.
    """
    return request.remote_addr or "unknown"
