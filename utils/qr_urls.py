"""
Canonical helpers for QR landing URLs.
Single source of truth for constructing the URLs printed on stickers.
Strictly enforce /qr/<CODE_KEY> format.
"""


def _require_key(code_key: str) -> str:
    if not code_key:
        raise ValueError("code_key is required for QR URL")
    return code_key


def code_landing_url(base_url: str, code_key: str) -> str:
    """
    Canonical per-code landing URL.
    Format: {base_url}/qr/{CODE_KEY}

    code_key must already be canonical (see utils.qr_codes.normalize_code_key).
    """
    clean_base = base_url.rstrip('/')
    return f"{clean_base}/qr/{_require_key(code_key)}"


def app_deep_link(scheme: str, code_key: str) -> str:
    """
    App deep link for a code, as registered by the mobile shell.
    Format: {scheme}://qr/{CODE_KEY}
    """
    clean_scheme = scheme.rstrip(':/')
    return f"{clean_scheme}://qr/{_require_key(code_key)}"
