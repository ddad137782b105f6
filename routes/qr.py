"""
QR HTTP surface.

qr_public_bp: scan/resolve endpoints, reachable anonymously (CSRF-exempt,
rate limited). qr_bp: authenticated claim endpoints. Caller identity always
comes from the Flask-Login session, never from the request body.
"""

from flask import Blueprint, current_app, jsonify, redirect, request
from flask_login import current_user, login_required

from config import APP_LINK_SCHEME, RESOLVE_RATE_LIMIT
from constants import DEFAULT_SCAN_PLATFORM, DEFAULT_SCAN_SOURCE, RESOLVE_STATUS_INVALID, SCAN_SOURCE_LINK
from extensions import limiter
from services.errors import InvalidInput, QRError, TransientStoreConflict
from utils.qr_urls import app_deep_link


qr_public_bp = Blueprint("qr_public", __name__)
qr_bp = Blueprint("qr", __name__, url_prefix="/api/qr")

# Accepted body/query keys for the scanned input, in priority order.
RAW_INPUT_KEYS = ("rawInput", "raw", "code", "qr", "codeId", "qrCodeId")


def _core():
    return current_app.extensions["qr_core"]


def _caller_id():
    if current_user.is_authenticated:
        return current_user.get_id()
    return None


def _resolve_rate_limit():
    return current_app.config.get("RESOLVE_RATE_LIMIT", RESOLVE_RATE_LIMIT)


def _json_body():
    """Request JSON as a dict; anything that is not a JSON object reads as empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _request_payload():
    if request.method == "GET":
        return request.args
    return _json_body()


def _raw_input(payload):
    for key in RAW_INPUT_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def _error_response(error: QRError):
    response = jsonify(error.to_dict())
    response.status_code = error.http_status
    if isinstance(error, TransientStoreConflict):
        response.headers["Retry-After"] = "1"
    return response


@qr_public_bp.errorhandler(QRError)
@qr_bp.errorhandler(QRError)
def handle_qr_error(error):
    return _error_response(error)


@qr_bp.errorhandler(PermissionError)
def handle_permission_error(error):
    return jsonify({"error": "unauthorized"}), 401


# =============================================================================
# Read path
# =============================================================================

@qr_public_bp.route("/api/qr/resolve", methods=["GET", "POST"])
@limiter.limit(_resolve_rate_limit)
def resolve():
    payload = _request_payload()
    outcome = _core().resolution.resolve(
        _raw_input(payload),
        caller_user_id=_caller_id(),
        platform=payload.get("platform") or DEFAULT_SCAN_PLATFORM,
        source=payload.get("source") or DEFAULT_SCAN_SOURCE,
    )
    return jsonify(outcome.to_dict())


@qr_public_bp.route("/r/<path:raw>")
@limiter.limit(_resolve_rate_limit)
def scan_redirect(raw):
    """
    Short-link entrypoint printed on legacy stickers.

    Always anonymous: the redirect target is the same for every code state.
    """
    outcome = _core().resolution.resolve(
        raw,
        caller_user_id=None,
        platform=request.args.get("platform") or DEFAULT_SCAN_PLATFORM,
        source=request.args.get("source") or SCAN_SOURCE_LINK,
    )
    return redirect(outcome.redirect_url, code=302)


@qr_public_bp.route("/qr/<code>")
@limiter.limit(_resolve_rate_limit)
def landing(code):
    """Canonical landing route: what the sticker URL opens."""
    outcome = _core().resolution.resolve(
        code,
        caller_user_id=_caller_id(),
        platform=request.args.get("platform") or DEFAULT_SCAN_PLATFORM,
        source=request.args.get("source") or DEFAULT_SCAN_SOURCE,
    )
    data = outcome.to_dict()
    if outcome.status != RESOLVE_STATUS_INVALID:
        data["appUrl"] = app_deep_link(APP_LINK_SCHEME, outcome.code_key)
    return jsonify(data)


# =============================================================================
# Write path (authenticated)
# =============================================================================

@qr_bp.route("/claim", methods=["POST"])
@login_required
def claim():
    data = _json_body()
    code_key = data.get("codeKey") or _raw_input(data)
    item_id = data.get("itemId")
    if item_id is None or (isinstance(item_id, str) and not item_id.strip()):
        error = InvalidInput(data.get("itemId"))
        return jsonify({"kind": error.kind, "error": "itemId is required"}), 400

    result = _core().claims.claim(_caller_id(), code_key, str(item_id).strip())
    status_code = 201 if result.created else 200
    return jsonify(result.to_dict()), status_code


@qr_bp.route("/unclaim", methods=["POST"])
@qr_bp.route("/claim", methods=["DELETE"])
@login_required
def unclaim():
    data = _json_body()
    code_key = data.get("codeKey") or request.args.get("codeKey") or ""
    return jsonify(_core().claims.unclaim(_caller_id(), code_key))


@qr_bp.route("/claims", methods=["GET"])
@login_required
def get_claims():
    code_key = request.args.get("codeKey") or ""
    claims = _core().claims.get_claims(_caller_id(), code_key)
    return jsonify({"claims": [c.to_dict() for c in claims]})


@qr_bp.route("/claims/mine", methods=["GET"])
@login_required
def my_claims():
    claims = _core().claims.list_claims(_caller_id())
    return jsonify({"claims": [c.to_dict(include_code=True) for c in claims]})
