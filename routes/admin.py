"""
Admin QR tooling: minting, purging, packs, sticker images.

Every route here requires an authenticated user with is_admin; anyone else
gets 403 before the view runs.
"""
import logging

from flask import Blueprint, Response, abort, current_app, jsonify, request
from flask_login import current_user, login_required

from config import APP_LINK_SCHEME, QR_MINT_DEFAULT_BATCH
from services.errors import QRError
from utils.qr_codes import normalize_code_key
from utils.qr_image import render_qr_png
from utils.qr_urls import app_deep_link, code_landing_url

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin/qr")


@admin_bp.before_request
@login_required
def require_admin():
    if not current_user.is_admin:
        logger.warning(f"[Admin] Non-admin access denied: {request.path}")
        abort(403)


@admin_bp.errorhandler(403)
def forbidden(error):
    return jsonify({"success": False, "error": "forbidden"}), 403


@admin_bp.errorhandler(QRError)
def handle_qr_error(error):
    return jsonify(error.to_dict()), error.http_status


def _core():
    return current_app.extensions["qr_core"]


def _code_dict(code):
    data = code.to_dict()
    base_url = _core().public_base_url
    data["landingUrl"] = code_landing_url(base_url, code.code_key)
    data["appUrl"] = app_deep_link(APP_LINK_SCHEME, code.code_key)
    return data


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


# =============================================================================
# Codes
# =============================================================================

@admin_bp.route("/mint", methods=["POST"])
def mint_codes():
    data = _json_body()
    count = data.get("count", QR_MINT_DEFAULT_BATCH)
    pack_id = data.get("packId") or None

    try:
        codes = _core().registry.mint(count, pack_id=pack_id)
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    logger.info(f"[Admin] {current_user.get_id()} minted {len(codes)} codes (pack={pack_id})")
    return jsonify({"success": True, "count": len(codes), "codes": [_code_dict(c) for c in codes]}), 201


@admin_bp.route("/codes", methods=["GET"])
def list_codes():
    codes = _core().registry.list_codes(
        pack_id=request.args.get("packId") or None,
        limit=_int_arg("limit", 100),
        offset=_int_arg("offset", 0),
    )
    return jsonify({"codes": [_code_dict(c) for c in codes]})


@admin_bp.route("/codes/<code_key>", methods=["DELETE"])
def purge_code(code_key):
    result = _core().registry.purge(code_key)
    if not result["deleted"]:
        return jsonify({"success": False, "error": "not_found", **result}), 404
    logger.warning(f"[Admin] {current_user.get_id()} purged code {normalize_code_key(code_key)}")
    return jsonify({"success": True, **result})


@admin_bp.route("/codes/<code_key>.png", methods=["GET"])
def code_image(code_key):
    code = _core().registry.get(normalize_code_key(code_key))
    if code is None:
        return jsonify({"success": False, "error": "not_found"}), 404

    size_px = max(128, min(_int_arg("size", 1024), 2048))
    png = render_qr_png(code_landing_url(_core().public_base_url, code.code_key), size_px=size_px)
    return Response(
        png,
        mimetype="image/png",
        headers={"Content-Disposition": f'inline; filename="qr-{code.code_key}.png"'},
    )


# =============================================================================
# Packs
# =============================================================================

@admin_bp.route("/packs", methods=["GET"])
def list_packs():
    return jsonify({"packs": [p.to_dict() for p in _core().registry.list_packs()]})


@admin_bp.route("/packs", methods=["POST"])
def create_pack():
    data = _json_body()
    try:
        pack = _core().registry.create_pack(
            data.get("name"),
            description=data.get("description"),
            created_by=current_user.get_id(),
        )
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    return jsonify({"success": True, "pack": pack.to_dict()}), 201


@admin_bp.route("/packs/<pack_id>", methods=["GET"])
def get_pack(pack_id):
    pack = _core().registry.get_pack(pack_id)
    if pack is None:
        return jsonify({"success": False, "error": "not_found"}), 404
    return jsonify({"pack": pack.to_dict()})


@admin_bp.route("/packs/<pack_id>", methods=["DELETE"])
def delete_pack(pack_id):
    purge_codes = request.args.get("purgeCodes", "").strip().lower() in {"1", "true", "yes"}
    result = _core().registry.delete_pack(pack_id, purge_codes=purge_codes)
    if not result["deleted"]:
        return jsonify({"success": False, "error": "not_found", **result}), 404
    return jsonify({"success": True, **result})
