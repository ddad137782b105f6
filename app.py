import logging

import click
from flask import Flask, jsonify
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from config import (
    SECRET_KEY, MAX_CONTENT_LENGTH, TRUST_PROXY_HEADERS, PROXY_FIX_NUM_PROXIES, IS_PRODUCTION,
    SESSION_COOKIE_HTTPONLY, SESSION_COOKIE_SAMESITE, SESSION_COOKIE_SECURE,
    REMEMBER_COOKIE_HTTPONLY, REMEMBER_COOKIE_SECURE, PREFERRED_URL_SCHEME,
    RESOLVE_RATE_LIMIT, QR_MINT_DEFAULT_BATCH,
)
from database import close_connection
from extensions import limiter
from models import User

# Blueprints
from routes.qr import qr_bp, qr_public_bp
from routes.admin import admin_bp

logger = logging.getLogger(__name__)


def create_app(test_config=None, core=None):
    """
    Args:
        test_config: Config overrides applied before anything else.
        core: Prebuilt QRCore (tests inject fakes); built from config otherwise.
    """
    app = Flask(__name__)

    app.config['SECRET_KEY'] = SECRET_KEY
    app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH
    app.config['RESOLVE_RATE_LIMIT'] = RESOLVE_RATE_LIMIT

    # Security Config
    app.config['SESSION_COOKIE_HTTPONLY'] = SESSION_COOKIE_HTTPONLY
    app.config['SESSION_COOKIE_SAMESITE'] = SESSION_COOKIE_SAMESITE
    app.config['SESSION_COOKIE_SECURE'] = SESSION_COOKIE_SECURE
    app.config['REMEMBER_COOKIE_HTTPONLY'] = REMEMBER_COOKIE_HTTPONLY
    app.config['REMEMBER_COOKIE_SECURE'] = REMEMBER_COOKIE_SECURE
    app.config['PREFERRED_URL_SCHEME'] = PREFERRED_URL_SCHEME
    app.config["WTF_CSRF_HEADERS"] = ["X-CSRFToken", "X-CSRF-Token"]
    app.config["WTF_CSRF_TIME_LIMIT"] = 3600

    # Test Config Overrides
    if test_config:
        app.config.update(test_config)

    # Setup Structured Logging
    from utils.logger import setup_logger
    setup_logger(app)

    # Health Check (Validates DB connectivity)
    @app.route("/healthz")
    def healthz():
        try:
            from database import get_db
            db = get_db()
            db.execute("SELECT 1").fetchone()
            return {"status": "ok", "db": "connected"}, 200
        except Exception as e:
            logger.error(f"[Health] DB check failed: {type(e).__name__}")
            return {"status": "error", "db": type(e).__name__}, 503

    # Simple ping endpoint for Docker health checks
    @app.route("/ping")
    def ping():
        return {"status": "ok"}, 200

    # ProxyFix
    if IS_PRODUCTION and TRUST_PROXY_HEADERS:
        from werkzeug.middleware.proxy_fix import ProxyFix
        n = PROXY_FIX_NUM_PROXIES
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=n, x_proto=n, x_host=n, x_port=n)
        logger.info(f"[Security] ProxyFix enabled for {n} proxies")

    # Extensions
    csrf = CSRFProtect(app)
    limiter.init_app(app)

    # QR core: built once per app, shared by every blueprint
    if core is None:
        from services.qr_core import build_core
        core = build_core()
    app.extensions['qr_core'] = core

    # Database Teardown
    app.teardown_appcontext(close_connection)

    # Login Manager (sessions are issued by the main web app; this service only reads them)
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return User.get(user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthorized"}), 401

    # Blueprints
    app.register_blueprint(qr_public_bp)
    app.register_blueprint(qr_bp)
    app.register_blueprint(admin_bp)

    # Exemptions: anonymous scan endpoints carry no session to protect
    csrf.exempt(qr_public_bp)

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({"error": "rate_limited"}), 429

    # CLI Commands
    @app.cli.command("mint-codes")
    @click.argument("count", type=int, default=QR_MINT_DEFAULT_BATCH)
    @click.option("--pack-id", default=None, help="Attach the new codes to this pack.")
    def mint_codes_cmd(count, pack_id):
        """Mint COUNT fresh QR codes."""
        codes = app.extensions['qr_core'].registry.mint(count, pack_id=pack_id)
        for code in codes:
            click.echo(code.code_key)
        click.echo(f"Minted {len(codes)} codes.", err=True)

    @app.cli.command("purge-code")
    @click.argument("code_key")
    def purge_code_cmd(code_key):
        """Irreversibly delete a code with its claims and scan events."""
        result = app.extensions['qr_core'].registry.purge(code_key)
        click.echo(
            f"deleted={result['deleted']} claims={result['claims_deleted']} "
            f"scan_events={result['scan_events_deleted']}"
        )

    return app


# WSGI Entry Point
app = create_app()

if __name__ == "__main__":
    app.run(host='0.0.0.0', debug=True)
