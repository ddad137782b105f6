import logging
import json
import uuid
import sys
from flask import request, has_request_context, g

from utils.net import get_client_ip
from utils.timestamps import utc_now


def _request_fields():
    """Request metadata for the current log record, or {} outside a request."""
    if not has_request_context():
        return {}

    fields = {
        "method": request.method,
        "path": request.path,
        "remote_ip": get_client_ip(),
    }
    if hasattr(g, "request_id"):
        fields["request_id"] = g.request_id

    # Only an already-loaded user; logging must never trigger the user loader.
    user = g.get("_login_user")
    if user is not None and getattr(user, "is_authenticated", False):
        fields["user_id"] = user.get_id()
    return fields


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line on stdout, for container log collection.
    """
    def format(self, record):
        log_record = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "lineno": record.lineno,
            "thread": record.threadName,
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        log_record.update(_request_fields())
        return json.dumps(log_record, default=str)


def setup_logger(app):
    """
    Route app, service-module and werkzeug logs through one JSON handler.

    Service modules log via logging.getLogger(__name__), so the handler sits
    on the root logger; app.logger stops propagating to avoid duplicates.
    Under Gunicorn, the app logger reuses gunicorn.error's handlers and level.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    app.logger.handlers = [handler]
    app.logger.setLevel(logging.INFO)
    app.logger.propagate = False

    root = logging.getLogger()
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        root.addHandler(handler)
    if root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)

    logging.getLogger('werkzeug').handlers = [handler]

    gunicorn_logger = logging.getLogger('gunicorn.error')
    if gunicorn_logger.handlers:
        app.logger.handlers = gunicorn_logger.handlers
        app.logger.setLevel(gunicorn_logger.level)

    @app.before_request
    def add_request_id():
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

    @app.after_request
    def echo_request_id(response):
        if hasattr(g, "request_id"):
            response.headers.setdefault("X-Request-Id", g.request_id)
        return response

    app.logger.info("Logger setup complete. JSON formatted logs enabled.")
