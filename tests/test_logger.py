import json
import logging

from flask import g

from models import User
from utils.logger import JSONFormatter


def _record(msg="[QR] claim created"):
    return logging.LogRecord("services.claims", logging.INFO, __file__, 10, msg, None, None)


def test_plain_record_outside_request():
    data = json.loads(JSONFormatter().format(_record()))
    assert data["level"] == "INFO"
    assert data["message"] == "[QR] claim created"
    assert "request_id" not in data


def test_request_fields_and_user(app):
    with app.test_request_context("/api/qr/claim", method="POST"):
        g.request_id = "req-42"
        g._login_user = User("user-a")
        data = json.loads(JSONFormatter().format(_record()))

    assert data["method"] == "POST"
    assert data["path"] == "/api/qr/claim"
    assert data["request_id"] == "req-42"
    assert data["user_id"] == "user-a"


def test_anonymous_request_has_no_user_id(app):
    with app.test_request_context("/api/qr/resolve"):
        data = json.loads(JSONFormatter().format(_record()))
    assert "user_id" not in data
