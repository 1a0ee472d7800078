"""Tests for the service identity carried by log events."""

import re

import structlog

from src.cadastro_api.config import Settings
from src.cadastro_api.logging import SERVICE_NAME, add_service_name, setup_logging


def test_service_name_added_to_events():
    event = add_service_name(None, "info", {"event": "login_succeeded"})

    assert event["service"] == SERVICE_NAME == "cadastro-api"


def test_setup_logging_installs_service_processor():
    try:
        setup_logging(Settings(jwt_secret="s", app_env="production"))

        assert add_service_name in structlog.get_config()["processors"]
    finally:
        structlog.reset_defaults()


class TestRequestContext:
    def test_request_id_echoed(self, client, fake_db):
        response = client.get("/departamentos", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated_when_absent(self, client, fake_db):
        response = client.get("/departamentos")

        assert re.fullmatch(r"[0-9a-f]{32}", response.headers["X-Request-ID"])

    def test_request_id_on_error_responses(self, client, fake_db):
        response = client.put("/departamentos/5", json={"nome": "X"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"]
