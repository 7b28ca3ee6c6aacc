"""Tests for logging setup and credential redaction."""

import logging

import structlog

from app.core.logging_config import configure_logging, redact_sensitive_fields


class TestRedactSensitiveFields:
    """Tests for redact_sensitive_fields()."""

    def test_credential_keys_are_redacted(self):
        event = {
            "event": "login",
            "password": "hunter2hunter2",
            "refresh_token": "abc",
            "Authorization": "Bearer x",
            "client_secret": "s",
        }

        result = redact_sensitive_fields(None, "info", event)

        assert result["password"] == "***REDACTED***"
        assert result["refresh_token"] == "***REDACTED***"
        assert result["Authorization"] == "***REDACTED***"
        assert result["client_secret"] == "***REDACTED***"

    def test_other_keys_are_kept(self):
        event = {"event": "login", "user_id": "42", "path": "/api/v1/auth/login"}

        result = redact_sensitive_fields(None, "info", event)

        assert result == {
            "event": "login",
            "user_id": "42",
            "path": "/api/v1/auth/login",
        }

    def test_event_text_is_never_redacted(self):
        result = redact_sensitive_fields(None, "info", {"event": "token refreshed"})
        assert result["event"] == "token refreshed"


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_can_be_called_twice(self):
        configure_logging()
        configure_logging()

        assert structlog.is_configured()

    def test_redaction_is_in_the_processor_chain(self):
        configure_logging()

        processors = structlog.get_config()["processors"]

        assert redact_sensitive_fields in processors

    def test_stdlib_extra_fields_are_rendered(self, capsys):
        configure_logging()

        logging.getLogger("app.services.auth_service").warning(
            "Refresh token rotation lost a race", extra={"user_id": "user-42"}
        )

        out = capsys.readouterr().out
        assert "Refresh token rotation lost a race" in out
        assert "user_id" in out
        assert "user-42" in out

    def test_stdlib_extra_credentials_are_redacted(self, capsys):
        configure_logging()

        logging.getLogger("app.core.email").warning(
            "Delivery failed", extra={"reset_token": "plain-reset-value"}
        )

        out = capsys.readouterr().out
        assert "Delivery failed" in out
        assert "plain-reset-value" not in out
        assert "***REDACTED***" in out

    def test_repeated_calls_keep_one_handler(self):
        configure_logging()
        configure_logging()

        names = [h.get_name() for h in logging.getLogger().handlers]

        assert names.count("account-service") == 1
