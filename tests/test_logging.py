"""Tests for structured log output and secret redaction."""

import json
import logging

from configapi.core.logging_config import _JsonFormatter, _SecretFilter, request_id_var
from configapi.core.token_factory import issue_token


def _record(msg, *args, **extra):
    record = logging.LogRecord("configapi.test", logging.WARNING, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSecretFilter:

    def test_jwt_in_message(self):
        token = issue_token({"sub": "alice"}, "s", 60)
        record = _record(f"cookie was {token}")

        _SecretFilter().filter(record)

        assert token not in record.getMessage()
        assert "***REDACTED***" in record.getMessage()

    def test_key_value_secret(self):
        record = _record("upstream said secret=ABCDEFGHIJKLMNOP and code: 1234567890")

        _SecretFilter().filter(record)

        assert "ABCDEFGHIJKLMNOP" not in record.getMessage()
        assert "1234567890" not in record.getMessage()
        assert "secret=***REDACTED***" in record.getMessage()

    def test_sensitive_extras_dropped(self):
        record = _record("MFA secret issued", secret="JBSWY3DPEHPK3PXP", username="alice")

        _SecretFilter().filter(record)

        assert record.secret == "***REDACTED***"
        assert record.username == "alice"

    def test_blocked_write_sql_is_scrubbed(self):
        record = _record("BLOCKED WRITE", formatted_sql="UPDATE t SET value='token=abcdefghijkl'")

        _SecretFilter().filter(record)

        assert "abcdefghijkl" not in record.formatted_sql

    def test_plain_text_untouched(self):
        record = _record("Config updated for %s", "alice")

        _SecretFilter().filter(record)

        assert record.getMessage() == "Config updated for alice"


class TestJsonFormatter:

    def test_extras_and_request_id(self):
        token = request_id_var.set("req-42")
        try:
            line = _JsonFormatter().format(_record("Config updated", config_id=5))
        finally:
            request_id_var.reset(token)

        payload = json.loads(line)
        assert payload["message"] == "Config updated"
        assert payload["level"] == "WARNING"
        assert payload["service"] == "config-api"
        assert payload["config_id"] == 5
        assert payload["request_id"] == "req-42"

    def test_no_request_id_outside_requests(self):
        payload = json.loads(_JsonFormatter().format(_record("startup")))
        assert "request_id" not in payload
