"""
Unit tests for log redaction and JSON formatting.
"""

import json
import logging
import sys

from infrastructure.logging_config import JSONFormatter, SensitiveDataFilter, redact


def make_record(msg, args=(), **extra) -> logging.LogRecord:
    record = logging.LogRecord("newshub.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedact:
    def test_bearer_token(self):
        assert redact("Authorization: Bearer eyJabc.def") == "Authorization: Bearer [REDACTED]"

    def test_provider_secrets(self):
        text = redact("key sk_test_abcdefgh1234 secret whsec_abcdefgh1234")
        assert "sk_test_abcdefgh1234" not in text
        assert "whsec_abcdefgh1234" not in text

    def test_public_api_keys(self):
        assert "[REDACTED_API_KEY]" in redact("caller used nh_" + "x" * 30)

    def test_plain_text_untouched(self):
        assert redact("Recorded view of article 42") == "Recorded view of article 42"


class TestSensitiveDataFilter:
    def test_redacts_message_and_args(self):
        record = make_record("attempt %s", ("password=hunter2",))

        assert SensitiveDataFilter().filter(record) is True
        assert "hunter2" not in record.getMessage()

    def test_redacts_dict_args(self):
        record = make_record("token %(value)s")
        record.args = {"value": "Authorization: Bearer abc123"}

        SensitiveDataFilter().filter(record)
        assert "abc123" not in record.getMessage()


class TestJSONFormatter:
    def test_includes_known_extras(self):
        record = make_record("Webhook %s applied", ("evt_1",), event_id="evt_1", request_id="r-1")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Webhook evt_1 applied"
        assert entry["level"] == "INFO"
        assert entry["event_id"] == "evt_1"
        assert entry["request_id"] == "r-1"
        assert "timestamp" in entry

    def test_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("t", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]
