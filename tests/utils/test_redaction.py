"""Tests for secret redaction."""

from src.utils.redaction import (
    REDACTED,
    is_sensitive_key,
    redact_secrets,
    sanitize_error_message,
)


class TestRedactSecrets:
    """Tests for masking config dumps."""

    def test_nested_keys_masked(self):
        data = {
            "record_store": {"api_key": "secret_abc", "base_url": "https://api.notion.com/v1"},
            "server": {"port": 8000},
        }
        redacted = redact_secrets(data)
        assert redacted["record_store"]["api_key"] == REDACTED
        assert redacted["record_store"]["base_url"] == "https://api.notion.com/v1"
        assert redacted["server"] == {"port": 8000}
        # Input untouched
        assert data["record_store"]["api_key"] == "secret_abc"

    def test_empty_value_left_unset(self):
        assert redact_secrets({"api_key": ""}) == {"api_key": ""}

    def test_lists_of_dicts(self):
        assert redact_secrets({"items": [{"token": "t"}, 3]}) == {"items": [{"token": REDACTED}, 3]}

    def test_sensitive_key_detection(self):
        assert is_sensitive_key("NOTION_API_KEY")
        assert is_sensitive_key("Authorization")
        assert not is_sensitive_key("base_url")


class TestSanitizeErrorMessage:
    """Tests for masking tokens in error text."""

    def test_bearer_token(self):
        msg = sanitize_error_message("401 for Bearer ntn_1234567890abcdef")
        assert "ntn_1234567890abcdef" not in msg
        assert REDACTED in msg

    def test_bare_tokens(self):
        msg = sanitize_error_message("token secret_ABCDEFGH12 rejected")
        assert "secret_ABCDEFGH12" not in msg

    def test_key_value(self):
        msg = sanitize_error_message('config api_key="hunter2" invalid')
        assert "hunter2" not in msg

    def test_plain_message_unchanged(self):
        assert sanitize_error_message("HTTP 400: bad title") == "HTTP 400: bad title"

    def test_none_and_truncation(self):
        assert sanitize_error_message(None) is None
        msg = sanitize_error_message("x" * 50, max_length=10)
        assert msg == "xxxxxxx..."
