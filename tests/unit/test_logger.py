"""
Name: Structured Logger Unit Tests

Responsibilities:
  - Secrets never reach the serialized line
  - Context vars are attached; explicit extras win
"""

import json
import logging

import pytest

from pharmeasy_client.context import clear_context, set_poller_context, set_session_context
from pharmeasy_client.crosscutting.logger import REDACTED, ContextFilter, JSONFormatter, redact


def _render(**extra) -> dict:
    record = logging.makeLogRecord(
        {"name": "pharmeasy_client", "levelname": "INFO", "levelno": 20, "msg": "hello", **extra}
    )
    ContextFilter().filter(record)
    return json.loads(JSONFormatter().format(record))


@pytest.mark.unit
class TestRedaction:
    @pytest.mark.parametrize("key", ["token", "refreshToken", "access_token", "password", "otp"])
    def test_secret_keys_are_redacted(self, key):
        assert redact({key: "s3cr3t"}) == {key: REDACTED}

    def test_nested_secrets_are_redacted(self):
        body = {"user": {"email": "a@x.io"}, "auth": {"accessToken": "abc"}}

        assert redact(body) == {"user": {"email": "a@x.io"}, "auth": {"accessToken": REDACTED}}

    def test_error_code_is_not_a_secret(self):
        assert redact({"error_code": "UNAUTHORIZED"}) == {"error_code": "UNAUTHORIZED"}


@pytest.mark.unit
class TestJSONFormatter:
    def teardown_method(self):
        clear_context()

    def test_line_is_json_with_extras(self):
        entry = _render(action="login", token="abc")

        assert entry["msg"] == "hello"
        assert entry["action"] == "login"
        assert entry["token"] == REDACTED

    def test_context_is_attached(self):
        set_session_context(user_id="u-1", role_id="2")
        set_poller_context(poller="sos")

        entry = _render()

        assert entry["user_id"] == "u-1"
        assert entry["poller"] == "sos"

    def test_explicit_extra_wins_over_context(self):
        set_poller_context(poller="sos")

        assert _render(poller="notifications")["poller"] == "notifications"
