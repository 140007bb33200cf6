"""Tests for log processors and request context helpers."""

import pytest
import structlog

from app.core.logging import (
    REDACTED,
    add_request_context,
    clear_request_context,
    job_context,
    new_request_id,
    redact_secrets,
    set_request_context,
    set_user_context,
)


@pytest.mark.unit
class TestProcessors:
    def test_secrets_are_masked(self):
        event = redact_secrets(
            None,
            "info",
            {"event": "login", "password": "hunter2", "refresh_token": "abc", "ip": "1.2.3.4"},
        )
        assert event["password"] == REDACTED
        assert event["refresh_token"] == REDACTED
        assert event["ip"] == "1.2.3.4"

    def test_request_context_added(self):
        set_request_context("req-1")
        set_user_context(42)
        try:
            event = add_request_context(None, "info", {"event": "x"})
        finally:
            clear_request_context()

        assert event["request_id"] == "req-1"
        assert event["user_id"] == 42
        assert add_request_context(None, "info", {"event": "y"}) == {"event": "y"}

    def test_job_context_is_scoped(self):
        with job_context("cleanup", job_try=2):
            bound = structlog.contextvars.get_contextvars()
            assert bound["job"] == "cleanup"
            assert bound["job_try"] == 2
        assert "job" not in structlog.contextvars.get_contextvars()


@pytest.mark.unit
class TestRequestId:
    def test_incoming_id_reused(self):
        assert new_request_id("  abc-123 ") == "abc-123"

    def test_long_id_truncated(self):
        assert len(new_request_id("x" * 200)) == 64

    @pytest.mark.parametrize("incoming", [None, "", "   "])
    def test_generated_when_missing(self, incoming):
        generated = new_request_id(incoming)
        assert len(generated) == 32
        assert generated != new_request_id(incoming)
