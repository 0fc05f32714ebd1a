"""Tests for client-facing error sanitization."""

from __future__ import annotations

import pytest

from mailmate.utils.error_sanitizer import (
    GENERIC_MESSAGES,
    get_safe_error_detail,
    sanitize_error_message,
)


class TestSanitizeErrorMessage:
    def test_short_client_error_passes_through(self):
        msg = "max_results must be between 1 and 500"
        assert sanitize_error_message(msg, 400) == msg

    @pytest.mark.parametrize(
        "message",
        [
            'File "/srv/app/mailmate/pipeline/service.py", line 42',
            "Traceback (most recent call last)",
            "token ya29.a0AfH6SMBexample rejected",
            "error in mailmate.pipeline.orchestrator",
            "googleapiclient.errors.HttpError 403",
        ],
    )
    def test_sensitive_content_is_replaced(self, message):
        assert sanitize_error_message(message, 400) == GENERIC_MESSAGES[400]

    def test_server_errors_are_generic(self):
        assert sanitize_error_message("boom", 500) == GENERIC_MESSAGES[500]

    def test_structured_client_error_is_generic(self):
        assert sanitize_error_message("bad value {'x': 1}", 422) == GENERIC_MESSAGES[422]

    def test_empty_message(self):
        assert sanitize_error_message("", 404) == GENERIC_MESSAGES[404]

    def test_unknown_status(self):
        assert sanitize_error_message("", 418) == "An error occurred."


class TestSafeErrorDetail:
    def test_production_hides_exception(self, monkeypatch):
        monkeypatch.setattr("mailmate.utils.error_sanitizer.is_development", lambda: False)
        detail = get_safe_error_detail(RuntimeError("db at 10.0.0.5"), 500, "Failed to filter")
        assert detail == "Failed to filter"

    def test_development_shows_exception(self, monkeypatch):
        monkeypatch.setattr("mailmate.utils.error_sanitizer.is_development", lambda: True)
        detail = get_safe_error_detail(RuntimeError("boom"), 500, "Failed to filter")
        assert detail == "Failed to filter (RuntimeError: boom)"

    def test_default_context(self, monkeypatch):
        monkeypatch.setattr("mailmate.utils.error_sanitizer.is_development", lambda: False)
        assert get_safe_error_detail(RuntimeError("x")) == GENERIC_MESSAGES[500]

    def test_client_error_is_sanitized(self):
        assert get_safe_error_detail(ValueError("bad count"), 400) == "bad count"
