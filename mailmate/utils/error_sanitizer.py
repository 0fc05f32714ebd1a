"""
Error message sanitization utility.

Prevents information leakage by sanitizing error messages before returning
them to clients. Full detail is only exposed when MAILMATE_ENV=development.
"""

from __future__ import annotations

import re

from mailmate.config import is_development
from mailmate.observability.logging import get_logger

logger = get_logger(__name__)

# Patterns that might leak sensitive information
SENSITIVE_PATTERNS = [
    # File paths
    r"/[^\s]+\.py",
    r"[A-Za-z]:\\[^\s]+",
    # Stack trace indicators
    r"Traceback \(most recent call last\)",
    r"File \".*\"",
    r"line \d+",
    # OAuth / API material
    r"ya29\.[A-Za-z0-9._-]+",
    r"[A-Za-z0-9_-]{32,}",
    r"Bearer [A-Za-z0-9._-]+",
    r"access_token|refresh_token|client_secret",
    # Internal module names
    r"mailmate\.[a-z_.]+",
    r"googleapiclient|google\.api_core",
]

GENERIC_MESSAGES = {
    400: "Invalid request. Please check your input and try again.",
    401: "Authentication required.",
    404: "Resource not found.",
    408: "Request timed out. Please try again.",
    422: "Invalid data format.",
    429: "Too many requests. Please try again later.",
    500: "An internal error occurred. Please try again later.",
    503: "Service temporarily unavailable.",
}


def sanitize_error_message(message: str, status_code: int = 500) -> str:
    """
    Sanitize an error message to prevent information leakage.

    Client errors (4xx) keep short, plain messages so callers get an
    actionable reason. Everything else becomes the generic message.
    """
    generic = GENERIC_MESSAGES.get(status_code, "An error occurred.")
    if not message:
        return generic

    for pattern in SENSITIVE_PATTERNS:
        if re.search(pattern, message, re.IGNORECASE):
            logger.warning("Sanitized sensitive error pattern: %s", pattern)
            return generic

    if (
        400 <= status_code < 500
        and len(message) < 120
        and not any(c in message for c in ["{", "}", "[", "]", "\n"])
    ):
        return message

    return generic


def get_safe_error_detail(
    error: Exception,
    status_code: int = 500,
    context: str | None = None,
) -> str:
    """
    Safe error detail string for HTTP responses.

    Args:
        error: The exception that occurred
        status_code: HTTP status code
        context: Base message for 5xx responses (e.g., "Failed to filter emails")
    """
    logger.error("Error (status=%d): %s - %s", status_code, type(error).__name__, str(error))

    if status_code >= 500:
        if is_development():
            # Development: expose the exception type and message for debugging
            return f"{context or GENERIC_MESSAGES[500]} ({type(error).__name__}: {error})"
        return context or GENERIC_MESSAGES[500]

    return sanitize_error_message(str(error), status_code)
