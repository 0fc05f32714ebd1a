"""Exception hierarchy for the MailMate pipeline.

Only request-level errors (bad input, unknown account on single-account
operations, timeout) reach callers. Classifier and per-account failures are
absorbed inside the pipeline.
"""

from __future__ import annotations


class MailMateError(Exception):
    """Base class for all pipeline errors."""


class InvalidRequestError(MailMateError):
    """Raised when request parameters are malformed."""


class AccountNotFoundError(MailMateError):
    """Raised when a single-account operation names an unknown or unlinked account."""

    def __init__(self, account_id: str):
        super().__init__(f"Mail account not found: {account_id}")
        self.account_id = account_id


class RequestTimeoutError(MailMateError):
    """Raised once when an operation exceeds its wall-clock budget."""

    def __init__(self, operation: str, budget_seconds: float):
        super().__init__(f"{operation} exceeded its {budget_seconds:.0f}s budget")
        self.operation = operation
        self.budget_seconds = budget_seconds


class MailSourceError(MailMateError):
    """Raised by mail-source adapters when a list/detail/send call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ClassifierError(MailMateError):
    """Base class for semantic classifier failures (treated as non-match)."""


class ClassifierUnavailable(ClassifierError):
    """Backend call failed (network, backend error, model init)."""


class MalformedResponse(ClassifierError):
    """Backend answered with something that is not a valid judgment."""


class QuotaExceeded(ClassifierError):
    """Call budget exhausted or backend capacity rejection."""
