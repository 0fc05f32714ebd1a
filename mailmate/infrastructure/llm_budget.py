"""
LLM Budget Tracking for the semantic classifier.

Tracks LLM calls per user and globally per calendar day to prevent cost
overruns. Counts live in process memory and reset at midnight (local date).

Budget limits (configurable via env):
- Per user: MAILMATE_LLM_USER_DAILY_LIMIT calls per day
- Global: MAILMATE_LLM_GLOBAL_DAILY_LIMIT calls per day
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Callable
from datetime import date
from typing import NamedTuple

from mailmate.config import LLM_GLOBAL_DAILY_LIMIT, LLM_USER_DAILY_LIMIT
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter

logger = get_logger(__name__)


class BudgetStatus(NamedTuple):
    """Current budget status for a user."""

    user_calls_today: int
    user_limit: int
    global_calls_today: int
    global_limit: int
    is_allowed: bool
    reason: str | None


class LLMBudget:
    def __init__(
        self,
        user_limit: int = LLM_USER_DAILY_LIMIT,
        global_limit: int = LLM_GLOBAL_DAILY_LIMIT,
        today: Callable[[], date] = date.today,
    ):
        self.user_limit = user_limit
        self.global_limit = global_limit
        self._today = today
        self._lock = threading.Lock()
        self._day = today()
        self._user_calls: Counter[str] = Counter()

    def _roll_day(self) -> None:
        current = self._today()
        if current != self._day:
            logger.info("LLM budget day rolled over (%s -> %s)", self._day, current)
            self._day = current
            self._user_calls.clear()

    def check(self, user_id: str) -> BudgetStatus:
        """Check if user is within budget for LLM calls."""
        with self._lock:
            self._roll_day()
            user_calls = self._user_calls[user_id]
            global_calls = sum(self._user_calls.values())

        reason = None
        if user_calls >= self.user_limit:
            reason = f"User daily limit exceeded ({user_calls}/{self.user_limit})"
        elif global_calls >= self.global_limit:
            reason = f"Global daily limit exceeded ({global_calls}/{self.global_limit})"

        return BudgetStatus(
            user_calls_today=user_calls,
            user_limit=self.user_limit,
            global_calls_today=global_calls,
            global_limit=self.global_limit,
            is_allowed=reason is None,
            reason=reason,
        )

    def record_call(self, user_id: str, call_type: str = "classifier") -> None:
        """
        Record an LLM call for budget tracking.

        Side Effects:
            - Increments in-memory usage for today
            - Increments telemetry counter llm.budget.call.<call_type>
        """
        with self._lock:
            self._roll_day()
            self._user_calls[user_id] += 1

        counter(f"llm.budget.call.{call_type}")
        logger.debug("Recorded LLM call: type=%s", call_type)

    def usage_report(self) -> dict:
        with self._lock:
            self._roll_day()
            return {
                "date": self._day.isoformat(),
                "total_calls": sum(self._user_calls.values()),
                "unique_users": len(self._user_calls),
                "limits": {"user_daily": self.user_limit, "global_daily": self.global_limit},
            }
