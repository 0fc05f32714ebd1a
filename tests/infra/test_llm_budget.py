"""Tests for the daily LLM call budget."""

from __future__ import annotations

from datetime import date

from mailmate.infrastructure.llm_budget import LLMBudget
from mailmate.observability.telemetry import get_counter


def test_user_limit():
    budget = LLMBudget(user_limit=2, global_limit=100)
    budget.record_call("u1")
    budget.record_call("u1")

    status = budget.check("u1")
    assert status.is_allowed is False
    assert "User daily limit" in status.reason
    assert budget.check("u2").is_allowed is True


def test_global_limit():
    budget = LLMBudget(user_limit=10, global_limit=3)
    for user in ("a", "b", "c"):
        budget.record_call(user)

    status = budget.check("d")
    assert status.is_allowed is False
    assert "Global daily limit" in status.reason
    assert status.global_calls_today == 3


def test_counts_reset_on_new_day():
    days = iter([date(2024, 1, 1), date(2024, 1, 1), date(2024, 1, 2)])
    budget = LLMBudget(user_limit=1, global_limit=10, today=lambda: next(days))

    budget.record_call("u1")
    status = budget.check("u1")

    assert status.is_allowed is True
    assert status.user_calls_today == 0


def test_record_call_increments_counter():
    budget = LLMBudget(user_limit=5, global_limit=5)
    budget.record_call("u1", call_type="classifier")
    assert get_counter("llm.budget.call.classifier") == 1


def test_usage_report():
    budget = LLMBudget(user_limit=5, global_limit=50, today=lambda: date(2024, 3, 1))
    budget.record_call("u1")
    budget.record_call("u2")

    report = budget.usage_report()
    assert report["date"] == "2024-03-01"
    assert report["total_calls"] == 2
    assert report["unique_users"] == 2
    assert report["limits"] == {"user_daily": 5, "global_daily": 50}
