"""Tests for the Gemini semantic classifier gateway (stubbed model)."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from google.api_core.exceptions import ResourceExhausted

from mailmate.classification.judgment import CategoryJudgment, PriorityJudgment
from mailmate.classification.semantic import GeminiSemanticClassifier
from mailmate.errors import ClassifierUnavailable, MalformedResponse, QuotaExceeded
from mailmate.infrastructure.llm_budget import LLMBudget
from mailmate.observability.telemetry import get_counter


class StubModel:
    def __init__(self, text=None, error=None, delay=0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


class BlockedResponse:
    @property
    def text(self):
        raise ValueError("Response candidate was blocked")


def _gateway(model, budget=None, timeout=5.0):
    return GeminiSemanticClassifier(
        budget=budget or LLMBudget(user_limit=100, global_limit=100),
        model_factory=lambda: model,
        timeout_seconds=timeout,
    )


def test_returns_typed_judgment(make_message):
    model = StubModel(text='{"priority_score": 9, "reasoning": "server down"}')
    judgment = asyncio.run(
        _gateway(model).classify(make_message(subject="Prod outage"), "priority_score")
    )

    assert isinstance(judgment, PriorityJudgment)
    assert judgment.priority_score == 9
    assert "Prod outage" in model.prompts[0]
    assert get_counter("classifier.success") == 1


def test_summary_falls_back_to_snippet(make_message):
    model = StubModel(text='{"primary_category": "work"}')
    message = make_message(body=None, snippet="see the attached draft")

    judgment = asyncio.run(_gateway(model).classify(message, "smart_categorize"))

    assert isinstance(judgment, CategoryJudgment)
    assert "see the attached draft" in model.prompts[0]


def test_budget_exhaustion_skips_backend(make_message):
    model = StubModel(text='{"priority_score": 9}')
    budget = LLMBudget(user_limit=1, global_limit=100)
    gateway = _gateway(model, budget=budget)

    asyncio.run(gateway.classify(make_message(), "priority_score", user_id="u"))
    with pytest.raises(QuotaExceeded):
        asyncio.run(gateway.classify(make_message(), "priority_score", user_id="u"))

    assert len(model.prompts) == 1
    assert get_counter("classifier.quota_rejected") == 1


def test_capacity_rejection_is_quota(make_message):
    model = StubModel(error=ResourceExhausted("quota"))
    with pytest.raises(QuotaExceeded):
        asyncio.run(_gateway(model).classify(make_message(), "priority_score"))


def test_backend_error_is_unavailable(make_message):
    model = StubModel(error=ConnectionError("reset by peer"))
    with pytest.raises(ClassifierUnavailable):
        asyncio.run(_gateway(model).classify(make_message(), "filter_inbox"))
    assert get_counter("classifier.unavailable") == 1


def test_slow_backend_times_out(make_message):
    model = StubModel(text='{"priority_score": 9}', delay=1.0)
    with pytest.raises(ClassifierUnavailable):
        asyncio.run(_gateway(model, timeout=0.01).classify(make_message(), "priority_score"))


def test_model_init_failure_is_unavailable(make_message):
    def broken_factory():
        raise RuntimeError("GOOGLE_CLOUD_PROJECT not set")

    gateway = GeminiSemanticClassifier(model_factory=broken_factory)
    with pytest.raises(ClassifierUnavailable):
        asyncio.run(gateway.classify(make_message(), "priority_score"))


@pytest.mark.parametrize("text", ["I think this is urgent", '["priority_score", 9]'])
def test_bad_response_is_malformed(make_message, text):
    with pytest.raises(MalformedResponse):
        asyncio.run(_gateway(StubModel(text=text)).classify(make_message(), "priority_score"))
    assert get_counter("classifier.parse_error") == 1


def test_blocked_response_is_malformed(make_message):
    class BlockingModel:
        async def generate_content_async(self, prompt):
            return BlockedResponse()

    with pytest.raises(MalformedResponse):
        asyncio.run(_gateway(BlockingModel()).classify(make_message(), "priority_score"))


def test_unknown_task_is_malformed(make_message):
    with pytest.raises(MalformedResponse):
        asyncio.run(_gateway(StubModel(text="{}")).classify(make_message(), "summarize"))
