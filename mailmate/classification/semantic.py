"""
Semantic classifier gateway.

Adapter between the pipeline and the external model backend. Given a message
and a backend task name it returns a typed Judgment, or raises one of the
ClassifierError subclasses. The orchestrator treats every ClassifierError the
same way: the message is a non-match for that task.

Cost: one Gemini Flash call per invocation (~$0.0001).
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from google.api_core.exceptions import ResourceExhausted, TooManyRequests

from mailmate.classification.judgment import Judgment, SemanticTask, parse_judgment_text
from mailmate.config import GEMINI_MODEL, LLM_TIMEOUT_SECONDS
from mailmate.errors import ClassifierUnavailable, MalformedResponse, QuotaExceeded
from mailmate.infrastructure.llm_budget import LLMBudget
from mailmate.llm.gemini import get_gemini_model
from mailmate.llm.prompts import build_prompt
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id, log_event, time_block
from mailmate.storage.models import Message

logger = get_logger(__name__)


class SemanticClassifier(Protocol):
    async def classify(
        self,
        message: Message,
        task_name: SemanticTask | str,
        user_id: str = "default",
    ) -> Judgment: ...


def _is_quota_error(error: Exception) -> bool:
    return isinstance(error, (ResourceExhausted, TooManyRequests))


class GeminiSemanticClassifier:
    """
    Gemini-backed semantic classifier.

    The model is resolved lazily through ``model_factory`` so the gateway can be
    constructed without cloud credentials (tests inject a stub model).
    """

    def __init__(
        self,
        budget: LLMBudget | None = None,
        model_factory=get_gemini_model,
        timeout_seconds: float = LLM_TIMEOUT_SECONDS,
    ):
        self.budget = budget or LLMBudget()
        self._model_factory = model_factory
        self.timeout_seconds = timeout_seconds

    async def classify(
        self,
        message: Message,
        task_name: SemanticTask | str,
        user_id: str = "default",
    ) -> Judgment:
        """
        Ask the model for a structured judgment.

        Raises:
            QuotaExceeded: daily budget exhausted or backend capacity rejection
            ClassifierUnavailable: model init or call failure
            MalformedResponse: response is not a valid judgment for ``task_name``

        Side Effects:
            - Calls Gemini API
            - Records the call against the LLM budget
            - Increments telemetry counters
        """
        try:
            task = SemanticTask(task_name)
        except ValueError:
            raise MalformedResponse(f"unsupported classifier task: {task_name!r}") from None

        status = self.budget.check(user_id)
        if not status.is_allowed:
            counter("classifier.quota_rejected")
            raise QuotaExceeded(status.reason or "LLM budget exhausted")

        prompt = build_prompt(
            task,
            subject=message.subject,
            sender=message.sender,
            body=message.body if message.body is not None else message.snippet,
        )

        try:
            model = self._model_factory()
        except Exception as e:
            counter("classifier.unavailable")
            raise ClassifierUnavailable(f"model unavailable: {e}") from e

        self.budget.record_call(user_id)
        try:
            with time_block("classifier.latency"):
                response = await asyncio.wait_for(
                    model.generate_content_async(prompt),
                    timeout=self.timeout_seconds,
                )
        except Exception as e:
            if _is_quota_error(e):
                counter("classifier.quota_rejected")
                raise QuotaExceeded(f"backend capacity rejection: {e}") from e
            counter("classifier.unavailable")
            log_event(
                "classifier.error",
                task=task.value,
                message_id_hash=hash_id(message.id),
                error=type(e).__name__,
                model=GEMINI_MODEL,
            )
            raise ClassifierUnavailable(f"{task.value} call failed: {type(e).__name__}") from e

        try:
            text = response.text
        except (AttributeError, ValueError) as e:
            # .text raises ValueError when the candidate was blocked or empty
            counter("classifier.parse_error")
            raise MalformedResponse(f"{task.value}: empty response") from e

        try:
            judgment = parse_judgment_text(task, text)
        except MalformedResponse:
            counter("classifier.parse_error")
            raise

        counter("classifier.success")
        logger.debug("Classifier %s ok for message %s", task.value, hash_id(message.id))
        return judgment
