"""
Pipeline facade.

MailPipeline is the single entry point the HTTP layer calls. It validates
request parameters, resolves accounts, runs the requested operation under a
wall-clock budget and returns response models.

Collaborators are injected so every operation can run against fakes:

    pipeline = MailPipeline(account_store, mail_source, classifier)
    result = await pipeline.filter_by_category(user_id, "urgent", 20)

Timeouts fail closed: when the budget expires in-flight work is cancelled,
partial matches are discarded, and RequestTimeoutError is raised once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Sequence
from typing import Any, TypeVar

from mailmate.accounts.resolver import AccountSessionResolver
from mailmate.classification.judgment import SemanticTask
from mailmate.classification.semantic import SemanticClassifier
from mailmate.classification.tasks import ClassificationTask
from mailmate.config import (
    DEFAULT_CATEGORIZED_COUNT,
    DEFAULT_FILTER_COUNT,
    DEFAULT_SMART_FILTER_COUNT,
    DEFAULT_TIMEOUT_SECONDS,
    FILTER_TIMEOUT_SECONDS,
    INSIGHTS_DEFAULT_DAYS,
    INSIGHTS_POOL_SIZE,
    LLM_MAX_WORKERS,
    MAX_BATCH_SIZE,
    MAX_DESIRED_COUNT,
    POOL_FLOOR,
)
from mailmate.errors import InvalidRequestError, RequestTimeoutError
from mailmate.gmail.client import MailSource
from mailmate.gmail.fetcher import CandidateFetcher
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id, log_event, time_block
from mailmate.pipeline.aggregator import aggregate
from mailmate.pipeline.categorizer import Categorizer, RequestCache
from mailmate.pipeline.insights import InsightsAnalyzer, window_query
from mailmate.pipeline.orchestrator import ClassificationOrchestrator
from mailmate.storage.accounts import AccountStore
from mailmate.storage.models import (
    AggregateResult,
    CategorizedInbox,
    InsightsReport,
    Message,
    ProcessedMessage,
    SmartFilterItem,
    SmartFilterResult,
)

logger = get_logger(__name__)

T = TypeVar("T")

AI_FAILURE_MESSAGE = "Failed to process with AI"

# Smart-filter kinds map onto backend tasks; anything else is a generic filter
SMART_FILTER_TASKS: dict[str, SemanticTask] = {
    "priority": SemanticTask.PRIORITY_SCORE,
    "categorize": SemanticTask.SMART_CATEGORIZE,
    "filter": SemanticTask.FILTER_INBOX,
}


def _require_count(value: Any, name: str, maximum: int = MAX_DESIRED_COUNT) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= maximum:
        raise InvalidRequestError(f"{name} must be an integer between 1 and {maximum}")
    return value


def _require_semantic_task(task_name: str | None) -> SemanticTask:
    try:
        return SemanticTask((task_name or "").strip())
    except ValueError:
        allowed = ", ".join(t.value for t in SemanticTask)
        raise InvalidRequestError(
            f"Unknown action {task_name!r}. Expected one of: {allowed}"
        ) from None


class MailPipeline:
    def __init__(
        self,
        account_store: AccountStore,
        mail_source: MailSource,
        classifier: SemanticClassifier,
        max_workers: int = LLM_MAX_WORKERS,
        pool_floor: int = POOL_FLOOR,
        filter_timeout: float = FILTER_TIMEOUT_SECONDS,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.resolver = AccountSessionResolver(account_store)
        self.source = mail_source
        self.fetcher = CandidateFetcher(mail_source)
        self.classifier = classifier
        self.categorizer = Categorizer(classifier, max_workers=max_workers)
        self.orchestrator = ClassificationOrchestrator(
            self.fetcher,
            classifier,
            categorizer=self.categorizer,
            max_workers=max_workers,
            pool_floor=pool_floor,
        )
        self.insights = InsightsAnalyzer(classifier, max_workers=max_workers)
        self.max_workers = max_workers
        self.filter_timeout = filter_timeout
        self.default_timeout = default_timeout

    async def _within_budget(
        self, operation: str, work: Coroutine[Any, Any, T], budget: float
    ) -> T:
        """
        Run ``work`` under a wall-clock budget.

        Raises:
            RequestTimeoutError: budget expired (in-flight work is cancelled)
        """
        try:
            with time_block(f"pipeline.{operation}.latency"):
                return await asyncio.wait_for(work, timeout=budget)
        except asyncio.TimeoutError:
            counter(f"pipeline.{operation}.timeout")
            log_event("pipeline.timeout", operation=operation, budget_seconds=budget)
            raise RequestTimeoutError(operation, budget) from None

    # ------------------------------------------------------------------
    # Multi-account
    # ------------------------------------------------------------------

    async def filter_by_category(
        self,
        user_id: str,
        task_type: ClassificationTask | str | None,
        desired_count: int = DEFAULT_FILTER_COUNT,
    ) -> AggregateResult:
        """
        Most recent messages across all of the user's accounts that match ``task_type``.

        Raises:
            InvalidRequestError: unknown task type or out-of-range count
            RequestTimeoutError: FILTER_TIMEOUT_SECONDS exceeded
        """
        task = ClassificationTask.parse(task_type)
        _require_count(desired_count, "maxResults")
        return await self._within_budget(
            "filter_by_category",
            self._filter_by_category(user_id, task, desired_count),
            self.filter_timeout,
        )

    async def _filter_by_category(
        self, user_id: str, task: ClassificationTask, desired_count: int
    ) -> AggregateResult:
        resolved = await self.resolver.resolve_accounts(user_id)
        if not resolved:
            return AggregateResult()

        matches = await self.orchestrator.run(task, resolved, desired_count, user_id)
        result = aggregate(matches, desired_count)
        log_event(
            "pipeline.filter_complete",
            user=hash_id(user_id),
            task=task.value,
            total_found=result.total_found,
            returned=len(result.results),
        )
        return result

    # ------------------------------------------------------------------
    # Single account
    # ------------------------------------------------------------------

    async def smart_filter(
        self,
        user_id: str,
        account_id: str,
        filter_kind: str | None,
        desired_count: int = DEFAULT_SMART_FILTER_COUNT,
    ) -> SmartFilterResult:
        """
        Run one semantic task over the account's most recent messages.

        Every listed message yields an item; a failed analysis carries
        ``error`` instead of an analysis.
        """
        _require_count(desired_count, "maxResults")
        kind = (filter_kind or "").strip().lower()
        task = SMART_FILTER_TASKS.get(kind, SemanticTask.FILTER_INBOX)
        return await self._within_budget(
            "smart_filter",
            self._smart_filter(user_id, account_id, task, desired_count),
            self.default_timeout,
        )

    async def _smart_filter(
        self, user_id: str, account_id: str, task: SemanticTask, desired_count: int
    ) -> SmartFilterResult:
        _, credentials = await self.resolver.resolve_account(user_id, account_id)
        pool = await self.fetcher.list_candidates(credentials, desired_count)
        semaphore = asyncio.Semaphore(self.max_workers)

        async def analyze(summary: Message) -> SmartFilterItem:
            async with semaphore:
                try:
                    full = await self.fetcher.fetch_full(credentials, summary.id)
                    judgment = await self.classifier.classify(full, task, user_id=user_id)
                except Exception as e:
                    logger.warning(
                        "Smart filter failed for message %s: %s",
                        hash_id(summary.id),
                        type(e).__name__,
                    )
                    counter("pipeline.smart_filter.message_failed")
                    return SmartFilterItem(message=summary, error=AI_FAILURE_MESSAGE)
            return SmartFilterItem(message=summary, analysis=judgment.as_dict())

        items = await asyncio.gather(*(analyze(summary) for summary in pool))
        return SmartFilterResult(results=list(items))

    async def get_insights(
        self,
        user_id: str,
        account_id: str,
        window_days: int = INSIGHTS_DEFAULT_DAYS,
    ) -> InsightsReport:
        """
        Analytics over the account's mail from the last ``window_days`` days.

        Raises:
            InvalidRequestError: window_days < 1
            AccountNotFoundError: unknown account
        """
        if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days < 1:
            raise InvalidRequestError("days must be a positive integer")
        return await self._within_budget(
            "insights",
            self._get_insights(user_id, account_id, window_days),
            self.default_timeout,
        )

    async def _get_insights(
        self, user_id: str, account_id: str, window_days: int
    ) -> InsightsReport:
        _, credentials = await self.resolver.resolve_account(user_id, account_id)
        pool = await self.fetcher.list_candidates(
            credentials, INSIGHTS_POOL_SIZE, scope=window_query(window_days)
        )

        async def fetch_full(message_id: str) -> Message:
            return await self.fetcher.fetch_full(credentials, message_id)

        return await self.insights.analyze(pool, fetch_full, user_id)

    async def get_categorized(
        self,
        user_id: str,
        account_id: str,
        max_results: int = DEFAULT_CATEGORIZED_COUNT,
    ) -> CategorizedInbox:
        _require_count(max_results, "maxResults")
        return await self._within_budget(
            "categorized",
            self._get_categorized(user_id, account_id, max_results),
            self.default_timeout,
        )

    async def _get_categorized(
        self, user_id: str, account_id: str, max_results: int
    ) -> CategorizedInbox:
        account, credentials = await self.resolver.resolve_account(user_id, account_id)
        pool = await self.fetcher.list_candidates(credentials, max_results)
        buckets = await self.categorizer.categorize(account.id, pool, user_id, RequestCache())
        return CategorizedInbox(account_id=account.id, categories=buckets, total=len(pool))

    async def process_message(
        self,
        user_id: str,
        account_id: str,
        message_id: str,
        task_name: str,
    ) -> ProcessedMessage:
        """
        Run one semantic task on one message.

        A classifier failure is reported on the returned item. A failure to
        fetch the message propagates.
        """
        task = _require_semantic_task(task_name)
        return await self._within_budget(
            "process",
            self._process_message(user_id, account_id, message_id, task),
            self.default_timeout,
        )

    async def _process_message(
        self, user_id: str, account_id: str, message_id: str, task: SemanticTask
    ) -> ProcessedMessage:
        _, credentials = await self.resolver.resolve_account(user_id, account_id)
        message = await self.fetcher.fetch_full(credentials, message_id)
        return await self._classify_to_item(message, task, user_id)

    async def batch_process(
        self,
        user_id: str,
        account_id: str,
        message_ids: Sequence[str],
        task_name: str,
    ) -> list[ProcessedMessage]:
        """
        Run one semantic task on each of ``message_ids``, in order.

        Raises:
            InvalidRequestError: empty or oversized id list, or unknown action
        """
        if not message_ids:
            raise InvalidRequestError("emailIds must be a non-empty list")
        if len(message_ids) > MAX_BATCH_SIZE:
            raise InvalidRequestError(f"emailIds may contain at most {MAX_BATCH_SIZE} ids")
        task = _require_semantic_task(task_name)
        return await self._within_budget(
            "batch_process",
            self._batch_process(user_id, account_id, list(message_ids), task),
            self.default_timeout,
        )

    async def _batch_process(
        self, user_id: str, account_id: str, message_ids: list[str], task: SemanticTask
    ) -> list[ProcessedMessage]:
        _, credentials = await self.resolver.resolve_account(user_id, account_id)
        semaphore = asyncio.Semaphore(self.max_workers)

        async def process(message_id: str) -> ProcessedMessage:
            async with semaphore:
                try:
                    message = await self.fetcher.fetch_full(credentials, message_id)
                except Exception as e:
                    logger.warning(
                        "Batch fetch failed for message %s: %s",
                        hash_id(message_id),
                        type(e).__name__,
                    )
                    counter("pipeline.batch.message_failed")
                    return ProcessedMessage(
                        message_id=message_id, task_name=task.value, error=AI_FAILURE_MESSAGE
                    )
                return await self._classify_to_item(message, task, user_id)

        return list(await asyncio.gather(*(process(mid) for mid in message_ids)))

    async def _classify_to_item(
        self, message: Message, task: SemanticTask, user_id: str
    ) -> ProcessedMessage:
        try:
            judgment = await self.classifier.classify(message, task, user_id=user_id)
        except Exception as e:
            logger.warning(
                "Processing failed for message %s: %s", hash_id(message.id), type(e).__name__
            )
            counter("pipeline.process.message_failed")
            return ProcessedMessage(
                message_id=message.id, task_name=task.value, error=AI_FAILURE_MESSAGE
            )
        return ProcessedMessage(
            message_id=message.id, task_name=task.value, result=judgment.as_dict()
        )

    async def reply(
        self,
        user_id: str,
        account_id: str,
        message_id: str,
        content: str,
    ) -> dict[str, Any]:
        """
        Send ``content`` as a reply in the message's thread.

        Raises:
            InvalidRequestError: empty content
            MailSourceError: the send failed
        """
        if not content or not content.strip():
            raise InvalidRequestError("Reply content is required")
        return await self._within_budget(
            "reply",
            self._reply(user_id, account_id, message_id, content),
            self.default_timeout,
        )

    async def _reply(
        self, user_id: str, account_id: str, message_id: str, content: str
    ) -> dict[str, Any]:
        _, credentials = await self.resolver.resolve_account(user_id, account_id)
        ack = await self.source.send_reply(credentials, message_id, content)
        counter("pipeline.reply.sent")
        return ack
