"""Inbox insights built from a small sample of recent mail.

Each sampled message gets a priority score and a category from the semantic
classifier. A message where either call fails is left out of every
histogram, but still counts toward ``total_emails``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from mailmate.classification.judgment import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY_SCORE,
    CategoryJudgment,
    PriorityJudgment,
    SemanticTask,
)
from mailmate.classification.semantic import SemanticClassifier
from mailmate.config import (
    INSIGHTS_SAMPLE_SIZE,
    LLM_MAX_WORKERS,
    MEDIUM_PRIORITY_THRESHOLD,
    URGENT_PRIORITY_THRESHOLD,
)
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id
from mailmate.storage.models import InsightsReport, Message
from mailmate.utils.email import sender_display_name

logger = get_logger(__name__)

FullFetch = Callable[[str], Awaitable[Message]]


def window_query(window_days: int, today: date | None = None) -> str:
    """Gmail search clause for mail received in the last ``window_days`` days."""
    start = (today or date.today()) - timedelta(days=window_days)
    return f"after:{start.strftime('%Y/%m/%d')}"


def priority_level(score: int) -> str:
    if score >= URGENT_PRIORITY_THRESHOLD:
        return "high"
    if score >= MEDIUM_PRIORITY_THRESHOLD:
        return "medium"
    return "low"


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def most_common(histogram: dict[str, int]) -> str | None:
    """Key with the highest count; ties go to the key inserted first."""
    best: str | None = None
    for key, count in histogram.items():
        if best is None or count > histogram[best]:
            best = key
    return best


def build_recommendations(urgent_count: int, categories: dict[str, int]) -> list[str]:
    recommendations: list[str] = []
    if urgent_count > 0:
        recommendations.append(
            f"You have {urgent_count} urgent emails that need immediate attention."
        )
    top_category = most_common(categories)
    if top_category is not None:
        recommendations.append(f"Most of your emails are {top_category}-related.")
    return recommendations


class InsightsAnalyzer:
    def __init__(
        self,
        classifier: SemanticClassifier,
        sample_size: int = INSIGHTS_SAMPLE_SIZE,
        max_workers: int = LLM_MAX_WORKERS,
    ):
        self.classifier = classifier
        self.sample_size = sample_size
        self.max_workers = max_workers

    async def _analyze_one(
        self, summary: Message, fetch_full: FullFetch, user_id: str
    ) -> tuple[int, str] | None:
        try:
            full = await fetch_full(summary.id)
            priority = await self.classifier.classify(
                full, SemanticTask.PRIORITY_SCORE, user_id=user_id
            )
            category = await self.classifier.classify(
                full, SemanticTask.SMART_CATEGORIZE, user_id=user_id
            )
        except Exception as e:
            logger.warning(
                "Skipping message %s in insights: %s", hash_id(summary.id), type(e).__name__
            )
            counter("insights.message_failed")
            return None

        score = (
            priority.priority_score
            if isinstance(priority, PriorityJudgment)
            else DEFAULT_PRIORITY_SCORE
        )
        label = (
            category.primary_category
            if isinstance(category, CategoryJudgment)
            else DEFAULT_CATEGORY
        )
        return score, label

    async def analyze(
        self,
        messages: Sequence[Message],
        fetch_full: FullFetch,
        user_id: str = "default",
    ) -> InsightsReport:
        """
        Build the report from the first ``sample_size`` of ``messages``.

        Args:
            messages: the filtered pool (summaries), most recent first
            fetch_full: coroutine returning the complete message for an id
        """
        sample = list(messages[: self.sample_size])
        semaphore = asyncio.Semaphore(self.max_workers)

        async def bounded(summary: Message) -> tuple[int, str] | None:
            async with semaphore:
                return await self._analyze_one(summary, fetch_full, user_id)

        outcomes = await asyncio.gather(*(bounded(m) for m in sample))

        categories: dict[str, int] = {}
        priorities: dict[str, int] = {}
        senders: dict[str, int] = {}
        total_priority = 0
        analyzed = 0
        urgent = 0

        for summary, outcome in zip(sample, outcomes):
            if outcome is None:
                continue
            score, label = outcome
            analyzed += 1
            total_priority += score
            categories[label] = categories.get(label, 0) + 1
            level = priority_level(score)
            priorities[level] = priorities.get(level, 0) + 1
            sender = sender_display_name(summary.sender)
            senders[sender] = senders.get(sender, 0) + 1
            if score >= URGENT_PRIORITY_THRESHOLD:
                urgent += 1

        average = round_half_up(total_priority / analyzed) if analyzed else 0
        return InsightsReport(
            total_emails=len(messages),
            analyzed=analyzed,
            categories=categories,
            priority_distribution=priorities,
            top_senders=senders,
            average_priority=average,
            urgent_count=urgent,
            recommendations=build_recommendations(urgent, categories),
        )
