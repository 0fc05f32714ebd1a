"""Categorized-bucket path.

Groups an account's messages into the fixed inbox buckets using the semantic
classifier alone (``smart_categorize``, one call per message). Judgments are
cached for the lifetime of one request so later steps of the same request
never classify a message twice.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from cachetools import LRUCache

from mailmate.classification.judgment import CategoryJudgment, SemanticTask
from mailmate.classification.semantic import SemanticClassifier
from mailmate.config import LLM_MAX_WORKERS
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id
from mailmate.storage.models import Message

logger = get_logger(__name__)

WORK_BUCKET = "Work & Projects"
FINANCIAL_BUCKET = "Financial & Bills"
SOCIAL_BUCKET = "Social & Personal"
SHOPPING_BUCKET = "Shopping & Deals"
NEWSLETTER_BUCKET = "Newsletters & Updates"
OTHER_BUCKET = "Other"

BUCKETS: tuple[str, ...] = (
    WORK_BUCKET,
    FINANCIAL_BUCKET,
    SOCIAL_BUCKET,
    SHOPPING_BUCKET,
    NEWSLETTER_BUCKET,
    OTHER_BUCKET,
)

CATEGORY_BUCKETS: dict[str, str] = {
    "work": WORK_BUCKET,
    "financial": FINANCIAL_BUCKET,
    "finance": FINANCIAL_BUCKET,
    "social": SOCIAL_BUCKET,
    "personal": SOCIAL_BUCKET,
    "shopping": SHOPPING_BUCKET,
    "promotions": SHOPPING_BUCKET,
    "newsletter": NEWSLETTER_BUCKET,
    "updates": NEWSLETTER_BUCKET,
}

# Upper bound on judgments held by one request
REQUEST_CACHE_SIZE = 2048


def bucket_for(judgment: CategoryJudgment | None) -> str:
    if judgment is None:
        return OTHER_BUCKET
    return CATEGORY_BUCKETS.get(judgment.primary_category, OTHER_BUCKET)


class RequestCache:
    """Per-request memo of category judgments keyed by (account id, message id).

    A ``None`` entry records a failed categorization so it is not retried
    within the same request.
    """

    def __init__(self, maxsize: int = REQUEST_CACHE_SIZE):
        self._entries: LRUCache[tuple[str, str], CategoryJudgment | None] = LRUCache(
            maxsize=maxsize
        )

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, account_id: str, message_id: str) -> CategoryJudgment | None:
        return self._entries.get((account_id, message_id))

    def put(self, account_id: str, message_id: str, judgment: CategoryJudgment | None) -> None:
        self._entries[(account_id, message_id)] = judgment


class Categorizer:
    def __init__(self, classifier: SemanticClassifier, max_workers: int = LLM_MAX_WORKERS):
        self.classifier = classifier
        self.max_workers = max_workers

    async def categorize(
        self,
        account_id: str,
        messages: Sequence[Message],
        user_id: str = "default",
        cache: RequestCache | None = None,
    ) -> dict[str, list[Message]]:
        """
        Group ``messages`` into BUCKETS, preserving encounter order per bucket.

        Every bucket key is present in the result, possibly empty. A message
        whose categorization fails lands in "Other".

        Side Effects:
            - One smart_categorize call per message not already in ``cache``
        """
        cache = cache if cache is not None else RequestCache()
        semaphore = asyncio.Semaphore(self.max_workers)

        async def judge(message: Message) -> CategoryJudgment | None:
            if (account_id, message.id) in cache:
                counter("categorizer.cache_hit")
                return cache.get(account_id, message.id)
            async with semaphore:
                judgment = await self._categorize_one(message, user_id)
            cache.put(account_id, message.id, judgment)
            return judgment

        judgments = await asyncio.gather(*(judge(m) for m in messages))

        buckets: dict[str, list[Message]] = {name: [] for name in BUCKETS}
        for message, judgment in zip(messages, judgments):
            buckets[bucket_for(judgment)].append(message)
        return buckets

    async def _categorize_one(self, message: Message, user_id: str) -> CategoryJudgment | None:
        try:
            judgment = await self.classifier.classify(
                message, SemanticTask.SMART_CATEGORIZE, user_id=user_id
            )
        except Exception as e:
            logger.warning(
                "Categorization failed for message %s: %s", hash_id(message.id), type(e).__name__
            )
            counter("categorizer.failed")
            return None

        if not isinstance(judgment, CategoryJudgment):
            counter("categorizer.failed")
            return None
        return judgment
