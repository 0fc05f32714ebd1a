"""
Classification orchestrator.

Drives the two-tier strategy for one task across resolved accounts:

    per account (concurrently, failure-isolated)
      -> candidate pool
      -> per message: keyword heuristic, semantic fallback only when the
         heuristic is inconclusive
      -> per-account contribution (list of AccountMatch)

Financial requests take the categorized-bucket path instead: the pool is
keyword-filtered on summary text, confirmed against the "Financial & Bills"
bucket, and falls back to the keyword hits alone when the bucket confirms
none. No per-message escalation happens for that task.

Each account returns its own contribution; the caller merges them. Nothing
mutable is shared between accounts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from mailmate.accounts.resolver import ResolvedAccount
from mailmate.classification.heuristics import heuristic_text, matches
from mailmate.classification.semantic import SemanticClassifier
from mailmate.classification.tasks import ClassificationTask, TaskProfile, get_profile
from mailmate.config import FINANCIAL_CATEGORIZED_POOL, LLM_MAX_WORKERS, POOL_FLOOR
from mailmate.gmail.fetcher import CandidateFetcher, effective_pool_size
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id, log_event, time_block
from mailmate.pipeline.categorizer import FINANCIAL_BUCKET, Categorizer, RequestCache
from mailmate.storage.models import (
    Account,
    AccountMatch,
    AccountRef,
    CredentialBundle,
    Message,
    Verdict,
    VerdictSource,
)

logger = get_logger(__name__)


class ClassificationOrchestrator:
    def __init__(
        self,
        fetcher: CandidateFetcher,
        classifier: SemanticClassifier,
        categorizer: Categorizer | None = None,
        max_workers: int = LLM_MAX_WORKERS,
        pool_floor: int = POOL_FLOOR,
    ):
        self.fetcher = fetcher
        self.classifier = classifier
        self.categorizer = categorizer or Categorizer(classifier, max_workers=max_workers)
        self.max_workers = max_workers
        self.pool_floor = pool_floor

    # ------------------------------------------------------------------
    # Single message
    # ------------------------------------------------------------------

    @staticmethod
    def heuristic_verdict(profile: TaskProfile, message: Message) -> Verdict:
        text = heuristic_text(message, use_body=profile.reads_full_body)
        return Verdict(matched=matches(profile.task, text), source=VerdictSource.HEURISTIC)

    async def classify_message(
        self,
        task: ClassificationTask | str,
        message: Message,
        user_id: str = "default",
    ) -> Verdict:
        """
        Decide whether ``message`` satisfies ``task``.

        A heuristic match returns immediately without a semantic call.

        Raises:
            ClassifierError: semantic call failed (callers treat it as a non-match)
        """
        profile = get_profile(task)
        verdict = self.heuristic_verdict(profile, message)
        if verdict.matched or profile.semantic_task is None:
            if verdict.matched:
                counter(f"orchestrator.{profile.task.value}.heuristic_match")
            return verdict

        judgment = await self.classifier.classify(message, profile.semantic_task, user_id=user_id)
        matched = profile.is_match(judgment)
        if matched:
            counter(f"orchestrator.{profile.task.value}.semantic_match")
        return Verdict(matched=matched, source=VerdictSource.SEMANTIC, judgment=judgment)

    # ------------------------------------------------------------------
    # One account
    # ------------------------------------------------------------------

    async def process_account(
        self,
        task: ClassificationTask | str,
        account: Account,
        credentials: CredentialBundle,
        desired_count: int,
        user_id: str = "default",
        cache: RequestCache | None = None,
    ) -> list[AccountMatch]:
        """
        Matches contributed by one account, in pool order.

        Raises:
            MailSourceError: the candidate listing failed (caller isolates the account)
        """
        profile = get_profile(task)
        ref = AccountRef.of(account)

        if profile.uses_categorized_bucket:
            found = await self._categorized_matches(
                profile, account, credentials, desired_count, user_id, cache
            )
        else:
            found = await self._escalating_matches(
                profile, credentials, desired_count, user_id
            )

        return [AccountMatch(message=message, account=ref) for message in found]

    async def _escalating_matches(
        self,
        profile: TaskProfile,
        credentials: CredentialBundle,
        desired_count: int,
        user_id: str,
    ) -> list[Message]:
        pool = await self.fetcher.list_candidates(
            credentials, effective_pool_size(desired_count, self.pool_floor)
        )
        semaphore = asyncio.Semaphore(self.max_workers)

        async def evaluate(summary: Message) -> Message | None:
            async with semaphore:
                try:
                    full = await self.fetcher.fetch_full(credentials, summary.id)
                    verdict = await self.classify_message(profile.task, full, user_id)
                except Exception as e:
                    # Drops this message only; siblings keep running
                    logger.warning(
                        "Dropping message %s for %s: %s",
                        hash_id(summary.id),
                        profile.task.value,
                        type(e).__name__,
                    )
                    counter("orchestrator.message_failed")
                    return None
            return full if verdict.matched else None

        outcomes = await asyncio.gather(*(evaluate(summary) for summary in pool))
        return [message for message in outcomes if message is not None]

    async def _categorized_matches(
        self,
        profile: TaskProfile,
        account: Account,
        credentials: CredentialBundle,
        desired_count: int,
        user_id: str,
        cache: RequestCache | None,
    ) -> list[Message]:
        pool_size = max(
            effective_pool_size(desired_count, self.pool_floor), FINANCIAL_CATEGORIZED_POOL
        )
        pool = await self.fetcher.list_candidates(credentials, pool_size)
        keyword_hits = [m for m in pool if self.heuristic_verdict(profile, m).matched]
        if not keyword_hits:
            return []

        buckets = await self.categorizer.categorize(account.id, keyword_hits, user_id, cache)
        confirmed = buckets[FINANCIAL_BUCKET]
        if confirmed:
            return confirmed

        # Bucket confirmed nothing: keyword scan of the same pool, no second fetch
        counter(f"orchestrator.{profile.task.value}.bucket_fallback")
        return keyword_hits

    # ------------------------------------------------------------------
    # All accounts
    # ------------------------------------------------------------------

    async def run(
        self,
        task: ClassificationTask | str,
        resolved: Sequence[ResolvedAccount],
        desired_count: int,
        user_id: str = "default",
    ) -> list[AccountMatch]:
        """
        Fan out over ``resolved`` accounts and return every match.

        Contributions are concatenated in account order. A failing account
        contributes nothing.
        """
        profile = get_profile(task)
        cache = RequestCache()

        async def contribution(
            account: Account, credentials: CredentialBundle
        ) -> list[AccountMatch]:
            try:
                return await self.process_account(
                    profile.task, account, credentials, desired_count, user_id, cache
                )
            except Exception as e:
                logger.error(
                    "Account %s failed for %s: %s",
                    hash_id(account.id),
                    profile.task.value,
                    type(e).__name__,
                )
                counter("orchestrator.account_failed")
                return []

        with time_block(f"orchestrator.{profile.task.value}.latency"):
            per_account = await asyncio.gather(
                *(contribution(account, credentials) for account, credentials in resolved)
            )

        collected = [match for matches_ in per_account for match in matches_]
        log_event(
            "orchestrator.run_complete",
            task=profile.task.value,
            accounts=len(resolved),
            matches=len(collected),
        )
        return collected
