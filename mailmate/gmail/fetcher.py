"""Per-account candidate fetcher.

Builds the bounded pool of recent message summaries one account contributes
to a request, and fetches full content lazily for the messages that are
actually classified.
"""

from __future__ import annotations

from mailmate.config import DEFAULT_SCOPE, LIST_PAGE_MAX, POOL_FLOOR
from mailmate.gmail.client import MailSource
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id
from mailmate.storage.models import CredentialBundle, Message

logger = get_logger(__name__)


def effective_pool_size(desired_count: int, floor: int = POOL_FLOOR) -> int:
    """Pool is never smaller than the request, and widened to ``floor`` for small requests."""
    return max(desired_count, floor)


class CandidateFetcher:
    def __init__(self, source: MailSource, page_size: int = LIST_PAGE_MAX):
        self.source = source
        self.page_size = page_size

    async def list_candidates(
        self,
        credentials: CredentialBundle,
        pool_size: int,
        scope: str | None = DEFAULT_SCOPE,
    ) -> list[Message]:
        """
        Page through the account until ``pool_size`` summaries are collected.

        Raises:
            MailSourceError: if a list call fails (the caller isolates the account)
        """
        pool: list[Message] = []
        page_token: str | None = None

        while len(pool) < pool_size:
            remaining = pool_size - len(pool)
            page = await self.source.list_messages(
                credentials, page_token, min(remaining, self.page_size), scope
            )
            pool.extend(page.messages[:remaining])
            # A page can come back empty when every summary on it was unreadable
            page_token = page.next_page_token
            if not page_token:
                break

        counter("fetcher.candidates", len(pool))
        logger.debug(
            "Fetched %d candidates for account %s (requested %d)",
            len(pool),
            hash_id(credentials.account_id),
            pool_size,
        )
        return pool

    async def fetch_full(self, credentials: CredentialBundle, message_id: str) -> Message:
        counter("fetcher.detail")
        return await self.source.get_message_detail(credentials, message_id)
