"""Aggregator & ranker.

Merges per-account matches into one sequence ordered most-recent first and
truncates to the caller's limit. Ordering is best-effort across accounts: a
message whose date cannot be read sorts as the oldest and never breaks the
sort.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter
from mailmate.storage.models import AccountMatch, AggregateResult, Message

logger = get_logger(__name__)

OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC so they compare with aware ones
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _parse_date_header(raw: str) -> datetime | None:
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def message_timestamp(message: Message) -> datetime:
    """
    Comparable instant for ``message``.

    Tries the Date header (RFC 2822, then ISO-8601), then Gmail's
    internalDate. Returns OLDEST when nothing parses.
    """
    raw = (message.date or "").strip()
    if raw:
        parsed = _parse_date_header(raw)
        if parsed is not None:
            return _as_utc(parsed)

    if message.internal_date is not None:
        try:
            return datetime.fromtimestamp(message.internal_date / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass

    counter("aggregator.unparseable_date")
    return OLDEST


def aggregate(matches: Iterable[AccountMatch], desired_count: int) -> AggregateResult:
    """
    Sort all matches by date descending and keep the first ``desired_count``.

    The sort is stable, so equal timestamps keep encounter order. Truncation
    happens after the global sort, and ``total_found`` is the count before it.
    """
    collected = list(matches)
    ordered = sorted(collected, key=lambda match: message_timestamp(match.message), reverse=True)
    results = ordered[: max(desired_count, 0)]

    logger.debug("Aggregated %d matches, returning %d", len(collected), len(results))
    return AggregateResult(results=results, total_found=len(collected))
