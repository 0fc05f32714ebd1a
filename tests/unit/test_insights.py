"""Tests for inbox insights."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from mailmate.observability.telemetry import get_counter
from mailmate.pipeline.insights import (
    InsightsAnalyzer,
    build_recommendations,
    most_common,
    priority_level,
    round_half_up,
    window_query,
)


def test_window_query():
    assert window_query(7, today=date(2024, 1, 10)) == "after:2024/01/03"


@pytest.mark.parametrize(("score", "level"), [(10, "high"), (8, "high"), (5, "medium"), (4, "low")])
def test_priority_level(score, level):
    assert priority_level(score) == level


@pytest.mark.parametrize(("value", "expected"), [(4.5, 5), (2.5, 3), (5.67, 6), (5.4, 5)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_most_common_tie_goes_to_first_inserted():
    assert most_common({"work": 2, "social": 2, "other": 1}) == "work"
    assert most_common({}) is None


def test_recommendations():
    assert build_recommendations(2, {"work": 3}) == [
        "You have 2 urgent emails that need immediate attention.",
        "Most of your emails are work-related.",
    ]
    assert build_recommendations(0, {}) == []


def _fetcher(messages):
    by_id = {m.id: m for m in messages}

    async def fetch_full(message_id):
        return by_id[message_id]

    return fetch_full


def test_analyze_builds_histograms(classifier, make_message):
    messages = [
        make_message(message_id="m1", sender="Alice <alice@example.com>"),
        make_message(message_id="m2", sender="Alice <alice@example.com>"),
        make_message(message_id="m3", sender="<bot@example.com>"),
        make_message(message_id="m4", sender="Bob <bob@example.com>"),
    ]
    classifier.respond("m1", "priority_score", {"priority_score": 9})
    classifier.respond("m1", "smart_categorize", {"primary_category": "work"})
    classifier.respond("m2", "priority_score", {"priority_score": 6})
    classifier.respond("m2", "smart_categorize", {"primary_category": "work"})
    classifier.respond("m3", "priority_score", {"priority_score": 2})
    classifier.respond("m3", "smart_categorize", {"primary_category": "social"})
    classifier.fail("m4", "smart_categorize")

    report = asyncio.run(InsightsAnalyzer(classifier).analyze(messages, _fetcher(messages)))

    assert report.total_emails == 4
    assert report.analyzed == 3
    assert report.categories == {"work": 2, "social": 1}
    assert report.priority_distribution == {"high": 1, "medium": 1, "low": 1}
    assert report.top_senders == {"Alice": 2, "bot@example.com": 1}
    assert report.average_priority == 6
    assert report.urgent_count == 1
    assert report.recommendations == [
        "You have 1 urgent emails that need immediate attention.",
        "Most of your emails are work-related.",
    ]
    assert get_counter("insights.message_failed") == 1


def test_only_sample_is_classified(classifier, make_message):
    messages = [make_message(message_id=f"m{i}") for i in range(5)]

    report = asyncio.run(
        InsightsAnalyzer(classifier, sample_size=2).analyze(messages, _fetcher(messages))
    )

    assert report.total_emails == 5
    assert report.analyzed == 2
    assert {mid for mid, _ in classifier.calls} == {"m0", "m1"}


def test_fetch_failure_skips_message(classifier, make_message):
    messages = [make_message(message_id="m1"), make_message(message_id="m2")]

    async def fetch_full(message_id):
        if message_id == "m1":
            raise RuntimeError("gone")
        return messages[1]

    report = asyncio.run(InsightsAnalyzer(classifier).analyze(messages, fetch_full))

    assert report.analyzed == 1
    assert classifier.calls_for("m1") == []


def test_empty_inbox(classifier):
    report = asyncio.run(InsightsAnalyzer(classifier).analyze([], _fetcher([])))
    assert report.total_emails == 0
    assert report.average_priority == 0
    assert report.recommendations == []
    assert report.to_api()["urgentEmails"] == 0
