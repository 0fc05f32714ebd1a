"""Tests for the aggregator & ranker."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mailmate.pipeline.aggregator import OLDEST, aggregate, message_timestamp
from mailmate.storage.models import AccountMatch, AccountRef


def _match(message, account_id="acct-1"):
    return AccountMatch(message=message, account=AccountRef(account_id=account_id))


class TestMessageTimestamp:
    def test_rfc2822_header(self, make_message):
        message = make_message(date="Tue, 02 Jan 2024 09:30:00 -0500")
        assert message_timestamp(message) == datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)

    def test_iso_header(self, make_message):
        message = make_message(date="2024-01-02T14:30:00Z")
        assert message_timestamp(message) == datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)

    def test_naive_dates_are_utc(self, make_message):
        message = make_message(date="2024-01-02 14:30:00")
        assert message_timestamp(message).tzinfo is not None

    def test_falls_back_to_internal_date(self, make_message):
        message = make_message(date="not a date", internal_date=1_700_000_000_000)
        assert message_timestamp(message) == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    @pytest.mark.parametrize("raw", ["", "garbage", "32/13/2024"])
    def test_unparseable_sorts_oldest(self, make_message, raw):
        assert message_timestamp(make_message(date=raw)) == OLDEST


def test_sorted_most_recent_first(make_message):
    older = make_message(message_id="old", date="Mon, 01 Jan 2024 10:00:00 +0000")
    newer = make_message(message_id="new", date="Wed, 03 Jan 2024 10:00:00 +0000")
    middle = make_message(message_id="mid", date="Tue, 02 Jan 2024 10:00:00 +0000")

    result = aggregate([_match(older), _match(newer), _match(middle)], 10)

    assert [m.message.id for m in result.results] == ["new", "mid", "old"]
    assert result.total_found == 3


def test_ties_keep_encounter_order(make_message):
    same = "Mon, 01 Jan 2024 10:00:00 +0000"
    matches = [_match(make_message(message_id=f"m{i}", date=same)) for i in range(4)]

    result = aggregate(matches, 10)

    assert [m.message.id for m in result.results] == ["m0", "m1", "m2", "m3"]


def test_truncates_after_global_sort(make_message):
    """The newest messages win regardless of which account produced them."""
    a_old = _match(make_message(message_id="a-old", date="Mon, 01 Jan 2024 10:00:00 +0000"), "a")
    a_new = _match(make_message(message_id="a-new", date="Fri, 05 Jan 2024 10:00:00 +0000"), "a")
    b_mid = _match(make_message(message_id="b-mid", date="Wed, 03 Jan 2024 10:00:00 +0000"), "b")
    b_new = _match(make_message(message_id="b-new", date="Thu, 04 Jan 2024 10:00:00 +0000"), "b")

    result = aggregate([a_old, a_new, b_mid, b_new], 2)

    assert [m.message.id for m in result.results] == ["a-new", "b-new"]
    assert result.total_found == 4


def test_bad_dates_do_not_break_sort(make_message):
    good = make_message(message_id="good", date="Mon, 01 Jan 2024 10:00:00 +0000")
    bad = make_message(message_id="bad", date="sometime last week")

    result = aggregate([_match(bad), _match(good)], 5)

    assert [m.message.id for m in result.results] == ["good", "bad"]


def test_empty_input():
    result = aggregate([], 20)
    assert result.results == []
    assert result.total_found == 0


@pytest.mark.parametrize("desired", [1, 3, 10])
def test_result_bounds(make_message, desired):
    matches = [
        _match(make_message(date=f"Mon, {day:02d} Jan 2024 10:00:00 +0000")) for day in range(1, 6)
    ]
    result = aggregate(matches, desired)
    assert len(result.results) <= desired
    assert result.total_found >= len(result.results)
    stamps = [message_timestamp(m.message) for m in result.results]
    assert stamps == sorted(stamps, reverse=True)
