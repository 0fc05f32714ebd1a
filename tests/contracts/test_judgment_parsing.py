from __future__ import annotations

import pytest

from mailmate.classification.judgment import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY_SCORE,
    CategoryJudgment,
    FilterJudgment,
    PriorityJudgment,
    SemanticTask,
    parse_judgment,
    parse_judgment_text,
)
from mailmate.errors import MalformedResponse


@pytest.mark.parametrize("payload", [{}, {"priority_score": None}, {"priority_score": ""}])
def test_missing_priority_defaults_to_mid_scale(payload):
    judgment = parse_judgment(SemanticTask.PRIORITY_SCORE, payload)
    assert isinstance(judgment, PriorityJudgment)
    assert judgment.priority_score == DEFAULT_PRIORITY_SCORE == 5


@pytest.mark.parametrize(("raw", "expected"), [(0, 1), (-3, 1), (11, 10), (42, 10), ("9", 9)])
def test_priority_is_clamped(raw, expected):
    judgment = parse_judgment("priority_score", {"priority_score": raw})
    assert judgment.priority_score == expected


def test_non_numeric_priority_is_malformed():
    with pytest.raises(MalformedResponse):
        parse_judgment("priority_score", {"priority_score": "very high"})


@pytest.mark.parametrize("payload", [{}, {"primary_category": None}, {"primary_category": "  "}])
def test_missing_category_defaults_to_other(payload):
    judgment = parse_judgment("smart_categorize", payload)
    assert isinstance(judgment, CategoryJudgment)
    assert judgment.primary_category == DEFAULT_CATEGORY == "other"
    assert judgment.sub_category is None


def test_categories_are_normalized():
    judgment = parse_judgment(
        "smart_categorize", {"primary_category": " Work ", "sub_category": "PROJECT"}
    )
    assert judgment.primary_category == "work"
    assert judgment.sub_category == "project"


def test_extra_fields_are_preserved():
    judgment = parse_judgment(
        "filter_inbox", {"should_show": True, "reason": "reply needed", "suggested_action": "reply"}
    )
    assert isinstance(judgment, FilterJudgment)
    assert judgment.as_dict()["suggested_action"] == "reply"


def test_non_object_payload_is_malformed():
    with pytest.raises(MalformedResponse):
        parse_judgment("priority_score", ["not", "an", "object"])


def test_parse_text_accepts_code_fences():
    text = '```json\n{"priority_score": 9, "reasoning": "deadline today"}\n```'
    judgment = parse_judgment_text("priority_score", text)
    assert judgment.priority_score == 9
    assert judgment.reasoning == "deadline today"


@pytest.mark.parametrize("text", ["", "not json", "```\n{broken\n```"])
def test_parse_text_rejects_garbage(text):
    with pytest.raises(MalformedResponse):
        parse_judgment_text("smart_categorize", text)
