"""
Structured judgments returned by the semantic classifier.

This is the parsing boundary for backend output: defaults for missing or null
fields are applied here and nowhere else, so classification logic can read
typed attributes without guarding against gaps.

Default policy:
    - priority_score missing/null  -> DEFAULT_PRIORITY_SCORE (mid-scale 5)
    - priority_score out of range  -> clamped to 1..10
    - primary_category missing/null -> DEFAULT_CATEGORY ("other")
    - categories are lower-cased and stripped
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mailmate.errors import MalformedResponse

DEFAULT_PRIORITY_SCORE = 5
DEFAULT_CATEGORY = "other"
MIN_PRIORITY_SCORE = 1
MAX_PRIORITY_SCORE = 10


class SemanticTask(str, Enum):
    """Backend task vocabulary understood by the semantic classifier."""

    PRIORITY_SCORE = "priority_score"
    SMART_CATEGORIZE = "smart_categorize"
    FILTER_INBOX = "filter_inbox"


class Judgment(BaseModel):
    """Base judgment; unknown backend fields are preserved for downstream reuse."""

    model_config = ConfigDict(frozen=True, extra="allow")

    def as_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PriorityJudgment(Judgment):
    priority_score: int = DEFAULT_PRIORITY_SCORE
    reasoning: str | None = None

    @field_validator("priority_score", mode="before")
    @classmethod
    def _default_and_clamp(cls, value: Any) -> int:
        if value is None or value == "":
            return DEFAULT_PRIORITY_SCORE
        try:
            score = round(float(value))
        except (TypeError, ValueError) as e:
            raise ValueError(f"priority_score is not numeric: {value!r}") from e
        return max(MIN_PRIORITY_SCORE, min(MAX_PRIORITY_SCORE, score))


class CategoryJudgment(Judgment):
    primary_category: str = DEFAULT_CATEGORY
    sub_category: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("primary_category", mode="before")
    @classmethod
    def _normalize_primary(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return DEFAULT_CATEGORY
        return str(value).strip().lower()

    @field_validator("sub_category", mode="before")
    @classmethod
    def _normalize_sub(cls, value: Any) -> str | None:
        if value is None or not str(value).strip():
            return None
        return str(value).strip().lower()


class FilterJudgment(Judgment):
    should_show: bool = True
    reason: str | None = None


_JUDGMENT_TYPES: dict[SemanticTask, type[Judgment]] = {
    SemanticTask.PRIORITY_SCORE: PriorityJudgment,
    SemanticTask.SMART_CATEGORIZE: CategoryJudgment,
    SemanticTask.FILTER_INBOX: FilterJudgment,
}


def parse_judgment(task: SemanticTask | str, payload: Any) -> Judgment:
    """
    Validate a decoded backend payload into the judgment type for ``task``.

    Raises:
        MalformedResponse: payload is not an object or fails validation
    """
    semantic_task = SemanticTask(task)
    if not isinstance(payload, dict):
        raise MalformedResponse(f"{semantic_task.value}: expected JSON object")
    try:
        return _JUDGMENT_TYPES[semantic_task].model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(f"{semantic_task.value}: {e.error_count()} invalid field(s)") from e


def parse_judgment_text(task: SemanticTask | str, response_text: str) -> Judgment:
    """Decode model text (optionally wrapped in a markdown code fence) into a judgment."""
    json_text = (response_text or "").strip()
    if json_text.startswith("```"):
        json_text = re.sub(r"^```(?:json)?\n?", "", json_text)
        json_text = re.sub(r"\n?```$", "", json_text)

    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"{SemanticTask(task).value}: response is not JSON") from e

    return parse_judgment(task, data)
