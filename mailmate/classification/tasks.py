"""
Classification task table.

Each requested category kind is a closed enum member mapped to a TaskProfile:
the keyword pattern the heuristic engine runs, the backend task the semantic
classifier is asked for, and the predicate that turns that judgment into a
match. Adding a task means adding one row here.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from mailmate.classification.judgment import (
    CategoryJudgment,
    Judgment,
    PriorityJudgment,
    SemanticTask,
)
from mailmate.config import URGENT_PRIORITY_THRESHOLD
from mailmate.errors import InvalidRequestError


class ClassificationTask(str, Enum):
    FINANCIAL = "financial"
    URGENT = "urgent"
    LEADS = "leads"
    SOCIAL = "social"

    @classmethod
    def parse(cls, value: str | None) -> ClassificationTask:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise InvalidRequestError(
                f"Unknown filter type {value!r}. Expected one of: {allowed}"
            ) from None


def _keywords(*terms: str) -> re.Pattern[str]:
    # Leading boundary only, so inflections (invoices, payments) still match
    return re.compile(r"\b(?:" + "|".join(terms) + r")", re.IGNORECASE)


FINANCIAL_PATTERN = _keywords(
    "invoice", "receipt", "bill", "payment", "statement", "bank", "subscription",
    "tax", "credit", "charge", "paypal", "stripe", "transaction", "order",
    "refund", "amount", "due", "warranty",
)
URGENT_PATTERN = _keywords(
    "urgent", "asap", "immediate", "overdue", "important", r"action\s+required",
    r"past\s+due", r"final\s+notice", r"respond\s+now",
)
LEADS_PATTERN = _keywords(
    "lead", "opportunit", "proposal", "quote", "estimate", "rfp", "rfq", "demo",
    "trial", "pricing", "partnership", "collaborat", r"sales\s+inquiry", r"new\s+client",
)
SOCIAL_PATTERN = _keywords(
    "friend", "family", "invitation", "invite", "party", "birthday", "wedding",
    "linkedin", "facebook", "instagram", "twitter", r"x\.com", "follow", "connect",
    "social",
)


def _is_urgent(judgment: Judgment) -> bool:
    return (
        isinstance(judgment, PriorityJudgment)
        and judgment.priority_score >= URGENT_PRIORITY_THRESHOLD
    )


def _is_lead(judgment: Judgment) -> bool:
    return (
        isinstance(judgment, CategoryJudgment)
        and judgment.primary_category == "work"
        and judgment.sub_category == "project"
    )


def _is_social(judgment: Judgment) -> bool:
    return isinstance(judgment, CategoryJudgment) and judgment.primary_category in {
        "social",
        "personal",
    }


def _never(_judgment: Judgment) -> bool:
    return False


@dataclass(frozen=True)
class TaskProfile:
    task: ClassificationTask
    pattern: re.Pattern[str]
    semantic_task: SemanticTask | None
    is_match: Callable[[Judgment], bool]
    # Financial intent is keyword-detectable from summaries; no detail fetch, no escalation
    uses_categorized_bucket: bool = False
    reads_full_body: bool = True


TASK_PROFILES: dict[ClassificationTask, TaskProfile] = {
    ClassificationTask.FINANCIAL: TaskProfile(
        task=ClassificationTask.FINANCIAL,
        pattern=FINANCIAL_PATTERN,
        semantic_task=None,
        is_match=_never,
        uses_categorized_bucket=True,
        reads_full_body=False,
    ),
    ClassificationTask.URGENT: TaskProfile(
        task=ClassificationTask.URGENT,
        pattern=URGENT_PATTERN,
        semantic_task=SemanticTask.PRIORITY_SCORE,
        is_match=_is_urgent,
    ),
    ClassificationTask.LEADS: TaskProfile(
        task=ClassificationTask.LEADS,
        pattern=LEADS_PATTERN,
        semantic_task=SemanticTask.SMART_CATEGORIZE,
        is_match=_is_lead,
    ),
    ClassificationTask.SOCIAL: TaskProfile(
        task=ClassificationTask.SOCIAL,
        pattern=SOCIAL_PATTERN,
        semantic_task=SemanticTask.SMART_CATEGORIZE,
        is_match=_is_social,
    ),
}


def get_profile(task: ClassificationTask | str) -> TaskProfile:
    if not isinstance(task, ClassificationTask):
        task = ClassificationTask.parse(task)
    return TASK_PROFILES[task]
