"""Keyword heuristic engine.

Pure, local, deterministic. Always runs before any semantic call for a
message/task pair.
"""

from __future__ import annotations

from mailmate.classification.tasks import ClassificationTask, get_profile
from mailmate.storage.models import Message


def matches(task: ClassificationTask | str, text: str) -> bool:
    """Return True when ``text`` contains one of the task's keywords (case-insensitive)."""
    if not text:
        return False
    return get_profile(task).pattern.search(text) is not None


def heuristic_text(message: Message, use_body: bool = True) -> str:
    """Subject plus body (or snippet when the body has not been fetched)."""
    detail = message.body if use_body and message.body is not None else message.snippet
    return f"{message.subject or ''} {detail or ''}"
