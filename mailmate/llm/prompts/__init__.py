"""Prompt templates for the semantic classifier, one per backend task."""

from __future__ import annotations

import re

from mailmate.classification.judgment import SemanticTask

_HEADER = """You are an email assistant. Analyze the email below.

From: {sender}
Subject: {subject}
Body:
{body}
"""

PRIORITY_SCORE_PROMPT = (
    _HEADER
    + """
Rate how urgently this email needs the recipient's attention on a scale of 1-10
(10 = must act today, 5 = normal, 1 = can be ignored).

Output JSON:
{{
  "priority_score": 1-10,
  "reasoning": "brief explanation (15 words max)"
}}

Respond with ONLY the JSON, no other text."""
)

SMART_CATEGORIZE_PROMPT = (
    _HEADER
    + """
Categorize this email.

primary_category: one of work, financial, social, personal, shopping, promotions,
newsletter, travel, other
sub_category: for work use one of project, meeting, admin, recruiting, other;
otherwise a short free-form label

Output JSON:
{{
  "primary_category": "...",
  "sub_category": "...",
  "confidence": 0.0-1.0
}}

Respond with ONLY the JSON, no other text."""
)

FILTER_INBOX_PROMPT = (
    _HEADER
    + """
Decide whether this email deserves a place in a focused inbox (personal
correspondence, actionable work, important account notices) or can be filtered
out (bulk marketing, automated noise).

Output JSON:
{{
  "should_show": true/false,
  "reason": "brief explanation (10 words max)",
  "suggested_action": "reply|read|archive|delete"
}}

Respond with ONLY the JSON, no other text."""
)

PROMPTS: dict[SemanticTask, str] = {
    SemanticTask.PRIORITY_SCORE: PRIORITY_SCORE_PROMPT,
    SemanticTask.SMART_CATEGORIZE: SMART_CATEGORIZE_PROMPT,
    SemanticTask.FILTER_INBOX: FILTER_INBOX_PROMPT,
}


def sanitize(text: str | None, max_length: int = 500) -> str:
    """Sanitize input to prevent prompt injection."""
    if not text:
        return ""

    text = re.sub(r"(?i)(ignore|disregard).*(instruction|prompt)", "[REDACTED]", text)
    text = re.sub(r"(?i)system\s*:", "", text)
    text = re.sub(r"(?i)assistant\s*:", "", text)

    return text[:max_length]


def build_prompt(task: SemanticTask, subject: str, sender: str, body: str) -> str:
    return PROMPTS[task].format(
        subject=sanitize(subject, max_length=200),
        sender=sanitize(sender, max_length=100),
        body=sanitize(body, max_length=2000),
    )
