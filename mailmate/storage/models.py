"""
Domain models (Pydantic v2) for the MailMate pipeline.

Messages and accounts are read-only snapshots: the pipeline never mutates them.
Sensitive fields (subjects, addresses, bodies) are redacted in repr, and
credential material is held in SecretStr so it never reaches logs.
"""

from __future__ import annotations

from enum import Enum
from hashlib import sha256
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from mailmate.classification.judgment import Judgment


def _hash_value(value: str) -> str:
    digest = sha256(value.encode("utf-8")).hexdigest()
    return f"hash:{digest[:12]}"


class RedactedModel(BaseModel):
    """Base model that redacts sensitive fields in repr."""

    model_config = ConfigDict(frozen=True)
    _redact_fields = {"subject", "sender", "snippet", "body", "label"}

    def _redacted_dump(self) -> dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        for field in self._redact_fields:
            if field in data and isinstance(data[field], str) and data[field]:
                data[field] = _hash_value(data[field])
        return data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._redacted_dump()})"

    def redacted(self) -> dict[str, Any]:
        """Public helper for telemetry-safe dumps."""
        return self._redacted_dump()


class Message(RedactedModel):
    """A mail message as seen by the pipeline.

    ``body`` stays ``None`` for list summaries and is filled by a detail fetch.
    """

    id: str
    account_id: str
    thread_id: str = ""
    subject: str = ""
    sender: str = ""
    date: str = ""
    internal_date: int | None = None
    snippet: str = ""
    body: str | None = None
    label_ids: tuple[str, ...] = ()

    @property
    def is_unread(self) -> bool:
        return "UNREAD" in self.label_ids

    @property
    def is_complete(self) -> bool:
        return self.body is not None


class MessagePage(BaseModel):
    messages: list[Message] = Field(default_factory=list)
    next_page_token: str | None = None


class Account(RedactedModel):
    id: str
    label: str = ""
    alive: bool = True
    user_id: str


class CredentialBundle(BaseModel):
    """OAuth token material scoped to one account. Never cached past a request."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    access_token: SecretStr
    refresh_token: SecretStr | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    token_uri: str = "https://oauth2.googleapis.com/token"
    scopes: tuple[str, ...] = ()


class AccountRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str
    account_label: str = ""

    @classmethod
    def of(cls, account: Account) -> AccountRef:
        return cls(account_id=account.id, account_label=account.label)


class AccountMatch(BaseModel):
    """A message that satisfied a task, paired with the account it came from."""

    model_config = ConfigDict(frozen=True)

    message: Message
    account: AccountRef

    def to_api(self) -> dict[str, Any]:
        return {
            "email": self.message.model_dump(),
            "accountId": self.account.account_id,
            "accountEmail": self.account.account_label,
        }


class VerdictSource(str, Enum):
    HEURISTIC = "heuristic"
    SEMANTIC = "semantic"


class Verdict(BaseModel):
    """Match decision for one message under one task."""

    model_config = ConfigDict(frozen=True)

    matched: bool
    source: VerdictSource
    judgment: Judgment | None = None


class AggregateResult(BaseModel):
    results: list[AccountMatch] = Field(default_factory=list)
    total_found: int = 0


class SmartFilterItem(BaseModel):
    message: Message
    analysis: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class SmartFilterResult(BaseModel):
    results: list[SmartFilterItem] = Field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.results)


class CategorizedInbox(BaseModel):
    account_id: str
    categories: dict[str, list[Message]] = Field(default_factory=dict)
    total: int = 0


class ProcessedMessage(BaseModel):
    message_id: str
    task_name: str
    result: dict[str, Any] | None = None
    error: str | None = None


class InsightsReport(BaseModel):
    total_emails: int = 0
    analyzed: int = 0
    categories: dict[str, int] = Field(default_factory=dict)
    priority_distribution: dict[str, int] = Field(default_factory=dict)
    top_senders: dict[str, int] = Field(default_factory=dict)
    average_priority: int = 0
    urgent_count: int = 0
    recommendations: list[str] = Field(default_factory=list)

    def to_api(self) -> dict[str, Any]:
        return {
            "totalEmails": self.total_emails,
            "analyzed": self.analyzed,
            "categories": self.categories,
            "priorityDistribution": self.priority_distribution,
            "topSenders": self.top_senders,
            "averagePriority": self.average_priority,
            "urgentEmails": self.urgent_count,
            "recommendations": self.recommendations,
        }
