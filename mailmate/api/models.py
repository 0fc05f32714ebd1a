"""Pydantic request/response models for the MailMate API.

Wire field names are camelCase (``maxResults``, ``emailIds``) to match the web
client. Range checks live in the pipeline so every caller gets the same
400 responses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mailmate.config import DEFAULT_SMART_FILTER_COUNT
from mailmate.storage.models import (
    AggregateResult,
    CategorizedInbox,
    ProcessedMessage,
    SmartFilterResult,
)


class _CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SmartFilterRequest(_CamelRequest):
    filter_type: str | None = Field(default=None, alias="filterType")
    max_results: int = Field(default=DEFAULT_SMART_FILTER_COUNT, alias="maxResults")


class BatchProcessRequest(_CamelRequest):
    email_ids: list[str] = Field(default_factory=list, alias="emailIds")
    action: str | None = None


class ProcessRequest(_CamelRequest):
    action: str | None = None


class ReplyRequest(_CamelRequest):
    content: str = ""


# =============================================================================
# Response shaping
# =============================================================================


def filter_response(result: AggregateResult) -> dict[str, Any]:
    return {
        "filteredEmails": [match.to_api() for match in result.results],
        "totalFound": result.total_found,
    }


def smart_filter_response(result: SmartFilterResult) -> dict[str, Any]:
    return {
        "filteredEmails": [
            {
                "email": item.message.model_dump(),
                "aiAnalysis": {"error": item.error} if item.error else item.analysis,
            }
            for item in result.results
        ],
        "totalProcessed": result.total_processed,
    }


def categorized_response(inbox: CategorizedInbox) -> dict[str, Any]:
    return {
        "accountId": inbox.account_id,
        "categories": {
            name: [message.model_dump() for message in messages]
            for name, messages in inbox.categories.items()
        },
        "total": inbox.total,
    }


def processed_item(item: ProcessedMessage) -> dict[str, Any]:
    payload: dict[str, Any] = {"emailId": item.message_id, "action": item.task_name}
    if item.error:
        payload["error"] = item.error
    else:
        payload["result"] = item.result
    return payload
