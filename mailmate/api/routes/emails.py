"""
Mail classification endpoints.

Thin HTTP shell over MailPipeline: parameters in, response shaping out.
Request-level errors (bad input, unknown account, timeout) are raised as
domain exceptions and mapped to status codes by the app's exception
handlers. Anything else becomes a sanitized 500.
"""

from __future__ import annotations

from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query

from mailmate.api.dependencies import get_pipeline, get_user_id
from mailmate.api.models import (
    BatchProcessRequest,
    ProcessRequest,
    ReplyRequest,
    SmartFilterRequest,
    categorized_response,
    filter_response,
    processed_item,
    smart_filter_response,
)
from mailmate.config import DEFAULT_CATEGORIZED_COUNT, DEFAULT_FILTER_COUNT, INSIGHTS_DEFAULT_DAYS
from mailmate.errors import AccountNotFoundError, InvalidRequestError, RequestTimeoutError
from mailmate.observability.logging import get_logger
from mailmate.pipeline.service import MailPipeline
from mailmate.utils.error_sanitizer import get_safe_error_detail

router = APIRouter(prefix="/api/emails", tags=["emails"])
logger = get_logger(__name__)

# Propagate to the app-level handlers untouched
REQUEST_ERRORS = (InvalidRequestError, AccountNotFoundError, RequestTimeoutError)


def _server_error(error: Exception, context: str) -> NoReturn:
    raise HTTPException(
        status_code=500, detail=get_safe_error_detail(error, 500, context)
    ) from None


# ============================================================================
# Multi-account
# ============================================================================


@router.get("/filter")
async def filter_emails(
    task_type: str | None = Query(None, alias="type"),
    max_results: int = Query(DEFAULT_FILTER_COUNT, alias="maxResults"),
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    """
    Emails matching a category across every linked account, most recent first.

    Side Effects:
        - Gmail API calls for each linked account
        - Gemini calls for messages the keyword heuristics cannot decide
    """
    try:
        result = await pipeline.filter_by_category(user_id, task_type, max_results)
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to filter emails by category")
    return filter_response(result)


# ============================================================================
# Single account
# ============================================================================


@router.get("/{account_id}/categorized")
async def categorized_emails(
    account_id: str,
    max_results: int = Query(DEFAULT_CATEGORIZED_COUNT, alias="maxResults"),
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    try:
        inbox = await pipeline.get_categorized(user_id, account_id, max_results)
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to get categorized emails")
    return categorized_response(inbox)


@router.post("/{account_id}/smart-filter")
async def smart_filter(
    account_id: str,
    request: SmartFilterRequest,
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    try:
        result = await pipeline.smart_filter(
            user_id, account_id, request.filter_type, request.max_results
        )
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to perform smart filtering")
    return smart_filter_response(result)


@router.get("/{account_id}/insights")
async def insights(
    account_id: str,
    days: int = Query(INSIGHTS_DEFAULT_DAYS),
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    try:
        report = await pipeline.get_insights(user_id, account_id, days)
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to generate email insights")
    return report.to_api()


@router.post("/{account_id}/batch-process")
async def batch_process(
    account_id: str,
    request: BatchProcessRequest,
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    try:
        items = await pipeline.batch_process(
            user_id, account_id, request.email_ids, request.action or ""
        )
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to batch process emails with AI")
    return {"results": [processed_item(item) for item in items]}


@router.post("/{account_id}/{email_id}/process")
async def process_email(
    account_id: str,
    email_id: str,
    request: ProcessRequest,
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    try:
        item = await pipeline.process_message(user_id, account_id, email_id, request.action or "")
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to process email with AI")
    return processed_item(item)


@router.post("/{account_id}/{email_id}/reply")
async def reply(
    account_id: str,
    email_id: str,
    request: ReplyRequest,
    user_id: str = Depends(get_user_id),
    pipeline: MailPipeline = Depends(get_pipeline),
) -> dict[str, Any]:
    try:
        ack = await pipeline.reply(user_id, account_id, email_id, request.content)
    except REQUEST_ERRORS:
        raise
    except Exception as e:
        _server_error(e, "Failed to send reply")
    return {"success": True, "messageId": ack.get("id"), "threadId": ack.get("threadId")}
