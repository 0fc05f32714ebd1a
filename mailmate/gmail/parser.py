"""
Gmail adapter utilities for converting API payloads into domain messages.

Parsing is deterministic and side-effect free apart from telemetry. Parse
failures surface as GmailParsingError with hashed identifiers only.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from mailmate.observability.telemetry import counter, hash_id, log_event
from mailmate.storage.models import Message
from mailmate.utils.html import html_to_text

_TEXT_PLAIN = "text/plain"
_TEXT_HTML = "text/html"


class GmailParsingError(ValueError):
    """Raised when Gmail payload cannot be converted into a Message."""


def _header_lookup(headers: Iterable[dict[str, str]], name: str) -> str | None:
    name_lower = name.lower()
    for header in headers:
        if header.get("name", "").lower() == name_lower:
            return header.get("value")
    return None


def _decode_base64(data: str) -> str:
    """Decode Gmail's URL-safe base64 payloads."""
    padding = "=" * (-len(data) % 4)
    try:
        decoded = base64.urlsafe_b64decode((data + padding).encode("utf-8"))
        return decoded.decode("utf-8", errors="replace")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise GmailParsingError("failed to decode message body") from exc


def _collect_bodies(part: dict[str, Any], found: dict[str, str | None]) -> None:
    """Depth-first walk over MIME parts keeping the first text and html bodies."""
    mime_type = part.get("mimeType", "")
    data = (part.get("body") or {}).get("data")

    if data and mime_type == _TEXT_PLAIN and found["text"] is None:
        found["text"] = _decode_base64(data)
    elif data and mime_type == _TEXT_HTML and found["html"] is None:
        found["html"] = _decode_base64(data)

    for child in part.get("parts") or []:
        if found["text"] is not None and found["html"] is not None:
            return
        _collect_bodies(child, found)


def extract_body(payload: dict[str, Any]) -> str:
    """Plain-text body of a full-format payload; HTML-only bodies are converted."""
    found: dict[str, str | None] = {"text": None, "html": None}
    _collect_bodies(payload, found)
    if found["text"] is not None:
        return found["text"]
    if found["html"] is not None:
        return html_to_text(found["html"])
    return ""


def parse_message(message: dict[str, Any], account_id: str, with_body: bool = False) -> Message:
    """
    Convert a Gmail API message resource into a `Message`.

    Args:
        message: messages.get resource (format "metadata" or "full")
        account_id: account the message belongs to
        with_body: decode the MIME body (requires format "full")

    Raises:
        GmailParsingError: payload is not a usable message resource
    """
    if not isinstance(message, dict):
        raise GmailParsingError("message must be a dict")

    try:
        message_id = message["id"]
    except KeyError as exc:
        raise GmailParsingError(f"missing field: {exc}") from exc

    payload = message.get("payload") or {}
    headers = payload.get("headers") or []

    internal_date: int | None
    try:
        internal_date = int(message["internalDate"]) if message.get("internalDate") else None
    except (TypeError, ValueError):
        internal_date = None

    fields = {
        "id": message_id,
        "account_id": account_id,
        "thread_id": message.get("threadId") or message_id,
        "subject": _header_lookup(headers, "Subject") or "",
        "sender": _header_lookup(headers, "From") or "",
        "date": _header_lookup(headers, "Date") or "",
        "internal_date": internal_date,
        "snippet": message.get("snippet") or "",
        "body": extract_body(payload) if with_body else None,
        "label_ids": tuple(message.get("labelIds") or ()),
    }

    try:
        parsed = Message.model_validate(fields)
    except ValidationError as exc:
        counter("schema_validation_failures")
        log_event(
            "gmail.message.validation_failed",
            errors=exc.error_count(),
            message_id_hash=hash_id(str(message_id)),
        )
        raise GmailParsingError("message validation failed") from exc

    counter("gmail.parsed.count")
    return parsed


def parse_message_strict(
    message: dict[str, Any], account_id: str, with_body: bool = False
) -> Message:
    """
    Wrapper that emits observability signals on failure.
    """
    try:
        return parse_message(message, account_id, with_body=with_body)
    except GmailParsingError as exc:
        raw_id = message.get("id", "") if isinstance(message, dict) else ""
        log_event(
            "gmail.parse_failed",
            message_id_hash=hash_id(str(raw_id)),
            error=str(exc),
        )
        counter("gmail.parse_failed.count")
        raise
