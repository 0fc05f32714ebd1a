"""Authenticated Gmail API mail source.

Implements the mail-retrieval collaborator the pipeline consumes: paged
listing of message summaries, full-content detail fetch, and reply sending.
The Google client library is synchronous, so every call runs in a worker
thread via ``asyncio.to_thread`` to keep the event loop free.

Credential bundles are turned into google-auth Credentials per call and are
never stored on the client.
"""

from __future__ import annotations

import asyncio
import base64
from email.message import EmailMessage
from typing import Any, Protocol

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from mailmate.errors import MailSourceError
from mailmate.gmail.parser import GmailParsingError, parse_message_strict
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id, log_event, time_block
from mailmate.storage.models import CredentialBundle, Message, MessagePage

logger = get_logger(__name__)

# Gmail caps messages.list at 500 ids per page
GMAIL_MAX_PAGE = 500
SUMMARY_HEADERS = ["Subject", "From", "Date"]


class MailSource(Protocol):
    async def list_messages(
        self,
        credentials: CredentialBundle,
        page_token: str | None,
        max_results: int,
        scope: str | None,
    ) -> MessagePage: ...

    async def get_message_detail(
        self, credentials: CredentialBundle, message_id: str
    ) -> Message: ...

    async def send_reply(
        self, credentials: CredentialBundle, message_id: str, content: str
    ) -> dict[str, Any]: ...


def to_google_credentials(bundle: CredentialBundle) -> Credentials:
    return Credentials(
        token=bundle.access_token.get_secret_value(),
        refresh_token=bundle.refresh_token.get_secret_value() if bundle.refresh_token else None,
        token_uri=bundle.token_uri,
        client_id=bundle.client_id,
        client_secret=bundle.client_secret.get_secret_value() if bundle.client_secret else None,
        scopes=list(bundle.scopes) or None,
    )


def _http_status(error: HttpError) -> int | None:
    return getattr(getattr(error, "resp", None), "status", None)


class GmailMailSource:
    """
    Gmail API client (read + reply)

    Provides:
    - Paged listing of message summaries (metadata headers + snippet)
    - Full message fetch with decoded body
    - Threaded reply sending
    """

    def __init__(self, service_factory=None):
        """
        Args:
            service_factory: callable(Credentials) -> Gmail service resource.
                Defaults to ``googleapiclient.discovery.build``.
        """
        self._service_factory = service_factory or self._build_service

    @staticmethod
    def _build_service(credentials: Credentials) -> Any:
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def _service(self, bundle: CredentialBundle) -> Any:
        return self._service_factory(to_google_credentials(bundle))

    async def list_messages(
        self,
        credentials: CredentialBundle,
        page_token: str | None,
        max_results: int,
        scope: str | None,
    ) -> MessagePage:
        """
        List one page of message summaries.

        Raises:
            MailSourceError: if the list call fails
        """
        return await asyncio.to_thread(
            self._list_messages_sync, credentials, page_token, max_results, scope
        )

    def _list_messages_sync(
        self,
        credentials: CredentialBundle,
        page_token: str | None,
        max_results: int,
        scope: str | None,
    ) -> MessagePage:
        service = self._service(credentials)
        params: dict[str, Any] = {
            "userId": "me",
            "maxResults": max(1, min(max_results, GMAIL_MAX_PAGE)),
        }
        if scope:
            params["q"] = scope
        if page_token:
            params["pageToken"] = page_token

        try:
            with time_block("gmail.list.latency"):
                response = service.users().messages().list(**params).execute()
        except HttpError as e:
            status = _http_status(e)
            log_event("gmail.list.error", status=status, account=hash_id(credentials.account_id))
            raise MailSourceError("Gmail list call failed", status_code=status) from e

        ids = [item["id"] for item in response.get("messages", [])]
        counter("gmail.messages.listed", len(ids))

        summaries: list[Message] = []
        for message_id in ids:
            try:
                raw = (
                    service.users()
                    .messages()
                    .get(
                        userId="me",
                        id=message_id,
                        format="metadata",
                        metadataHeaders=SUMMARY_HEADERS,
                    )
                    .execute()
                )
                summaries.append(parse_message_strict(raw, credentials.account_id))
            except (HttpError, GmailParsingError) as e:
                # One unreadable summary must not cost the whole page
                logger.warning(
                    "Skipping message %s in listing: %s", hash_id(message_id), type(e).__name__
                )
                counter("gmail.summary.skipped")

        return MessagePage(messages=summaries, next_page_token=response.get("nextPageToken"))

    async def get_message_detail(self, credentials: CredentialBundle, message_id: str) -> Message:
        """
        Fetch one message with its decoded body.

        Raises:
            MailSourceError: if the fetch or parse fails
        """
        return await asyncio.to_thread(self._get_message_detail_sync, credentials, message_id)

    def _get_message_detail_sync(self, credentials: CredentialBundle, message_id: str) -> Message:
        service = self._service(credentials)
        try:
            with time_block("gmail.get.latency"):
                raw = (
                    service.users().messages().get(userId="me", id=message_id, format="full")
                ).execute()
        except HttpError as e:
            status = _http_status(e)
            log_event("gmail.get.error", status=status, message_id_hash=hash_id(message_id))
            raise MailSourceError("Gmail detail call failed", status_code=status) from e

        try:
            return parse_message_strict(raw, credentials.account_id, with_body=True)
        except GmailParsingError as e:
            raise MailSourceError(f"Unparseable Gmail message: {e}") from e

    async def send_reply(
        self, credentials: CredentialBundle, message_id: str, content: str
    ) -> dict[str, Any]:
        """
        Reply to ``message_id`` in its thread.

        Raises:
            MailSourceError: if the original cannot be read or the send fails
        """
        return await asyncio.to_thread(self._send_reply_sync, credentials, message_id, content)

    def _send_reply_sync(
        self, credentials: CredentialBundle, message_id: str, content: str
    ) -> dict[str, Any]:
        service = self._service(credentials)
        try:
            original = (
                service.users()
                .messages()
                .get(
                    userId="me",
                    id=message_id,
                    format="metadata",
                    metadataHeaders=["Subject", "From", "Reply-To", "Message-ID", "References"],
                )
                .execute()
            )
        except HttpError as e:
            raise MailSourceError("Gmail reply lookup failed", status_code=_http_status(e)) from e

        headers = {
            h.get("name", "").lower(): h.get("value", "")
            for h in (original.get("payload") or {}).get("headers") or []
        }
        subject = headers.get("subject", "")
        if not subject.lower().startswith("re:"):
            subject = f"Re: {subject}".strip()

        reply = EmailMessage()
        reply["To"] = headers.get("reply-to") or headers.get("from", "")
        reply["Subject"] = subject
        original_id = headers.get("message-id")
        if original_id:
            reply["In-Reply-To"] = original_id
            reply["References"] = f"{headers.get('references', '')} {original_id}".strip()
        reply.set_content(content)

        body = {
            "raw": base64.urlsafe_b64encode(reply.as_bytes()).decode("ascii"),
            "threadId": original.get("threadId"),
        }
        try:
            sent = service.users().messages().send(userId="me", body=body).execute()
        except HttpError as e:
            raise MailSourceError("Gmail send failed", status_code=_http_status(e)) from e

        counter("gmail.reply.sent")
        log_event("gmail.reply.sent", message_id_hash=hash_id(message_id))
        return {"id": sent.get("id"), "threadId": sent.get("threadId")}
