"""
Pytest configuration for MailMate tests

Provides in-memory fakes for the external collaborators (account store, mail
source, semantic classifier) and a pre-wired pipeline.
"""

from __future__ import annotations

from typing import Any

import pytest

from mailmate.classification.judgment import Judgment, SemanticTask, parse_judgment
from mailmate.errors import ClassifierUnavailable, MailSourceError
from mailmate.observability import telemetry
from mailmate.pipeline.service import MailPipeline
from mailmate.storage.models import Account, CredentialBundle, Message, MessagePage

USER_ID = "user-1"


class FakeAccountStore:
    def __init__(self) -> None:
        self.accounts: dict[str, list[Account]] = {}
        self.credentials: dict[tuple[str, str], CredentialBundle | None] = {}
        self.failing_credentials: set[str] = set()
        self.fail_listing = False

    def link(
        self,
        account_id: str,
        label: str = "",
        user_id: str = USER_ID,
        alive: bool = True,
        with_credentials: bool = True,
    ) -> Account:
        account = Account(
            id=account_id,
            label=label or f"{account_id}@example.com",
            alive=alive,
            user_id=user_id,
        )
        self.accounts.setdefault(user_id, []).append(account)
        self.credentials[(user_id, account_id)] = (
            CredentialBundle(account_id=account_id, access_token=f"token-{account_id}")
            if with_credentials
            else None
        )
        return account

    async def list_accounts(self, user_id: str) -> list[Account]:
        if self.fail_listing:
            raise RuntimeError("account service unavailable")
        return list(self.accounts.get(user_id, []))

    async def get_credentials(self, user_id: str, account_id: str) -> CredentialBundle | None:
        if account_id in self.failing_credentials:
            raise RuntimeError("token refresh failed")
        return self.credentials.get((user_id, account_id))


class FakeMailSource:
    """Mailboxes keyed by account id; page tokens are list offsets."""

    def __init__(self) -> None:
        self.mailboxes: dict[str, list[Message]] = {}
        self.failing_accounts: set[str] = set()
        self.failing_details: set[str] = set()
        self.list_calls: list[dict[str, Any]] = []
        self.detail_calls: list[str] = []
        self.replies: list[tuple[str, str]] = []

    def add(self, *messages: Message) -> None:
        for message in messages:
            self.mailboxes.setdefault(message.account_id, []).append(message)

    async def list_messages(
        self,
        credentials: CredentialBundle,
        page_token: str | None,
        max_results: int,
        scope: str | None,
    ) -> MessagePage:
        account_id = credentials.account_id
        self.list_calls.append(
            {
                "account_id": account_id,
                "page_token": page_token,
                "max_results": max_results,
                "scope": scope,
            }
        )
        if account_id in self.failing_accounts:
            raise MailSourceError("list failed", status_code=503)

        mailbox = self.mailboxes.get(account_id, [])
        start = int(page_token or 0)
        chunk = mailbox[start : start + max_results]
        end = start + len(chunk)
        return MessagePage(
            messages=[m.model_copy(update={"body": None}) for m in chunk],
            next_page_token=str(end) if end < len(mailbox) else None,
        )

    async def get_message_detail(self, credentials: CredentialBundle, message_id: str) -> Message:
        self.detail_calls.append(message_id)
        if message_id in self.failing_details:
            raise MailSourceError("detail failed", status_code=500)
        for message in self.mailboxes.get(credentials.account_id, []):
            if message.id == message_id:
                return message if message.body is not None else message.model_copy(
                    update={"body": ""}
                )
        raise MailSourceError("not found", status_code=404)

    async def send_reply(
        self, credentials: CredentialBundle, message_id: str, content: str
    ) -> dict[str, Any]:
        self.replies.append((message_id, content))
        return {"id": f"sent-{message_id}", "threadId": f"thread-{message_id}"}


class FakeClassifier:
    """Deterministic classifier: canned payloads per (message id, task)."""

    DEFAULTS: dict[str, dict[str, Any]] = {
        "priority_score": {"priority_score": 3},
        "smart_categorize": {"primary_category": "other"},
        "filter_inbox": {"should_show": False, "reason": "bulk"},
    }

    def __init__(self) -> None:
        self.responses: dict[tuple[str, str], Any] = {}
        self.defaults: dict[str, Any] = dict(self.DEFAULTS)
        self.calls: list[tuple[str, str]] = []

    def respond(self, message_id: str, task: str, payload: Any) -> None:
        self.responses[(message_id, task)] = payload

    def fail(self, message_id: str, task: str, error: Exception | None = None) -> None:
        self.responses[(message_id, task)] = error or ClassifierUnavailable("backend down")

    def calls_for(self, message_id: str) -> list[str]:
        return [task for mid, task in self.calls if mid == message_id]

    async def classify(
        self, message: Message, task_name: SemanticTask | str, user_id: str = "default"
    ) -> Judgment:
        task = SemanticTask(task_name)
        self.calls.append((message.id, task.value))
        payload = self.responses.get((message.id, task.value), self.defaults[task.value])
        if isinstance(payload, Exception):
            raise payload
        return parse_judgment(task, payload)


@pytest.fixture(autouse=True)
def reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture
def make_message():
    counter = {"n": 0}

    def _make(
        message_id: str | None = None,
        account_id: str = "acct-1",
        subject: str = "",
        body: str | None = "",
        snippet: str = "",
        sender: str = "Sender <sender@example.com>",
        date: str = "Mon, 01 Jan 2024 10:00:00 +0000",
        internal_date: int | None = None,
    ) -> Message:
        counter["n"] += 1
        return Message(
            id=message_id or f"msg-{counter['n']}",
            account_id=account_id,
            thread_id=f"thread-{message_id or counter['n']}",
            subject=subject,
            sender=sender,
            date=date,
            internal_date=internal_date,
            snippet=snippet,
            body=body,
        )

    return _make


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def source() -> FakeMailSource:
    return FakeMailSource()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def pipeline(store, source, classifier) -> MailPipeline:
    return MailPipeline(store, source, classifier, max_workers=2)
