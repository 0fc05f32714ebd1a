"""In-memory account store with encrypted token material.

Stands in for the user/account persistence service (which owns durable
storage). Tokens are encrypted with Fernet at rest in memory so a heap dump or
an accidental repr never exposes them.

SECURITY:
- Encryption key from MAILMATE_ENCRYPTION_KEY; an ephemeral key is generated
  when unset (tokens do not outlive the process anyway)
- Credentials are decrypted per lookup and never cached decrypted
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from typing import Any, Protocol

from cryptography.fernet import Fernet, InvalidToken

from mailmate.config import GMAIL_TOKEN_URI, is_production
from mailmate.observability.logging import get_logger
from mailmate.storage.models import Account, CredentialBundle

logger = get_logger(__name__)


class CredentialEncryptionError(Exception):
    """Raised when credential encryption/decryption fails"""


class AccountStore(Protocol):
    async def list_accounts(self, user_id: str) -> list[Account]: ...

    async def get_credentials(self, user_id: str, account_id: str) -> CredentialBundle | None: ...


@dataclass
class _StoredAccount:
    account: Account
    encrypted_token: str


class InMemoryAccountStore:
    """
    Account store keyed by user id.

    Linking the same account id twice replaces the stored tokens.
    """

    def __init__(self, encryption_key: str | None = None):
        self._cipher = self._get_cipher(encryption_key or os.getenv("MAILMATE_ENCRYPTION_KEY"))
        self._accounts: dict[str, dict[str, _StoredAccount]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _get_cipher(encryption_key: str | None) -> Fernet:
        """
        Raises:
            ValueError: key missing in production, or malformed
        """
        if not encryption_key:
            if is_production():
                raise ValueError(
                    "MAILMATE_ENCRYPTION_KEY environment variable must be set. "
                    "Generate one with: python -c "
                    "'from cryptography.fernet import Fernet; "
                    "print(Fernet.generate_key().decode())'"
                )
            logger.warning("MAILMATE_ENCRYPTION_KEY not set - using an ephemeral key")
            encryption_key = Fernet.generate_key().decode()

        try:
            return Fernet(encryption_key.encode())
        except Exception as e:
            raise ValueError(f"Invalid encryption key format: {e}") from e

    def _encrypt_token(self, token_dict: dict[str, Any]) -> str:
        try:
            return self._cipher.encrypt(json.dumps(token_dict).encode()).decode()
        except (TypeError, ValueError) as e:
            raise CredentialEncryptionError(f"Encryption failed: {e}") from e

    def _decrypt_token(self, encrypted_token: str) -> dict[str, Any]:
        try:
            return json.loads(self._cipher.decrypt(encrypted_token.encode()).decode())
        except (InvalidToken, ValueError) as e:
            raise CredentialEncryptionError("Decryption failed") from e

    def link_account(
        self,
        user_id: str,
        account_id: str,
        token_dict: dict[str, Any],
        label: str = "",
    ) -> Account:
        """
        Store or replace an account's tokens.

        ``token_dict`` uses OAuth field names: access_token, refresh_token,
        client_id, client_secret, token_uri, scope.
        """
        account = Account(id=account_id, label=label, alive=True, user_id=user_id)
        encrypted = self._encrypt_token(token_dict)
        with self._lock:
            self._accounts.setdefault(user_id, {})[account_id] = _StoredAccount(account, encrypted)
        logger.info("Linked mail account for user (accounts=%d)", len(self._accounts[user_id]))
        return account

    def unlink_account(self, user_id: str, account_id: str) -> bool:
        with self._lock:
            removed = self._accounts.get(user_id, {}).pop(account_id, None)
        return removed is not None

    def set_alive(self, user_id: str, account_id: str, alive: bool) -> None:
        with self._lock:
            stored = self._accounts.get(user_id, {}).get(account_id)
            if stored is not None:
                stored.account = stored.account.model_copy(update={"alive": alive})

    async def list_accounts(self, user_id: str) -> list[Account]:
        # Snapshot: later link/unlink calls do not affect an in-flight request
        with self._lock:
            return [stored.account for stored in self._accounts.get(user_id, {}).values()]

    async def get_credentials(self, user_id: str, account_id: str) -> CredentialBundle | None:
        """
        Raises:
            CredentialEncryptionError: stored token cannot be decrypted
        """
        with self._lock:
            stored = self._accounts.get(user_id, {}).get(account_id)
        if stored is None:
            return None

        token = self._decrypt_token(stored.encrypted_token)
        if not token.get("access_token"):
            return None

        scopes = token.get("scope") or token.get("scopes") or ()
        if isinstance(scopes, str):
            scopes = scopes.split()

        return CredentialBundle(
            account_id=account_id,
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token"),
            client_id=token.get("client_id"),
            client_secret=token.get("client_secret"),
            token_uri=token.get("token_uri") or GMAIL_TOKEN_URI,
            scopes=tuple(scopes),
        )
