"""Account session resolver.

Turns a user identity into the accounts a request fans out over, each with a
freshly resolved credential bundle. A problem with one account never blocks
the others: it is skipped with a logged reason.
"""

from __future__ import annotations

from mailmate.errors import AccountNotFoundError
from mailmate.observability.logging import get_logger
from mailmate.observability.telemetry import counter, hash_id, log_event
from mailmate.storage.accounts import AccountStore
from mailmate.storage.models import Account, CredentialBundle

logger = get_logger(__name__)

ResolvedAccount = tuple[Account, CredentialBundle]


class AccountSessionResolver:
    def __init__(self, store: AccountStore):
        self.store = store

    async def resolve_accounts(self, user_id: str) -> list[ResolvedAccount]:
        """
        Resolve every usable account for ``user_id``.

        Returns an empty list (not an error) when the user has no linked
        accounts or the account listing itself fails.
        """
        try:
            accounts = await self.store.list_accounts(user_id)
        except Exception as e:
            logger.error("Account listing failed for user %s: %s", hash_id(user_id), e)
            counter("resolver.list_failed")
            return []

        resolved: list[ResolvedAccount] = []
        for account in accounts:
            credentials = await self._credentials_for(user_id, account)
            if credentials is not None:
                resolved.append((account, credentials))

        log_event(
            "resolver.accounts_resolved",
            user=hash_id(user_id),
            linked=len(accounts),
            resolved=len(resolved),
        )
        return resolved

    async def resolve_account(self, user_id: str, account_id: str) -> ResolvedAccount:
        """
        Resolve a single account for single-account operations.

        Raises:
            AccountNotFoundError: unknown account or no usable credentials
        """
        accounts = await self.store.list_accounts(user_id)
        account = next((a for a in accounts if a.id == account_id), None)
        if account is None:
            raise AccountNotFoundError(account_id)

        credentials = await self._credentials_for(user_id, account, require_alive=False)
        if credentials is None:
            raise AccountNotFoundError(account_id)
        return account, credentials

    async def _credentials_for(
        self, user_id: str, account: Account, require_alive: bool = True
    ) -> CredentialBundle | None:
        reason: str | None = None
        credentials: CredentialBundle | None = None

        if require_alive and not account.alive:
            reason = "connection not alive"
        else:
            try:
                credentials = await self.store.get_credentials(user_id, account.id)
            except Exception as e:
                reason = f"credential lookup failed ({type(e).__name__})"
            else:
                if credentials is None:
                    reason = "no credentials (expired or revoked)"

        if reason is not None:
            logger.warning("Skipping account %s: %s", hash_id(account.id), reason)
            counter("resolver.account_skipped")
            return None
        return credentials
