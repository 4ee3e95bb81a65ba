"""Repository for provider link operations.

Read helpers open and close their own session. ``revoke`` takes the caller's
session so it can share a transaction with the account cleanup.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.tables.account import Account
from models.tables.provider_link import ProviderLink


@dataclass(frozen=True)
class CheckableLink:
    """An active link together with the credential stored for it."""

    discord_id: str
    provider: str
    provider_id: str
    access_token: str | None
    account_id: int | None
    user_id: int | None


class ProviderLinkRepository:
    """Repository for reading and revoking provider links."""

    def __init__(self, session_factory: Callable[[], Awaitable[AsyncSession]]) -> None:
        self.session_factory = session_factory
        self.logger = logging.getLogger(__name__)

    async def get_linked_providers(
        self, discord_id: str, providers: Sequence[str]
    ) -> dict[str, str] | None:
        """Map provider name to provider id for a user's active links.

        Args:
            discord_id: Normalized Discord user ID.
            providers: Only links to these providers are returned.

        Returns:
            The mapping (empty if the user has no links), or None if the
            query failed. When a provider has several active links the first
            one wins.
        """
        try:
            session = await self.session_factory()
            try:
                result = await session.execute(
                    select(ProviderLink)
                    .where(
                        ProviderLink.discord_id == discord_id,
                        ProviderLink.provider.in_(list(providers)),
                        ProviderLink.revoked_at.is_(None),
                    )
                    .order_by(ProviderLink.linked_at, ProviderLink.id)
                )
                linked: dict[str, str] = {}
                for link in result.scalars():
                    linked.setdefault(link.provider, link.provider_id)
                return linked
            finally:
                await session.close()
        except Exception as e:
            self.logger.error(f"Error getting provider links for {discord_id}: {e}")
            return None

    async def find_discord_id(self, provider: str, provider_id: str) -> str | None:
        """Get the Discord ID owning the active link for a provider identity.

        Args:
            provider: The provider name.
            provider_id: The identity within that provider, e.g. a wallet address.

        Returns:
            The Discord ID, or None if no active link exists or the read failed.
        """
        try:
            session = await self.session_factory()
            try:
                result = await session.execute(
                    select(ProviderLink.discord_id)
                    .where(
                        ProviderLink.provider == provider,
                        ProviderLink.provider_id == provider_id,
                        ProviderLink.revoked_at.is_(None),
                    )
                    .order_by(ProviderLink.linked_at, ProviderLink.id)
                    .limit(1)
                )
                return result.scalar_one_or_none()
            finally:
                await session.close()
        except Exception as e:
            self.logger.error(
                f"Error finding link for {provider} identity {provider_id}: {e}"
            )
            return None

    async def get_checkable_links(
        self, providers: Sequence[str]
    ) -> list[CheckableLink] | None:
        """Get every active link for the given providers with its credential.

        Links whose account row is missing are still returned, with an empty
        credential, so the verifier can revoke them.

        Args:
            providers: Providers whose credentials can be re-checked.

        Returns:
            The links, or None if the query failed.
        """
        if not providers:
            return []
        # One account per identity, the oldest, so no link is checked twice
        first_account = (
            select(func.min(Account.id).label("id"))
            .group_by(Account.provider, Account.provider_account_id)
            .subquery()
        )
        try:
            session = await self.session_factory()
            try:
                result = await session.execute(
                    select(
                        ProviderLink.discord_id,
                        ProviderLink.provider,
                        ProviderLink.provider_id,
                        Account.access_token,
                        Account.id.label("account_id"),
                        Account.user_id,
                    )
                    .outerjoin(
                        Account,
                        and_(
                            Account.provider_account_id == ProviderLink.provider_id,
                            Account.provider == ProviderLink.provider,
                            Account.id.in_(select(first_account.c.id)),
                        ),
                    )
                    .where(
                        ProviderLink.provider.in_(list(providers)),
                        ProviderLink.revoked_at.is_(None),
                    )
                    .order_by(ProviderLink.id)
                )
                return [
                    CheckableLink(
                        discord_id=row.discord_id,
                        provider=row.provider,
                        provider_id=row.provider_id,
                        access_token=row.access_token,
                        account_id=row.account_id,
                        user_id=row.user_id,
                    )
                    for row in result
                ]
            finally:
                await session.close()
        except Exception as e:
            self.logger.error(f"Error getting checkable provider links: {e}")
            return None

    @staticmethod
    async def revoke(
        session: AsyncSession,
        provider: str,
        provider_id: str,
        revoked_at: datetime | None = None,
    ) -> int:
        """Mark the active link for a provider identity as revoked.

        Must be called inside the caller's transaction.

        Returns:
            The number of links revoked.
        """
        revoked_at = revoked_at or datetime.now(UTC).replace(tzinfo=None)
        result = await session.execute(
            update(ProviderLink)
            .where(
                ProviderLink.provider == provider,
                ProviderLink.provider_id == provider_id,
                ProviderLink.revoked_at.is_(None),
            )
            .values(revoked_at=revoked_at)
        )
        return result.rowcount
