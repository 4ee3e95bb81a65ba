"""Re-checks a stored provider credential and revokes the link when it fails."""

from datetime import UTC, datetime

import structlog

from services.providers import ProviderRegistry
from utils.repositories import AccountRepository, ProviderLinkRepository
from utils.sqlalchemy_db import SessionFactory


class ProviderVerifier:
    """Confirms provider credentials and purges the ones that were revoked.

    A credential counts as valid only when the provider's strategy says so.
    Every other outcome, including a failed HTTP call or a provider without
    a strategy, revokes the link and deletes the account and user rows
    behind it in one transaction. Discord roles are never touched here.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        registry: ProviderRegistry,
        accounts: AccountRepository | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.accounts = accounts or AccountRepository()
        self.logger = structlog.get_logger("services.verifier")

    async def verify_credential(
        self, provider: str, access_token: str | None, provider_id: str
    ) -> bool:
        """Check one credential, revoking its link if it is no longer authorized.

        Args:
            provider: The provider name.
            access_token: The stored bearer credential.
            provider_id: The identity within the provider.

        Returns:
            True if the credential is still authorized, False otherwise
            (whether or not the revocation itself succeeded).
        """
        if await self._is_authorized(provider, access_token, provider_id):
            return True

        await self.revoke(provider, provider_id)
        return False

    async def _is_authorized(
        self, provider: str, access_token: str | None, provider_id: str
    ) -> bool:
        strategy = self.registry.get(provider)
        if strategy is None:
            self.logger.warning(
                "verification_strategy_missing", provider=provider, provider_id=provider_id
            )
            return False

        try:
            return await strategy.is_still_authorized(access_token, provider_id)
        except Exception as e:
            self.logger.warning(
                "verification_check_failed",
                provider=provider,
                provider_id=provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def revoke(self, provider: str, provider_id: str) -> bool:
        """Revoke the active link and delete its account and user, atomically.

        If no account exists for the identity the revocation is committed on
        its own. Any error rolls the whole transaction back.

        Returns:
            True if the transaction committed, False if it was rolled back.
        """
        revoked_at = datetime.now(UTC).replace(tzinfo=None)
        try:
            session = await self.session_factory()
            try:
                async with session.begin():
                    revoked = await ProviderLinkRepository.revoke(
                        session, provider, provider_id, revoked_at
                    )
                    account = await self.accounts.find_by_provider_account(
                        session, provider, provider_id
                    )
                    if account is None:
                        self.logger.info(
                            "link_revoked",
                            provider=provider,
                            provider_id=provider_id,
                            links=revoked,
                            account_deleted=False,
                        )
                        return True

                    await self.accounts.delete_with_user(session, account)

                self.logger.info(
                    "link_revoked",
                    provider=provider,
                    provider_id=provider_id,
                    links=revoked,
                    account_deleted=True,
                    user_id=account.user_id,
                )
                return True
            finally:
                await session.close()
        except Exception as e:
            self.logger.error(
                "link_revocation_aborted",
                provider=provider,
                provider_id=provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
