"""Repository for the account and user rows behind a provider link."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.tables.account import Account
from models.tables.user import User


class AccountRepository:
    """Transactional helpers for accounts and their users.

    Every method runs on the caller's session so that a revocation and the
    cleanup it triggers commit or roll back together.
    """

    @staticmethod
    async def find_by_provider_account(
        session: AsyncSession, provider: str, provider_account_id: str
    ) -> Account | None:
        result = await session.execute(
            select(Account)
            .where(
                Account.provider_account_id == provider_account_id,
                Account.provider == provider,
            )
            .order_by(Account.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_with_user(session: AsyncSession, account: Account) -> None:
        """Delete the account's user, then the account itself."""
        await session.execute(delete(User).where(User.id == account.user_id))
        await session.execute(delete(Account).where(Account.id == account.id))
