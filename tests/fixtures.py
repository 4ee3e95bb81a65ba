"""
Test fixtures for Social Link Bot.

This module provides helpers for loading identities into the test database
and reading back what the code under test left there.
"""

import os
import sys
from datetime import datetime
from typing import Any

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from sqlalchemy import func, select

from models.tables import Account, ProviderLink, ServerSettings, User


class TestDataFixture:
    """
    Fixture for loading test data into the database.

    Every method opens its own session, so data written here is visible to
    repositories built on the same session factory.
    """

    __test__ = False  # Tell pytest this is not a test class

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def add(self, *rows: Any) -> tuple[Any, ...]:
        """Insert ``rows`` in one transaction and return them refreshed."""
        session = await self.session_factory()
        try:
            async with session.begin():
                session.add_all(rows)
            for row in rows:
                await session.refresh(row)
            return rows
        finally:
            await session.close()

    async def add_link(
        self,
        discord_id: str,
        provider: str,
        provider_id: str,
        linked_at: datetime | None = None,
        revoked_at: datetime | None = None,
        user_id: int | None = None,
    ) -> ProviderLink:
        values: dict[str, Any] = {
            "discord_id": discord_id,
            "provider": provider,
            "provider_id": provider_id,
            "revoked_at": revoked_at,
            "user_id": user_id,
        }
        if linked_at is not None:
            values["linked_at"] = linked_at
        (link,) = await self.add(ProviderLink(**values))
        return link

    async def add_identity(
        self,
        discord_id: str,
        provider: str,
        provider_id: str,
        access_token: str | None = "token",
    ) -> tuple[User, Account, ProviderLink]:
        """Create the user, account and active link the sign-in flow would create."""
        (user,) = await self.add(User(name=f"user-{discord_id}"))
        (account,) = await self.add(
            Account(
                user_id=user.id,
                provider=provider,
                provider_account_id=provider_id,
                access_token=access_token,
            )
        )
        link = await self.add_link(discord_id, provider, provider_id, user_id=user.id)
        return user, account, link

    async def add_settings(
        self, guild_id: int, role_id: int | None, providers: list[str]
    ) -> ServerSettings:
        (settings,) = await self.add(
            ServerSettings(guild_id=guild_id, role_id=role_id, providers=providers)
        )
        return settings

    async def get(self, model, primary_key) -> Any:
        session = await self.session_factory()
        try:
            return await session.get(model, primary_key)
        finally:
            await session.close()

    async def count(self, model) -> int:
        session = await self.session_factory()
        try:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar_one()
        finally:
            await session.close()
