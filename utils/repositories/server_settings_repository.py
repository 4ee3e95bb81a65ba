"""Repository for server settings operations."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.tables.server_settings import ServerSettings


class ServerSettingsRepository:
    """Repository for managing per-guild verification settings."""

    def __init__(
        self,
        session_factory: Callable[[], Awaitable[AsyncSession]],
        default_providers: Sequence[str],
    ) -> None:
        self.session_factory = session_factory
        self.default_providers = list(default_providers)
        self.logger = logging.getLogger(__name__)

    async def get_by_guild_id(self, guild_id: int) -> ServerSettings | None:
        """Get server settings for a guild.

        Args:
            guild_id: The Discord guild ID.

        Returns:
            ServerSettings entry or None if not found or the read failed.
        """
        try:
            session = await self.session_factory()
            try:
                result = await session.execute(
                    select(ServerSettings).where(ServerSettings.guild_id == guild_id)
                )
                return result.scalar_one_or_none()
            finally:
                await session.close()
        except Exception as e:
            self.logger.error(
                f"Error getting server settings for guild {guild_id}: {e}"
            )
            return None

    async def get_role_id(self, guild_id: int) -> int | None:
        """Get the verified role ID for a guild, or None if not configured."""
        settings = await self.get_by_guild_id(guild_id)
        return settings.role_id if settings else None

    async def get_providers(self, guild_id: int) -> list[str] | None:
        """Get the required providers for a guild, or None if not configured."""
        settings = await self.get_by_guild_id(guild_id)
        return list(settings.providers) if settings else None

    async def set_role(self, guild_id: int, role_id: int) -> ServerSettings | None:
        """Set the verified role, creating the guild's settings if needed.

        Args:
            guild_id: The Discord guild ID.
            role_id: The role granted to verified members.

        Returns:
            The stored ServerSettings entry or None if the write failed.
        """
        return await self._upsert(guild_id, role_id=role_id)

    async def set_providers(
        self, guild_id: int, providers: Sequence[str]
    ) -> ServerSettings | None:
        """Replace the required providers, creating the guild's settings if needed.

        Args:
            guild_id: The Discord guild ID.
            providers: Provider names, already validated, in display order.

        Returns:
            The stored ServerSettings entry or None if the write failed.
        """
        return await self._upsert(guild_id, providers=list(providers))

    async def _upsert(self, guild_id: int, **values: Any) -> ServerSettings | None:
        now = datetime.now(UTC).replace(tzinfo=None)
        try:
            session = await self.session_factory()
            try:
                async with session.begin():
                    result = await session.execute(
                        select(ServerSettings).where(
                            ServerSettings.guild_id == guild_id
                        )
                    )
                    entry = result.scalar_one_or_none()
                    if entry is None:
                        entry = ServerSettings(
                            guild_id=guild_id,
                            providers=list(self.default_providers),
                            created_at=now,
                        )
                        session.add(entry)
                        self.logger.info(f"Created server settings for guild {guild_id}")

                    for field, value in values.items():
                        setattr(entry, field, value)
                    entry.updated_at = now

                await session.refresh(entry)
                self.logger.info(
                    f"Updated server settings for guild {guild_id}: {', '.join(values)}"
                )
                return entry
            finally:
                await session.close()
        except Exception as e:
            self.logger.error(f"Error updating server settings for guild {guild_id}: {e}")
            return None
