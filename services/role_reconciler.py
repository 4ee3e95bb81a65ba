"""Keeps each member's verified role in line with their server's provider policy."""

import enum
import re
from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import Protocol

import discord
import structlog

from utils.repositories import ProviderLinkRepository, ServerSettingsRepository

MENTION_PATTERN = re.compile(r"^<@!?(\d+)>$")


class ReconcileOutcome(str, enum.Enum):
    GRANTED = "granted"
    REVOKED = "revoked"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


class GuildSource(Protocol):
    """Anything that knows which guilds the bot is in (the bot itself in production)."""

    @property
    def guilds(self) -> Sequence[discord.Guild]: ...


def normalize_discord_id(discord_id: str | int) -> str:
    """Strip a ``<@id>`` or ``<@!id>`` mention down to the bare id."""
    value = str(discord_id).strip()
    match = MENTION_PATTERN.match(value)
    if match:
        return match.group(1)
    return value


def is_policy_satisfied(required: Iterable[str], linked: Mapping[str, str]) -> bool:
    """A member satisfies a server iff every required provider is linked."""
    return all(provider in linked for provider in required)


class RoleReconciler:
    """Grants or revokes the verified role for a user in every guild.

    Each call recomputes the desired state from the user's active links and
    the guild's settings; nothing about previous decisions is stored. A
    failure in one guild is logged and never stops the others.
    """

    def __init__(
        self,
        client: GuildSource,
        links: ProviderLinkRepository,
        settings: ServerSettingsRepository,
        supported_providers: Collection[str],
        fail_open: bool = False,
    ) -> None:
        self.client = client
        self.links = links
        self.settings = settings
        self.supported_providers = list(supported_providers)
        self.fail_open = fail_open
        self.logger = structlog.get_logger("services.reconciler")

    async def get_linked_providers(self, discord_id: str | int) -> dict[str, str]:
        """Map provider to provider id for a user's active, supported links.

        If the links cannot be read the user is treated as having nothing
        linked, unless ``fail_open`` is set, in which case every supported
        provider counts as linked.
        """
        normalized = normalize_discord_id(discord_id)
        linked = await self.links.get_linked_providers(
            normalized, self.supported_providers
        )
        if linked is not None:
            return linked

        self.logger.warning(
            "linked_providers_unavailable",
            discord_id=normalized,
            fail_open=self.fail_open,
        )
        if self.fail_open:
            return {provider: "" for provider in self.supported_providers}
        return {}

    async def reconcile_user(self, discord_id: str | int) -> dict[int, ReconcileOutcome]:
        """Recompute the verified role for one user in every guild the bot is in.

        Returns:
            The outcome per guild ID.
        """
        normalized = normalize_discord_id(discord_id)
        linked = await self.get_linked_providers(normalized)

        outcomes: dict[int, ReconcileOutcome] = {}
        for guild in list(self.client.guilds):
            outcomes[guild.id] = await self.reconcile_member_in_guild(
                normalized, guild, linked
            )
        return outcomes

    async def reconcile_member_in_guild(
        self, discord_id: str, guild: discord.Guild, linked: Mapping[str, str]
    ) -> ReconcileOutcome:
        try:
            member = await self._resolve_member(guild, discord_id)
            if member is None:
                return ReconcileOutcome.SKIPPED

            settings = await self.settings.get_by_guild_id(guild.id)
            if settings is None or settings.role_id is None:
                self.logger.debug("guild_not_configured", guild_id=guild.id)
                return ReconcileOutcome.SKIPPED

            role = guild.get_role(settings.role_id)
            if role is None:
                self.logger.warning(
                    "verified_role_missing", guild_id=guild.id, role_id=settings.role_id
                )
                return ReconcileOutcome.SKIPPED

            has_role = any(existing.id == role.id for existing in member.roles)
            if is_policy_satisfied(settings.providers, linked):
                if has_role:
                    return ReconcileOutcome.UNCHANGED
                await member.add_roles(role, reason="Linked all required providers")
                self.logger.info(
                    "role_granted", guild_id=guild.id, discord_id=discord_id, role_id=role.id
                )
                return ReconcileOutcome.GRANTED

            if not has_role:
                return ReconcileOutcome.UNCHANGED
            await member.remove_roles(role, reason="Missing required provider links")
            self.logger.info(
                "role_revoked", guild_id=guild.id, discord_id=discord_id, role_id=role.id
            )
            return ReconcileOutcome.REVOKED
        except Exception as e:
            self.logger.error(
                "guild_reconciliation_failed",
                guild_id=guild.id,
                discord_id=discord_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ReconcileOutcome.FAILED

    async def _resolve_member(
        self, guild: discord.Guild, discord_id: str
    ) -> discord.Member | None:
        if not discord_id.isdigit():
            self.logger.debug("invalid_discord_id", discord_id=discord_id)
            return None

        member_id = int(discord_id)
        member = guild.get_member(member_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(member_id)
        except discord.NotFound:
            self.logger.debug("member_not_in_guild", guild_id=guild.id, discord_id=discord_id)
            return None

    async def reconcile_guild(self, guild: discord.Guild) -> int:
        """Reconcile every member of ``guild``, one after another.

        Each member is reconciled across all guilds, as a join would be.

        Returns:
            The number of members processed.
        """
        processed = 0
        async for member in guild.fetch_members(limit=None):
            await self.reconcile_user(str(member.id))
            processed += 1

        self.logger.info("guild_resynced", guild_id=guild.id, members=processed)
        return processed
