"""Permission utilities for Social Link Bot.

Commands that change a server's verification settings, or read another
user's links, require the Manage Roles permission. The configured developer
passes every check so they can support servers they do not administer.
"""

import logging

import discord

from utils.exceptions import GuildError, RolePermissionError

logger = logging.getLogger("permissions")


def is_developer(user: discord.abc.User, developer_id: int | None) -> bool:
    """Check if ``user`` is the configured developer."""
    return developer_id is not None and user.id == developer_id


def can_manage_roles(interaction: discord.Interaction, developer_id: int | None = None) -> bool:
    """Check if the invoking user may manage the verified role.

    Args:
        interaction: The interaction object
        developer_id: The configured developer override, if any

    Returns:
        bool: True if the user has Manage Roles in this guild or is the developer
    """
    if is_developer(interaction.user, developer_id):
        return True

    permissions = getattr(interaction, "permissions", None)
    if permissions is None:
        permissions = getattr(interaction.user, "guild_permissions", None)
    return bool(permissions and permissions.manage_roles)


def require_guild(interaction: discord.Interaction) -> discord.Guild:
    """Return the interaction's guild or raise if it was used in a DM."""
    if interaction.guild is None:
        raise GuildError()
    return interaction.guild


def require_manage_roles(
    interaction: discord.Interaction, developer_id: int | None = None
) -> None:
    """Raise RolePermissionError unless the user passes ``can_manage_roles``."""
    if not can_manage_roles(interaction, developer_id):
        logger.warning(
            f"Permission denied for user {interaction.user.id} in guild "
            f"{interaction.guild.id if interaction.guild else None}"
        )
        raise RolePermissionError("manage_roles")
