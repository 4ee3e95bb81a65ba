"""Base cog class for Social Link Bot.

This module provides a base class for cogs with common functionality,
reducing code duplication across cogs.
"""

from typing import Any

import discord
import structlog
from discord.ext import commands


class BaseCog(commands.Cog):
    """Base class for cogs with common functionality.

    Attributes:
        bot: The bot instance. It carries the service handles built at startup
            (``config``, ``reconciler``, ``sweep``, ``link_repository``,
            ``settings_repository``).
        logger: Logger for this cog.
    """

    def __init__(self, bot: commands.Bot, name: str | None = None) -> None:
        """Initialize the cog.

        Args:
            bot: The bot instance.
            name: Optional name for the cog. If not provided, the class name will be used.
        """
        self.bot = bot
        # Use structured logging with hierarchical naming
        cog_name = name or self.__class__.__name__.lower().replace("cog", "")
        self.logger = structlog.get_logger(f"cogs.{cog_name}")

    async def log_command_usage(self, interaction: discord.Interaction, **extra: Any) -> None:
        """Log command usage with structured logging."""
        guild = interaction.guild
        self.logger.info(
            "command_used",
            command=interaction.command.name if interaction.command else None,
            user_id=interaction.user.id,
            guild_id=guild.id if guild else None,
            **extra,
        )
