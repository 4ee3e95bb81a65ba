"""Slash commands, member-join handling and the scheduled verification sweep."""

from collections.abc import Sequence

import discord
from discord import app_commands
from discord.ext import commands, tasks

from services.role_reconciler import normalize_discord_id
from utils.base_cog import BaseCog
from utils.error_handling import handle_interaction_errors
from utils.exceptions import DatabaseError, ValidationError
from utils.permissions import require_guild, require_manage_roles

PROVIDER_LABELS = {
    "ethereum": "Address",
    "twitter": "Twitter",
    "google": "Google",
    "github": "GitHub",
    "discord": "Discord",
}


def parse_provider_list(raw: str, supported: Sequence[str]) -> list[str]:
    """Parse a comma separated provider list for /setproviders.

    Names are trimmed and duplicates dropped, keeping the first occurrence.
    The whole list is rejected if any name is not supported.

    Raises:
        ValidationError: If the list is empty or names an unsupported provider.
    """
    providers: list[str] = []
    for name in raw.split(","):
        name = name.strip()
        if name and name not in providers:
            providers.append(name)

    if not providers:
        raise ValidationError("providers", "Please name at least one provider")

    invalid = [name for name in providers if name not in supported]
    if invalid:
        raise ValidationError(
            "providers",
            f"Invalid provider options: {', '.join(invalid)}. "
            f"Supported providers are {', '.join(supported)}",
        )
    return providers


class VerificationCog(BaseCog, name="Verification"):
    """Admin configuration and queries for the verified role."""

    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, name="verification")
        self.config = bot.config

    async def cog_load(self) -> None:
        self.sweep_loop.change_interval(minutes=self.config.sweep_interval_minutes)
        self.sweep_loop.start()

    async def cog_unload(self) -> None:
        self.sweep_loop.cancel()

    @property
    def supported_providers(self) -> list[str]:
        return list(self.config.supported_providers)

    @tasks.loop(minutes=20)
    async def sweep_loop(self) -> None:
        # The first iteration fires as soon as the loop starts; wait a full interval instead
        if self.sweep_loop.current_loop == 0:
            return
        report = await self.bot.sweep.run_sweep()
        if not report.success:
            self.logger.error("scheduled_sweep_failed")

    @sweep_loop.before_loop
    async def before_sweep_loop(self) -> None:
        await self.bot.wait_until_ready()

    @sweep_loop.error
    async def sweep_loop_error(self, error: BaseException) -> None:
        self.logger.error(
            "scheduled_sweep_crashed", error=str(error), error_type=type(error).__name__
        )

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        self.logger.info("member_joined", guild_id=member.guild.id, discord_id=member.id)
        await self.bot.reconciler.reconcile_user(str(member.id))

    @app_commands.command(name="info", description="Returns the users details")
    @app_commands.describe(discord_id="The discord id of the user")
    @handle_interaction_errors
    async def info(self, interaction: discord.Interaction, discord_id: str) -> None:
        """Show the providers a user has linked."""
        require_manage_roles(interaction, self.config.developer_id)
        await self.log_command_usage(interaction, target=discord_id)

        normalized = normalize_discord_id(discord_id)
        linked = await self.bot.link_repository.get_linked_providers(
            normalized, self.supported_providers
        )
        if not linked:
            await interaction.response.send_message("No user found", ephemeral=True)
            return

        lines = [f"Discord ID: {normalized}"]
        for provider in self.supported_providers:
            label = PROVIDER_LABELS.get(provider, provider.capitalize())
            lines.append(f"{label}: {linked.get(provider, 'Not linked')}")
        await interaction.response.send_message("\n".join(lines), ephemeral=True)

    @app_commands.command(
        name="setrole", description="Sets the verified role for the server"
    )
    @app_commands.describe(role="The role to set")
    @app_commands.default_permissions(manage_roles=True)
    @handle_interaction_errors
    async def setrole(self, interaction: discord.Interaction, role: discord.Role) -> None:
        """Set the verified role and resync every member."""
        guild = require_guild(interaction)
        require_manage_roles(interaction, self.config.developer_id)
        await self.log_command_usage(interaction, role_id=role.id)

        settings = await self.bot.settings_repository.set_role(guild.id, role.id)
        if settings is None:
            raise DatabaseError("Could not save the verified role")

        await interaction.response.send_message("Verified role set")
        await self.bot.reconciler.reconcile_guild(guild)

    @app_commands.command(
        name="displayrole", description="Displays the verified role for the server"
    )
    @handle_interaction_errors
    async def displayrole(self, interaction: discord.Interaction) -> None:
        guild = require_guild(interaction)

        role_id = await self.bot.settings_repository.get_role_id(guild.id)
        role = guild.get_role(role_id) if role_id else None
        if role is None:
            await interaction.response.send_message("No role set")
            return
        await interaction.response.send_message(f"Role set to {role.name}")

    @app_commands.command(name="sync", description="Re-syncs every user on the server")
    @app_commands.default_permissions(manage_roles=True)
    @handle_interaction_errors
    async def sync(self, interaction: discord.Interaction) -> None:
        guild = require_guild(interaction)
        require_manage_roles(interaction, self.config.developer_id)
        await self.log_command_usage(interaction)

        await interaction.response.send_message("Resyncing users")
        await self.bot.reconciler.reconcile_guild(guild)

    @app_commands.command(
        name="setproviders",
        description="Sets the verification providers for the server in the form of <provider>,<provider>,...",
    )
    @app_commands.describe(providers="The providers to set")
    @app_commands.default_permissions(manage_roles=True)
    @handle_interaction_errors
    async def setproviders(self, interaction: discord.Interaction, providers: str) -> None:
        """Replace the providers a member must link, then resync every member."""
        guild = require_guild(interaction)
        require_manage_roles(interaction, self.config.developer_id)
        await self.log_command_usage(interaction, providers=providers)

        provider_list = parse_provider_list(providers, self.supported_providers)
        settings = await self.bot.settings_repository.set_providers(guild.id, provider_list)
        if settings is None:
            raise DatabaseError("Could not save the providers")

        await interaction.response.send_message(
            f"Providers set to {', '.join(provider_list)}"
        )
        await self.bot.reconciler.reconcile_guild(guild)

    @app_commands.command(
        name="listproviders",
        description="Lists the verification providers for the server",
    )
    @handle_interaction_errors
    async def listproviders(self, interaction: discord.Interaction) -> None:
        guild = require_guild(interaction)

        providers = await self.bot.settings_repository.get_providers(guild.id)
        if not providers:
            await interaction.response.send_message("No providers set")
            return
        await interaction.response.send_message(f"Providers set to {', '.join(providers)}")

    @app_commands.command(
        name="supportedproviders",
        description="Lists the supported verification providers",
    )
    @handle_interaction_errors
    async def supportedproviders(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(
            f"Currently supports {', '.join(self.supported_providers)}"
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(VerificationCog(bot))
