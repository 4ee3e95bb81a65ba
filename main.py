import asyncio
import logging
from collections.abc import Sequence

import discord
import structlog
from discord.ext import commands

from config import BotConfig, load_from_env
from services import (
    ProviderVerifier,
    RoleReconciler,
    VerificationSweep,
    build_default_registry,
)
from utils.error_handling import handle_global_app_command_error
from utils.http_client import HTTPClient
from utils.logging import init_logging
from utils.repositories import (
    AccountRepository,
    ProviderLinkRepository,
    ServerSettingsRepository,
)
from utils.sqlalchemy_db import (
    SessionFactory,
    create_engine,
    create_session_maker,
    create_tables,
    make_session_factory,
)

INITIAL_EXTENSIONS = ["cogs.verification", "cogs.webhooks"]

logger = structlog.get_logger("main")


class SocialLink(commands.Bot):
    def __init__(
            self,
            *args,
            config: BotConfig,
            session_factory: SessionFactory,
            http_client: HTTPClient,
            initial_extensions: Sequence[str] = INITIAL_EXTENSIONS,
            **kwargs
    ):
        super().__init__(*args, **kwargs)
        self.config = config
        self.initial_extensions = initial_extensions
        self.session_factory = session_factory
        self.http_client = http_client

        self.link_repository = ProviderLinkRepository(session_factory)
        self.settings_repository = ServerSettingsRepository(
            session_factory, config.default_providers
        )
        self.registry = build_default_registry(http_client, config.github_required_scopes)
        self.verifier = ProviderVerifier(session_factory, self.registry, AccountRepository())
        self.reconciler = RoleReconciler(
            self,
            self.link_repository,
            self.settings_repository,
            config.supported_providers,
            fail_open=config.fail_open,
        )
        self.sweep = VerificationSweep(
            self.link_repository,
            self.verifier,
            self.registry,
            config.supported_providers,
            concurrency=config.sweep_concurrency,
            reconciler=self.reconciler if config.reconcile_after_sweep else None,
        )

    async def setup_hook(self) -> None:
        await self.load_extensions()

        # Register global error handler
        self.tree.error(self.on_app_command_error)

        logger.info("Started refreshing application (/) commands.")
        synced = await self.tree.sync()
        logger.info("Successfully reloaded application (/) commands.", count=len(synced))

    async def load_extensions(self):
        for extension in self.initial_extensions:
            try:
                await self.load_extension(extension)
            except Exception as e:
                logging.exception(f"Failed to load cog {extension} - {e}")

    async def on_ready(self):
        logger.info("bot_ready", user=str(self.user), user_id=self.user.id)
        await self.change_presence(activity=discord.Game(self.config.presence_text))

    async def on_app_command_error(
        self, interaction: discord.Interaction, error: discord.app_commands.AppCommandError
    ):
        """Global error handler for application command errors."""
        await handle_global_app_command_error(interaction, error)

    async def close(self) -> None:
        await super().close()
        await self.http_client.close()


async def main():
    config = load_from_env()
    init_logging(config.logging_level, config.logfile, config.log_format.value)
    logger.info("Logging started...", config=config.safe_dict())

    engine = create_engine(config.database_url, pool_size=config.db_pool_size)
    await create_tables(engine)
    session_factory = make_session_factory(create_session_maker(engine))
    http_client = HTTPClient(timeout=config.http_timeout)

    intents = discord.Intents.default()
    intents.members = True
    try:
        async with SocialLink(
                commands.when_mentioned,
                config=config,
                session_factory=session_factory,
                http_client=http_client,
                application_id=int(config.client_id),
                intents=intents
        ) as bot:
            await bot.start(config.bot_token)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
