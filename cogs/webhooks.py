"""HTTP endpoints that let the linking website drive the bot.

``POST /discord`` reconciles one user's roles after they change a link and
``POST /checkAuth`` runs a verification sweep on demand. When a webhook
secret is configured every request must carry it in ``X-Webhook-Secret``.
"""

import hmac
import json

from aiohttp import web
from discord.ext import commands

from utils.base_cog import BaseCog
from utils.logging import RequestContext

SECRET_HEADER = "X-Webhook-Secret"


def normalize_discord_id(value) -> str | None:
    """Return ``value`` as a snowflake string, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not (value.isascii() and value.isdigit()) or int(value) == 0:
        return None
    return value


class WebhookCog(BaseCog, name="Webhooks"):
    def __init__(self, bot: commands.Bot) -> None:
        super().__init__(bot, name="webhooks")
        self.config = bot.config
        self.runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        secret = self.config.webhook_secret

        @web.middleware
        async def check_secret(request: web.Request, handler):
            if secret and not hmac.compare_digest(
                request.headers.get(SECRET_HEADER, ""), secret
            ):
                self.logger.warning(
                    "webhook_unauthorized", path=request.path, remote=request.remote
                )
                return web.json_response({"error": "unauthorized"}, status=401)
            return await handler(request)

        app = web.Application(middlewares=[check_secret])
        app.router.add_post("/discord", self.handle_discord)
        app.router.add_post("/checkAuth", self.handle_check_auth)
        return app

    async def cog_load(self) -> None:
        self.runner = web.AppRunner(self.build_app())
        await self.runner.setup()
        site = web.TCPSite(self.runner, self.config.webhook_host, self.config.webhook_port)
        await site.start()
        self.logger.info(
            "webhook_server_started",
            host=self.config.webhook_host,
            port=self.config.webhook_port,
        )

    async def cog_unload(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
            self.logger.info("webhook_server_stopped")

    async def handle_discord(self, request: web.Request) -> web.Response:
        """Recompute one user's roles in every guild.

        The body names the user either by Discord ``id`` or by the Ethereum
        ``address`` they linked.
        """
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response({"error": "body must be JSON"}, status=400)
        if not isinstance(body, dict):
            return web.json_response({"error": "body must be a JSON object"}, status=400)

        discord_id = normalize_discord_id(body.get("id"))
        address = body.get("address")
        if not isinstance(address, str) or not address.strip():
            address = None
        if discord_id is None and address is None:
            return web.json_response({"error": "missing id or address"}, status=400)

        async with RequestContext(self.logger, "webhook_discord"):
            if discord_id is None:
                discord_id = await self.bot.link_repository.find_discord_id(
                    "ethereum", address.strip()
                )
                if discord_id is None:
                    self.logger.info("webhook_unknown_address", address=address)
                    return web.json_response({"error": "unknown address"}, status=404)

            outcomes = await self.bot.reconciler.reconcile_user(str(discord_id))
            self.logger.info(
                "webhook_user_reconciled",
                discord_id=str(discord_id),
                guilds=len(outcomes),
            )
        return web.Response(text="OK")

    async def handle_check_auth(self, request: web.Request) -> web.Response:
        async with RequestContext(self.logger, "webhook_check_auth"):
            report = await self.bot.sweep.run_sweep()
        if not report.success:
            return web.json_response({"error": "verification sweep failed"}, status=500)
        return web.json_response(
            {
                "checked": len(report.outcomes),
                "revoked": sum(1 for outcome in report.outcomes if not outcome.verified),
            }
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(WebhookCog(bot))
