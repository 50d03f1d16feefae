from __future__ import annotations

import asyncio
from typing import Any

import discord
import mafic
from discord import app_commands
from discord.ext import commands
from loguru import logger

from .config import Settings, get_settings
from .clients.lavalink import LavalinkPlayback
from .cogs.music import GENERIC_ERROR, MusicCog
from .domain.models import PlaySession
from .services.play_session_service import PlaySessionService
from .utils.cache import TTLCache
from .utils.logging import setup_logging


class TuneBot(commands.Bot):
    def __init__(self, settings: Settings | None = None):
        super().__init__(command_prefix="!", intents=discord.Intents.default())
        self.settings = settings or get_settings()
        setup_logging(self.settings.log_level)

        self.pool = mafic.NodePool(self)
        self.session_cache: TTLCache[str, PlaySession] = TTLCache(
            self.settings.session_ttl_seconds,
            sweep_interval_seconds=self.settings.cache_sweep_seconds,
        )
        self.playback = LavalinkPlayback(self, idle_disconnect_seconds=self.settings.idle_disconnect_seconds)
        self.sessions = PlaySessionService(
            self.session_cache,
            self.playback,
            default_source=self.settings.search_source,
            max_results=self.settings.max_menu_results,
        )
        self.tree.error(self._on_app_command_error)

    async def setup_hook(self):
        asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
        self.session_cache.start()

        await self.pool.create_node(
            host=self.settings.lavalink_host,
            port=self.settings.lavalink_port,
            label="local",
            password=self.settings.lavalink_password,
        )

        await self.add_cog(
            MusicCog(
                self,
                self.sessions,
                self.playback,
                component_timeout=self.settings.component_timeout_seconds,
            )
        )

        # Fast sync on the dev guild
        if self.settings.discord_guild_id:
            guild = discord.Object(id=self.settings.discord_guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
        else:
            await self.tree.sync()

    async def on_ready(self):
        logger.info("logged in as {}", self.user)

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        logger.exception("unhandled error in {}", event_method)

    async def _on_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        command = interaction.command.name if interaction.command else "?"
        logger.opt(exception=error).error("command /{} failed", command)
        try:
            if interaction.response.is_done():
                await interaction.edit_original_response(content=GENERIC_ERROR, view=None)
            else:
                await interaction.response.send_message(GENERIC_ERROR, ephemeral=True)
        except discord.HTTPException as e:
            logger.warning("could not report command failure: {}", e)

    async def close(self):
        await self.session_cache.close()
        await self.playback.close()
        await super().close()


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    if exc is not None:
        logger.opt(exception=exc).error("uncaught async error: {}", context.get("message", ""))
    else:
        logger.error("uncaught async error: {}", context.get("message", context))
