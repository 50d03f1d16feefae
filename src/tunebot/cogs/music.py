from __future__ import annotations

import discord
import mafic
from discord import app_commands
from discord.ext import commands
from loguru import logger

from ..clients.lavalink import LavalinkPlayback
from ..domain.errors import NothingPlaying, OwnershipMismatch, PlaybackError, SessionExpired
from ..domain.models import ActionOutcome
from ..services.play_session_service import PlaySessionService
from ..ui.views import SessionControlsView, SessionView, TrackSelectView
from ..utils.custom_ids import ComponentAction
from ..utils.discord_helpers import build_now_queued_embed, finalize_message

GENERIC_ERROR = "❌ Something went wrong. Check the bot logs."


def _voice_channel(interaction: discord.Interaction) -> discord.abc.Connectable | None:
    user = interaction.user
    if isinstance(user, discord.Member) and user.voice and user.voice.channel:
        return user.voice.channel
    return None


def _notice(error: PlaybackError) -> str:
    if isinstance(error, SessionExpired):
        return f"⌛ {error.user_message}"
    return f"❌ {error.user_message}"


async def _finish(view: SessionView, message: discord.Message | None, content: str) -> None:
    """Stop the view and leave the message non-interactive, once."""
    if view.is_finished():
        return
    view.stop()
    await finalize_message(message, content)


async def _reply_ephemeral(interaction: discord.Interaction, content: str) -> None:
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True)
        else:
            await interaction.response.send_message(content, ephemeral=True)
    except discord.HTTPException as e:
        logger.warning("ephemeral reply failed: {}", e)


class MusicCog(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        sessions: PlaySessionService,
        playback: LavalinkPlayback,
        *,
        component_timeout: float = 60,
    ):
        self.bot = bot
        self._sessions = sessions
        self._playback = playback
        self._component_timeout = component_timeout

    # -----------------------------
    # Commands
    # -----------------------------
    @app_commands.command(name="join", description="Join your voice channel")
    @app_commands.guild_only()
    async def join(self, interaction: discord.Interaction):
        try:
            await self._playback.connect(interaction.guild_id, _voice_channel(interaction))
        except PlaybackError as e:
            logger.info("join refused in guild {}: {}", interaction.guild_id, e)
            await _reply_ephemeral(interaction, _notice(e))
            return
        await interaction.response.send_message("✅ Joined your voice channel.")

    @app_commands.command(name="play", description="Play a song (search text or URL)")
    @app_commands.describe(query="Song name or URL (prefix with yt: or sc: to pick the source)")
    @app_commands.guild_only()
    async def play(self, interaction: discord.Interaction, query: str):
        await interaction.response.defer(thinking=True)
        guild_id = interaction.guild_id

        try:
            request, tracks = await self._sessions.search(guild_id, _voice_channel(interaction), query)
        except PlaybackError as e:
            logger.warning("search failed in guild {}: {}", guild_id, e)
            await interaction.edit_original_response(content=_notice(e))
            return

        if not tracks:
            await interaction.edit_original_response(content="❌ No results found.")
            return

        message = await interaction.edit_original_response(content="🔎 Found results. Building menu...")
        key = self._sessions.open_session(guild_id, interaction.user.id, message.id, request, tracks)

        view = TrackSelectView(
            key,
            tracks,
            owner_id=interaction.user.id,
            handler=self._on_select,
            on_expire=self._sessions.expire,
            timeout=self._component_timeout,
        )
        view.message = await interaction.edit_original_response(
            content="Select a track to add to the queue:",
            embeds=[],
            view=view,
        )

    @app_commands.command(name="skip", description="Skip current track")
    @app_commands.guild_only()
    async def skip(self, interaction: discord.Interaction):
        try:
            await self._playback.skip(interaction.guild_id)
        except PlaybackError as e:
            await _reply_ephemeral(interaction, _notice(e))
            return
        await interaction.response.send_message("⏭️ Skipped.")

    @app_commands.command(name="stop", description="Stop and leave voice")
    @app_commands.guild_only()
    async def stop(self, interaction: discord.Interaction):
        try:
            await self._playback.destroy(interaction.guild_id)
        except NothingPlaying:
            await _reply_ephemeral(interaction, "❌ No player active.")
            return
        except PlaybackError as e:
            await _reply_ephemeral(interaction, _notice(e))
            return
        await interaction.response.send_message("🛑 Stopped and left voice.")

    # -----------------------------
    # Components
    # -----------------------------
    async def _on_select(self, interaction: discord.Interaction, view: SessionView) -> None:
        await interaction.response.defer()
        data = interaction.data or {}
        values = data.get("values") or [None]

        try:
            result = await self._sessions.select(
                guild_id=interaction.guild_id,
                user_id=interaction.user.id,
                message_id=interaction.message.id,
                custom_id=data.get("custom_id", ""),
                raw_index=values[0],
                voice_channel=_voice_channel(interaction),
            )
        except OwnershipMismatch:
            await _reply_ephemeral(interaction, "❌ This menu is not for you.")
            return
        except PlaybackError as e:
            await _finish(view, interaction.message, _notice(e))
            return
        except Exception:
            logger.exception("select handler error for session {}", view.key)
            await _finish(view, interaction.message, "❌ Failed to queue selected track.")
            return

        if result is None:
            return

        key, session = result
        view.stop()
        controls = SessionControlsView(
            key,
            owner_id=interaction.user.id,
            handler=self._on_control,
            on_expire=self._sessions.expire,
            timeout=self._component_timeout,
        )
        controls.message = interaction.message
        await interaction.edit_original_response(
            content=None,
            embed=build_now_queued_embed(session.selected_track, str(interaction.user)),
            view=controls,
        )

    async def _on_control(self, interaction: discord.Interaction, view: SessionView) -> None:
        await interaction.response.defer()
        data = interaction.data or {}

        try:
            outcome = await self._sessions.handle_action(
                custom_id=data.get("custom_id", ""),
                guild_id=interaction.guild_id,
                owner_id=view.owner_id,
                acting_user_id=interaction.user.id,
                voice_channel=_voice_channel(interaction),
            )
        except OwnershipMismatch:
            await _reply_ephemeral(interaction, "❌ This control belongs to another user.")
            return
        except PlaybackError as e:
            await _finish(view, interaction.message, _notice(e))
            return
        except Exception:
            logger.exception("button handler error for session {}", view.key)
            await _finish(view, interaction.message, "❌ Failed to handle action.")
            return

        if outcome is None:
            return

        if outcome.is_terminal:
            await _finish(view, interaction.message, "❌ Cancelled.")
            return

        if view.is_finished():
            return
        await interaction.edit_original_response(content=self._outcome_text(outcome), view=view)

    @staticmethod
    def _outcome_text(outcome: ActionOutcome) -> str:
        if outcome.action is ComponentAction.SHUFFLE:
            return f"🔀 Shuffled {outcome.count} queued tracks."
        return f"➕ Added {outcome.count} related track(s)."

    # -----------------------------
    # Lavalink events
    # -----------------------------
    @commands.Cog.listener()
    async def on_node_ready(self, node: mafic.Node) -> None:
        logger.info("lavalink node ready: {}", node.label)

    @commands.Cog.listener()
    async def on_track_start(self, event: mafic.TrackStartEvent) -> None:
        logger.info("track start guild={} title={!r}", event.player.guild.id, event.track.title)

    @commands.Cog.listener()
    async def on_track_end(self, event: mafic.TrackEndEvent) -> None:
        if event.reason == mafic.EndReason.REPLACED:
            return
        try:
            await self._playback.advance(event.player)
        except PlaybackError as e:
            logger.warning("could not advance queue in guild {}: {}", event.player.guild.id, e)

    @commands.Cog.listener()
    async def on_track_exception(self, event: mafic.TrackExceptionEvent) -> None:
        logger.error(
            "track error guild={} title={!r}: {}",
            event.player.guild.id,
            event.track.title,
            event.exception,
        )
