from __future__ import annotations

import asyncio
import random
from collections import deque
from typing import Any, Iterable

import aiohttp
import discord
import mafic
from discord.ext import commands
from loguru import logger

from ..domain.errors import NothingPlaying, NoVoiceChannel, PlaybackCommandFailure, UpstreamSearchFailure

_NODE_ERRORS = (mafic.MaficException, aiohttp.ClientError, asyncio.TimeoutError)


class GuildQueue:
    """Pending tracks for one guild. The playing track is not in here."""

    def __init__(self) -> None:
        self._tracks: deque[Any] = deque()

    def __len__(self) -> int:
        return len(self._tracks)

    def add(self, track: Any) -> None:
        self._tracks.append(track)

    def extend(self, tracks: Iterable[Any]) -> int:
        before = len(self._tracks)
        self._tracks.extend(tracks)
        return len(self._tracks) - before

    def shuffle(self) -> int:
        items = list(self._tracks)
        random.shuffle(items)
        self._tracks = deque(items)
        return len(items)

    def pop_next(self) -> Any | None:
        return self._tracks.popleft() if self._tracks else None

    def clear(self) -> None:
        self._tracks.clear()


class LavalinkPlayback:
    """Everything the bot needs from Lavalink, behind guild ids.

    mafic has no queue of its own, so one ``GuildQueue`` per guild lives here
    and ``advance`` is wired to the track-end event.
    """

    def __init__(self, bot: commands.Bot, *, idle_disconnect_seconds: float = 30):
        self._bot = bot
        self._idle_after = float(idle_disconnect_seconds)
        self._queues: dict[int, GuildQueue] = {}
        self._idle_tasks: dict[int, asyncio.Task[None]] = {}

    def queue(self, guild_id: int) -> GuildQueue:
        return self._queues.setdefault(guild_id, GuildQueue())

    def get_player(self, guild_id: int) -> mafic.Player | None:
        guild = self._bot.get_guild(guild_id)
        vc = guild.voice_client if guild else None
        if vc and isinstance(vc, mafic.Player):
            return vc
        return None

    def _require_player(self, guild_id: int) -> mafic.Player:
        player = self.get_player(guild_id)
        if player is None:
            raise NothingPlaying(f"no player for guild {guild_id}")
        return player

    async def connect(self, guild_id: int, voice_channel: discord.abc.Connectable | None) -> mafic.Player:
        if voice_channel is None:
            raise NoVoiceChannel(f"user has no voice channel in guild {guild_id}")

        player = self.get_player(guild_id)
        if player is not None:
            return player

        try:
            player = await voice_channel.connect(cls=mafic.Player, self_deaf=True)
        except (discord.ClientException, *_NODE_ERRORS) as e:
            raise PlaybackCommandFailure(f"voice connect failed in guild {guild_id}: {e}") from e

        logger.info("connected to voice in guild {}", guild_id)
        return player

    async def search(self, guild_id: int, query: str, source: str) -> list[mafic.Track]:
        player = self._require_player(guild_id)
        try:
            result = await player.fetch_tracks(query, search_type=source)
        except _NODE_ERRORS as e:
            raise UpstreamSearchFailure(f"search {source}:{query!r} failed: {e}") from e

        if result is None:
            return []
        if isinstance(result, mafic.Playlist):
            return list(result.tracks)
        return list(result)

    def enqueue(self, guild_id: int, tracks: Iterable[mafic.Track]) -> int:
        return self.queue(guild_id).extend(tracks)

    def shuffle(self, guild_id: int) -> int:
        return self.queue(guild_id).shuffle()

    def is_playing(self, guild_id: int) -> bool:
        player = self.get_player(guild_id)
        return player is not None and player.current is not None

    async def play(self, guild_id: int) -> mafic.Track | None:
        """Start the next queued track unless something is already playing."""
        player = self._require_player(guild_id)
        if player.current is not None:
            return None
        return await self._play_next(player, guild_id)

    async def skip(self, guild_id: int) -> None:
        player = self._require_player(guild_id)
        if player.current is None:
            raise NothingPlaying(f"skip with nothing playing in guild {guild_id}")
        try:
            # track end event advances the queue
            await player.stop()
        except _NODE_ERRORS as e:
            raise PlaybackCommandFailure(f"skip failed in guild {guild_id}: {e}") from e

    async def destroy(self, guild_id: int) -> None:
        player = self._require_player(guild_id)
        self._cancel_idle(guild_id)
        self._queues.pop(guild_id, None)
        try:
            await player.disconnect(force=True)
        except _NODE_ERRORS as e:
            raise PlaybackCommandFailure(f"disconnect failed in guild {guild_id}: {e}") from e
        logger.info("player destroyed in guild {}", guild_id)

    async def advance(self, player: mafic.Player) -> None:
        """Track-end hook: play whatever is next, or start the idle countdown."""
        if not player.connected or player.current is not None:
            return
        guild_id = player.guild.id
        track = await self._play_next(player, guild_id)
        if track is None:
            logger.info("queue finished in guild {}", guild_id)
            self._start_idle(guild_id)

    async def _play_next(self, player: mafic.Player, guild_id: int) -> mafic.Track | None:
        track = self.queue(guild_id).pop_next()
        if track is None:
            return None
        self._cancel_idle(guild_id)
        try:
            await player.play(track)
        except _NODE_ERRORS as e:
            raise PlaybackCommandFailure(f"play failed in guild {guild_id}: {e}") from e
        return track

    def _start_idle(self, guild_id: int) -> None:
        self._cancel_idle(guild_id)
        if self._idle_after <= 0:
            return
        self._idle_tasks[guild_id] = asyncio.create_task(self._idle_countdown(guild_id))

    def _cancel_idle(self, guild_id: int) -> None:
        if task := self._idle_tasks.pop(guild_id, None):
            if not task.done():
                task.cancel()

    async def _idle_countdown(self, guild_id: int) -> None:
        try:
            await asyncio.sleep(self._idle_after)
        except asyncio.CancelledError:
            return

        self._idle_tasks.pop(guild_id, None)
        player = self.get_player(guild_id)
        if player is None or player.current is not None:
            return
        logger.info("queue empty for {:.0f}s, leaving voice in guild {}", self._idle_after, guild_id)
        self._queues.pop(guild_id, None)
        try:
            await player.disconnect()
        except _NODE_ERRORS as e:
            logger.warning("idle disconnect failed in guild {}: {}", guild_id, e)

    async def close(self) -> None:
        for guild_id in list(self._idle_tasks):
            self._cancel_idle(guild_id)
        self._queues.clear()
