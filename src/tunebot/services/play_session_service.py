from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Protocol, Sequence

from loguru import logger

from ..domain.errors import (
    InvalidSelection,
    MissingSelection,
    OwnershipMismatch,
    PlaybackError,
    SessionExpired,
)
from ..domain.models import ActionOutcome, PlaySession, SearchRequest, SessionState
from ..utils.cache import TTLCache
from ..utils.custom_ids import ComponentAction, make_session_key, parse_custom_id

_SOURCE_PREFIXES = {"yt:": "ytsearch", "sc:": "scsearch"}


class PlaybackGateway(Protocol):
    async def connect(self, guild_id: int, voice_channel: Any | None) -> Any: ...

    async def search(self, guild_id: int, query: str, source: str) -> list[Any]: ...

    def enqueue(self, guild_id: int, tracks: Iterable[Any]) -> int: ...

    def shuffle(self, guild_id: int) -> int: ...

    def is_playing(self, guild_id: int) -> bool: ...

    async def play(self, guild_id: int) -> Any | None: ...


class PlaySessionService:
    """Search -> select -> follow-up actions, glued together through the cache.

    The session key lives inside every component custom_id, so nothing here
    needs a Discord object: callers pass ids, the raw custom_id and the
    user's voice channel (opaque, handed to the gateway).
    """

    def __init__(
        self,
        cache: TTLCache[str, PlaySession],
        playback: PlaybackGateway,
        *,
        default_source: str = "scsearch",
        max_results: int = 10,
    ):
        self._cache = cache
        self._playback = playback
        self.default_source = default_source
        self.max_results = max_results

    # -----------------------------
    # Search
    # -----------------------------
    def parse_query(self, raw: str) -> SearchRequest:
        q = raw.strip()
        prefix = q[:3].lower()
        if prefix in _SOURCE_PREFIXES:
            return SearchRequest(source=_SOURCE_PREFIXES[prefix], query=q[3:].strip())
        return SearchRequest(source=self.default_source, query=q)

    async def search(self, guild_id: int, voice_channel: Any | None, raw_query: str) -> tuple[SearchRequest, list[Any]]:
        request = self.parse_query(raw_query)
        await self._playback.connect(guild_id, voice_channel)

        logger.info("search guild={} source={} query={!r}", guild_id, request.source, request.query)
        tracks = await self._playback.search(guild_id, request.query, request.source)
        return request, list(tracks[: self.max_results])

    def open_session(
        self,
        guild_id: int,
        user_id: int,
        message_id: int,
        request: SearchRequest,
        tracks: Sequence[Any],
    ) -> str | None:
        if not tracks:
            return None
        key = make_session_key(guild_id, user_id, message_id)
        session = PlaySession(
            tracks=tuple(tracks[: self.max_results]),
            source=request.source,
            query=request.query,
            owner_id=user_id,
        )
        self._cache.set(key, session)
        logger.debug("session {} opened with {} candidates", key, len(session.tracks))
        return key

    def get(self, key: str) -> PlaySession | None:
        return self._cache.get(key)

    def end(self, key: str) -> bool:
        return self._cache.delete(key)

    def expire(self, key: str) -> bool:
        removed = self._cache.delete(key)
        if removed:
            logger.debug("session {} expired by timeout", key)
        return removed

    # -----------------------------
    # Selection
    # -----------------------------
    async def select(
        self,
        *,
        guild_id: int,
        user_id: int,
        message_id: int,
        custom_id: str,
        raw_index: str | None,
        voice_channel: Any | None,
    ) -> tuple[str, PlaySession] | None:
        parsed = parse_custom_id(custom_id)
        if parsed is None or parsed.action is not ComponentAction.SELECT:
            return None

        key = parsed.key
        if key != make_session_key(guild_id, user_id, message_id):
            raise OwnershipMismatch(f"user {user_id} used select menu {key}")

        session = self._cache.get(key)
        if session is None:
            raise SessionExpired(f"session {key} missing on select")

        track = self._candidate(session, raw_index)
        if track is None:
            self._cache.delete(key)
            raise InvalidSelection(f"session {key}: index {raw_index!r} out of {len(session.tracks)}")

        async with self._failure_ends(key):
            await self._playback.connect(guild_id, voice_channel)
            self._ensure_live(key)
            self._playback.enqueue(guild_id, [track])
            if not self._playback.is_playing(guild_id):
                await self._playback.play(guild_id)
            self._ensure_live(key)

        session = session.with_selection(track)
        self._cache.set(key, session)
        logger.info("session {} selected {!r}", key, getattr(track, "title", track))
        return key, session

    @staticmethod
    def _candidate(session: PlaySession, raw_index: str | None) -> Any | None:
        try:
            index = int(raw_index)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if 0 <= index < len(session.tracks):
            return session.tracks[index]
        return None

    # -----------------------------
    # Follow-up actions
    # -----------------------------
    async def handle_action(
        self,
        *,
        custom_id: str,
        guild_id: int,
        owner_id: int,
        acting_user_id: int,
        voice_channel: Any | None,
    ) -> ActionOutcome | None:
        parsed = parse_custom_id(custom_id)
        if parsed is None or parsed.action is ComponentAction.SELECT:
            return None

        if acting_user_id != owner_id:
            raise OwnershipMismatch(f"user {acting_user_id} pressed {parsed.action.name} on session of {owner_id}")

        key = parsed.key
        session = self._cache.get(key)
        if session is None:
            raise SessionExpired(f"session {key} missing on {parsed.action.name}")

        if parsed.action is ComponentAction.CANCEL:
            self._cache.delete(key)
            logger.info("session {} cancelled", key)
            return ActionOutcome(ComponentAction.CANCEL)

        async with self._failure_ends(key):
            await self._playback.connect(guild_id, voice_channel)
            self._ensure_live(key)

            if parsed.action is ComponentAction.SHUFFLE:
                shuffled = self._playback.shuffle(guild_id)
                logger.info("session {} shuffled {} tracks", key, shuffled)
                return ActionOutcome(ComponentAction.SHUFFLE, shuffled)

            if session.selected_track is None or session.state is not SessionState.ACTIVE:
                raise MissingSelection(f"session {key} has no selected track")

            added = await self._add_related(key, guild_id, session, parsed.action.related_amount)
            if not self._playback.is_playing(guild_id):
                await self._playback.play(guild_id)
            self._ensure_live(key)

        self._cache.set(key, session)
        logger.info("session {} added {} related tracks", key, added)
        return ActionOutcome(parsed.action, added)

    async def _add_related(self, key: str, guild_id: int, session: PlaySession, amount: int) -> int:
        selected = session.selected_track
        author = getattr(selected, "author", "") or ""
        title = getattr(selected, "title", "") or ""
        query = f"{author} {title}".strip()
        base_id = getattr(selected, "identifier", None)

        results = await self._playback.search(guild_id, query, session.source)
        picked = [t for t in results if getattr(t, "identifier", None) != base_id][:amount]
        self._ensure_live(key)
        return self._playback.enqueue(guild_id, picked)

    def _ensure_live(self, key: str) -> None:
        # Cancel or timeout may have ended the session while we were awaiting.
        if key not in self._cache:
            raise SessionExpired(f"session {key} ended while an action was in flight")

    @asynccontextmanager
    async def _failure_ends(self, key: str) -> AsyncIterator[None]:
        """Drop the session when the wrapped step raises, then let the error through."""
        try:
            yield
        except PlaybackError as e:
            self._cache.delete(key)
            logger.warning("session {} ended: {}", key, e)
            raise
        except Exception:
            self._cache.delete(key)
            logger.exception("session {} ended by unexpected error", key)
            raise
