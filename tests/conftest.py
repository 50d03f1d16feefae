"""Shared test fixtures — fake tracks, a fake Lavalink gateway and a manual clock."""

import os
import asyncio
from dataclasses import dataclass

import pytest

# Set required env vars before any app imports
os.environ.setdefault("DISCORD_TOKEN", "test-token")
os.environ.setdefault("LAVALINK_HOST", "127.0.0.1")
os.environ.setdefault("LAVALINK_PASSWORD", "test-password")

from tunebot.domain.errors import NoVoiceChannel  # noqa: E402
from tunebot.services.play_session_service import PlaySessionService  # noqa: E402
from tunebot.utils.cache import TTLCache  # noqa: E402

GUILD_ID = 1111
OWNER_ID = 2222
OTHER_ID = 3333
MESSAGE_ID = 4444
VOICE = object()


@dataclass(frozen=True)
class FakeTrack:
    identifier: str
    title: str
    author: str
    length: int = 180_000
    uri: str | None = None


def make_tracks(n: int, prefix: str = "t") -> list[FakeTrack]:
    return [FakeTrack(identifier=f"{prefix}{i}", title=f"Title {i}", author=f"Artist {i}") for i in range(n)]


class ManualClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlayback:
    """Stands in for LavalinkPlayback; records every call."""

    def __init__(self):
        self.results: dict[str, list[FakeTrack]] = {}
        self.searches: list[tuple[str, str]] = []
        self.queue: list[FakeTrack] = []
        self.playing = False
        self.play_calls = 0
        self.search_error: Exception | None = None
        # When set, search blocks until the event fires.
        self.search_gate: asyncio.Event | None = None

    async def connect(self, guild_id, voice_channel):
        if voice_channel is None:
            raise NoVoiceChannel()
        return object()

    async def search(self, guild_id, query, source):
        self.searches.append((query, source))
        if self.search_gate is not None:
            await self.search_gate.wait()
        if self.search_error is not None:
            raise self.search_error
        return list(self.results.get(query, []))

    def enqueue(self, guild_id, tracks):
        tracks = list(tracks)
        self.queue.extend(tracks)
        return len(tracks)

    def shuffle(self, guild_id):
        return len(self.queue)

    def is_playing(self, guild_id):
        return self.playing

    async def play(self, guild_id):
        self.play_calls += 1
        self.playing = bool(self.queue)
        return self.queue[0] if self.queue else None


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def playback():
    return FakePlayback()


@pytest.fixture
def cache(clock):
    return TTLCache(180, sweep_interval_seconds=30, clock=clock)


@pytest.fixture
def service(cache, playback):
    return PlaySessionService(cache, playback, default_source="scsearch", max_results=10)
