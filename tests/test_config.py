"""Tests for environment-driven settings."""

import pytest

from tunebot.config import get_settings

_OPTIONAL = [
    "DISCORD_GUILD_ID",
    "LAVALINK_PORT",
    "SEARCH_SOURCE",
    "SEARCH_CACHE_TTL_MS",
    "SEARCH_CACHE_CLEANUP_MS",
    "COMPONENT_TIMEOUT_MS",
    "MAX_MENU_RESULTS",
    "IDLE_DISCONNECT_MS",
    "LOG_LEVEL",
]


@pytest.fixture
def env(monkeypatch):
    for name in _OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "tok")
    monkeypatch.setenv("LAVALINK_HOST", "lavalink")
    monkeypatch.setenv("LAVALINK_PASSWORD", "pw")
    return monkeypatch


class TestSettings:
    def test_defaults(self, env):
        s = get_settings()
        assert s.lavalink_port == 2333
        assert s.discord_guild_id is None
        assert s.search_source == "scsearch"
        assert s.session_ttl_seconds == 180
        assert s.cache_sweep_seconds == 30
        assert s.component_timeout_seconds == 60
        assert s.max_menu_results == 10
        assert s.idle_disconnect_seconds == 30
        assert s.log_level == "INFO"

    def test_millisecond_values_are_converted(self, env):
        env.setenv("SEARCH_CACHE_TTL_MS", "100")
        env.setenv("COMPONENT_TIMEOUT_MS", "2500")
        s = get_settings()
        assert s.session_ttl_seconds == pytest.approx(0.1)
        assert s.component_timeout_seconds == pytest.approx(2.5)

    def test_overrides(self, env):
        env.setenv("DISCORD_GUILD_ID", "123")
        env.setenv("SEARCH_SOURCE", "ytsearch")
        env.setenv("LOG_LEVEL", "debug")
        s = get_settings()
        assert s.discord_guild_id == 123
        assert s.search_source == "ytsearch"
        assert s.log_level == "DEBUG"

    def test_menu_results_clamped_to_discord_limit(self, env):
        env.setenv("MAX_MENU_RESULTS", "50")
        assert get_settings().max_menu_results == 25

    def test_missing_required(self, env):
        env.delenv("LAVALINK_PASSWORD")
        with pytest.raises(RuntimeError, match="LAVALINK_PASSWORD"):
            get_settings()

    def test_invalid_integer(self, env):
        env.setenv("SEARCH_CACHE_CLEANUP_MS", "soon")
        with pytest.raises(RuntimeError, match="SEARCH_CACHE_CLEANUP_MS"):
            get_settings()
