from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv


def _load_env() -> None:
    """Load .env from repo root if present; fallback to default behaviour."""
    repo_root = Path(__file__).resolve().parents[2]
    env_path = repo_root / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
    else:
        # Useful when running in environments where variables are injected
        load_dotenv(override=False)


_load_env()


@dataclass(frozen=True)
class Settings:
    discord_token: str
    lavalink_host: str
    lavalink_password: str
    lavalink_port: int = 2333
    discord_guild_id: int | None = None
    search_source: str = "scsearch"
    session_ttl_seconds: float = 180.0
    cache_sweep_seconds: float = 30.0
    component_timeout_seconds: float = 60.0
    max_menu_results: int = 10
    idle_disconnect_seconds: float = 30.0
    log_level: str = "INFO"


def get_settings() -> Settings:
    missing: list[str] = []
    invalid: list[str] = []

    def must(name: str) -> str:
        v = os.getenv(name)
        if not v:
            missing.append(name)
        return v or ""

    def integer(name: str, default: int) -> int:
        raw = os.getenv(name)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            invalid.append(name)
            return default

    def millis(name: str, default_ms: int) -> float:
        return integer(name, default_ms) / 1000

    guild_id = os.getenv("DISCORD_GUILD_ID")
    settings = Settings(
        discord_token=must("DISCORD_TOKEN"),
        lavalink_host=must("LAVALINK_HOST"),
        lavalink_password=must("LAVALINK_PASSWORD"),
        lavalink_port=integer("LAVALINK_PORT", 2333),
        discord_guild_id=int(guild_id) if guild_id and guild_id.isdigit() else None,
        search_source=os.getenv("SEARCH_SOURCE") or "scsearch",
        session_ttl_seconds=millis("SEARCH_CACHE_TTL_MS", 180_000),
        cache_sweep_seconds=millis("SEARCH_CACHE_CLEANUP_MS", 30_000),
        component_timeout_seconds=millis("COMPONENT_TIMEOUT_MS", 60_000),
        # Discord caps select menus at 25 options
        max_menu_results=max(1, min(25, integer("MAX_MENU_RESULTS", 10))),
        idle_disconnect_seconds=millis("IDLE_DISCONNECT_MS", 30_000),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )

    if guild_id and not guild_id.isdigit():
        invalid.append("DISCORD_GUILD_ID")
    if missing:
        raise RuntimeError(f"Missing environment variables: {', '.join(missing)}")
    if invalid:
        raise RuntimeError(f"Invalid integer in environment variables: {', '.join(invalid)}")

    return settings
