from __future__ import annotations

import math

import discord
from loguru import logger

from ..domain.models import TrackLike


def truncate(text: str, max_len: int) -> str:
    return text if len(text) <= max_len else f"{text[: max_len - 1]}…"


def format_duration(ms: int | float | None) -> str:
    if not isinstance(ms, (int, float)) or not math.isfinite(ms) or ms <= 0:
        return "Live / Unknown"
    total = int(ms // 1000)
    h, rest = divmod(total, 3600)
    m, s = divmod(rest, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"


def build_now_queued_embed(track: TrackLike, requester: str) -> discord.Embed:
    embed = discord.Embed(
        title="Now Queued",
        description=f"**{track.title or 'Unknown title'}**",
        url=track.uri or None,
        color=discord.Color.blurple(),
    )
    embed.add_field(name="Artist", value=track.author or "Unknown", inline=True)
    embed.add_field(name="Duration", value=format_duration(track.length), inline=True)
    embed.add_field(name="Requested By", value=requester, inline=True)
    return embed


async def finalize_message(message: discord.Message | None, content: str) -> None:
    """Leave the message with its embeds but no components."""
    if message is None:
        return
    try:
        await message.edit(content=content, embeds=message.embeds, view=None)
    except discord.HTTPException as e:
        logger.warning("cleanup edit failed for message {}: {}", message.id, e)
