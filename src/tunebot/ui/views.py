from __future__ import annotations

from typing import Any, Awaitable, Callable, Sequence

import discord
from loguru import logger

from ..utils.custom_ids import ComponentAction, build_custom_id
from ..utils.discord_helpers import finalize_message, truncate

ComponentHandler = Callable[[discord.Interaction, "SessionView"], Awaitable[None]]


class SessionView(discord.ui.View):
    """View bound to one session key.

    Every item's custom_id carries the key. When the view times out without a
    terminal action, the message is finalized and the session dropped.
    """

    timeout_notice = "⌛ Timed out."

    def __init__(
        self,
        key: str,
        *,
        owner_id: int,
        handler: ComponentHandler,
        on_expire: Callable[[str], Any],
        timeout: float,
    ):
        super().__init__(timeout=timeout)
        self.key = key
        self.owner_id = owner_id
        self.message: discord.Message | None = None
        self._handler = handler
        self._on_expire = on_expire

    async def dispatch_item(self, interaction: discord.Interaction) -> None:
        await self._handler(interaction, self)

    async def on_timeout(self) -> None:
        logger.debug("view for session {} timed out", self.key)
        await finalize_message(self.message, self.timeout_notice)
        self._on_expire(self.key)

    async def on_error(self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[Any]) -> None:
        logger.opt(exception=error).error("unhandled error in view for session {}", self.key)


class _TrackSelect(discord.ui.Select["SessionView"]):
    async def callback(self, interaction: discord.Interaction) -> None:
        assert self.view is not None
        await self.view.dispatch_item(interaction)


class _ControlButton(discord.ui.Button["SessionView"]):
    async def callback(self, interaction: discord.Interaction) -> None:
        assert self.view is not None
        await self.view.dispatch_item(interaction)


class TrackSelectView(SessionView):
    timeout_notice = "⌛ Selection timed out."

    def __init__(self, key: str, tracks: Sequence[Any], **kwargs: Any):
        super().__init__(key, **kwargs)
        options = [
            discord.SelectOption(
                label=truncate(getattr(t, "title", "") or "Unknown title", 100),
                description=truncate(getattr(t, "author", "") or "Unknown artist", 100),
                value=str(i),
            )
            for i, t in enumerate(tracks)
        ]
        self.add_item(
            _TrackSelect(
                custom_id=build_custom_id(ComponentAction.SELECT, key),
                placeholder="Choose a track to queue",
                options=options,
            )
        )


class SessionControlsView(SessionView):
    timeout_notice = "⌛ Controls timed out."

    _BUTTONS = (
        (ComponentAction.ADD_5, "Add 5 Related", discord.ButtonStyle.primary),
        (ComponentAction.ADD_10, "Add 10 Related", discord.ButtonStyle.primary),
        (ComponentAction.SHUFFLE, "Shuffle Queue", discord.ButtonStyle.secondary),
        (ComponentAction.CANCEL, "Cancel", discord.ButtonStyle.danger),
    )

    def __init__(self, key: str, **kwargs: Any):
        super().__init__(key, **kwargs)
        for action, label, style in self._BUTTONS:
            self.add_item(_ControlButton(custom_id=build_custom_id(action, key), label=label, style=style))
