from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ComponentAction(str, Enum):
    SELECT = "play_select:"
    ADD_5 = "play_add5:"
    ADD_10 = "play_add10:"
    SHUFFLE = "play_shuffle:"
    CANCEL = "play_cancel:"

    @property
    def prefix(self) -> str:
        return self.value

    @property
    def related_amount(self) -> int:
        return {ComponentAction.ADD_5: 5, ComponentAction.ADD_10: 10}.get(self, 0)


@dataclass(frozen=True)
class ParsedCustomId:
    action: ComponentAction
    key: str


def make_session_key(guild_id: int | str, user_id: int | str, message_id: int | str) -> str:
    """Key for one user's session on one rendered response.

    Discord ids are snowflakes (digits only), so ``-`` never shows up inside
    a component.
    """
    return f"{guild_id}-{user_id}-{message_id}"


def build_custom_id(action: ComponentAction, key: str) -> str:
    return f"{action.prefix}{key}"


def parse_custom_id(custom_id: str | None) -> ParsedCustomId | None:
    if not custom_id:
        return None
    for action in ComponentAction:
        if custom_id.startswith(action.prefix):
            key = custom_id[len(action.prefix):]
            return ParsedCustomId(action, key) if key else None
    return None
