from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from ..utils.custom_ids import ComponentAction


class TrackLike(Protocol):
    """The slice of ``mafic.Track`` the bot relies on."""

    identifier: str
    title: str
    author: str
    length: int
    uri: str | None


class SessionState(str, Enum):
    """States of a cached session. Before a session exists and after it ends
    there is simply no cache entry."""

    AWAITING_SELECTION = "awaiting_selection"
    ACTIVE = "active"


@dataclass(frozen=True)
class SearchRequest:
    source: str
    query: str


@dataclass(frozen=True)
class PlaySession:
    tracks: tuple[Any, ...]
    source: str
    query: str
    owner_id: int
    state: SessionState = SessionState.AWAITING_SELECTION
    selected_track: Any | None = None

    def with_selection(self, track: Any) -> PlaySession:
        return replace(self, selected_track=track, state=SessionState.ACTIVE)


@dataclass(frozen=True)
class ActionOutcome:
    action: ComponentAction
    count: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.action is ComponentAction.CANCEL
