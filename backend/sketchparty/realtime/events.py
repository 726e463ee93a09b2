from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# Server -> client events fanned out per room
ROOM_UPDATED = "room:updated"
PLAYER_JOINED = "player:joined"
PLAYER_LEFT = "player:left"
GUESS_SUBMITTED = "guess:submitted"
STROKE_APPENDED = "stroke:appended"
STROKES_CLEARED = "strokes:cleared"
ROUND_ENDED = "round:ended"
GAME_ENDED = "game:ended"
ROOM_CLOSED = "room:closed"

# Server -> single connection
ROOM_SYNC = "room:sync"
ROOM_ERROR = "room:error"

EVENT_KINDS = (
    ROOM_UPDATED,
    PLAYER_JOINED,
    PLAYER_LEFT,
    GUESS_SUBMITTED,
    STROKE_APPENDED,
    STROKES_CLEARED,
    ROUND_ENDED,
    GAME_ENDED,
    ROOM_CLOSED,
)


@dataclass(frozen=True)
class Event:
    kind: str
    payload: dict[str, Any]
    # player_id -> payload shown to that player's connections instead of ``payload``
    private: dict[str, dict[str, Any]] = field(default_factory=dict)
    # Connection that already rendered the change locally
    exclude_sid: str | None = None
