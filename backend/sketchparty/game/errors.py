from __future__ import annotations

from typing import Any


class GameError(Exception):
    """Base for every rejection the operation surface reports to callers."""

    status = 400
    default_code = "game_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(GameError):
    status = 400
    default_code = "invalid_payload"


class NotFoundError(GameError):
    status = 404
    default_code = "not_found"


class ConflictError(GameError):
    status = 409
    default_code = "conflict"


class TimingError(GameError):
    """A round-end trigger that lost the race; absorbed by the state machine."""

    status = 409
    default_code = "stale_trigger"


def room_not_found(room_id: str) -> NotFoundError:
    return NotFoundError(f"Room {room_id!r} does not exist", code="room_not_found")


def player_not_found(player_id: str) -> NotFoundError:
    return NotFoundError(f"Player {player_id!r} is not in this room", code="player_not_found")
