from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


RoomState = Literal["lobby", "round_active", "round_ending", "game_ended"]

LOBBY: RoomState = "lobby"
ROUND_ACTIVE: RoomState = "round_active"
ROUND_ENDING: RoomState = "round_ending"
GAME_ENDED: RoomState = "game_ended"


def room_code(room_id: str) -> str:
    """Short code shown to users for a room id."""
    return room_id[:6].upper()


def word_hint(word: str | None) -> str | None:
    if not word:
        return None
    return "".join(" " if ch == " " else "_" for ch in word)


@dataclass
class Player:
    id: str
    room_id: str
    name: str
    score: int = 0
    is_host: bool = False
    is_online: bool = True
    joined_at_ms: int = 0
    offline_since_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "name": self.name,
            "score": self.score,
            "isHost": self.is_host,
            "isOnline": self.is_online,
            "joinedAtMs": self.joined_at_ms,
        }


@dataclass(frozen=True)
class Guess:
    id: str
    room_id: str
    player_id: str
    player_name: str
    text: str
    is_correct: bool
    round_number: int
    created_at_ms: int

    def to_dict(self, reveal_text: bool = True) -> dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "playerId": self.player_id,
            "playerName": self.player_name,
            "text": self.text if (reveal_text or not self.is_correct) else None,
            "isCorrect": self.is_correct,
            "roundNumber": self.round_number,
            "createdAtMs": self.created_at_ms,
        }


@dataclass(frozen=True)
class StrokePoint:
    x: float
    y: float
    color: str
    stroke_width: float
    starts_new_stroke: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "color": self.color,
            "strokeWidth": self.stroke_width,
            "startsNewStroke": self.starts_new_stroke,
        }


@dataclass(frozen=True)
class Stroke:
    id: str
    room_id: str
    player_id: str
    seq: int
    points: tuple[StrokePoint, ...]
    created_at_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "playerId": self.player_id,
            "seq": self.seq,
            "points": [p.to_dict() for p in self.points],
            "createdAtMs": self.created_at_ms,
        }


@dataclass
class Room:
    id: str
    name: str
    host_id: str
    max_rounds: int = 5
    time_per_round: int = 60
    created_at_ms: int = 0
    state: RoomState = "lobby"
    round_number: int = 1
    is_active: bool = True
    current_player_id: str | None = None
    current_word: str | None = None
    previous_word: str | None = None
    round_ends_at_ms: int | None = None
    # Bumped on every round transition; a countdown only fires for its own generation.
    generation: int = 0
    players: dict[str, Player] = field(default_factory=dict)
    # Append-only join order, drives drawer rotation even after players are dropped.
    seats: list[str] = field(default_factory=list)
    drawer_seat: int | None = None
    correct_guessers: set[str] = field(default_factory=set)
    guesses: list[Guess] = field(default_factory=list)
    strokes: list[Stroke] = field(default_factory=list)
    stroke_seq: int = 0
    empty_since_ms: int | None = None
    ended_at_ms: int | None = None
    closed: bool = False

    @property
    def code(self) -> str:
        return room_code(self.id)

    def online_players(self) -> list[Player]:
        return [p for p in self.players.values() if p.is_online]

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "roundNumber": self.round_number,
            "maxRounds": self.max_rounds,
            "timePerRound": self.time_per_round,
            "playerCount": len(self.players),
            "state": self.state,
            "createdAtMs": self.created_at_ms,
        }

    def public_state(self) -> dict[str, Any]:
        """Room payload safe for every viewer; the word is never included."""
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "hostId": self.host_id,
            "state": self.state,
            "isActive": self.is_active,
            "currentPlayerId": self.current_player_id,
            "roundNumber": self.round_number,
            "maxRounds": self.max_rounds,
            "timePerRound": self.time_per_round,
            "roundEndsAtMs": self.round_ends_at_ms,
            "wordHint": word_hint(self.current_word),
            "createdAtMs": self.created_at_ms,
            "players": [p.to_dict() for p in self.players.values()],
        }
