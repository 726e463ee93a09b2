from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from threading import Condition
from typing import Any, Iterator

from ..realtime.bus import EventBus
from ..realtime.events import Event
from .models import ROUND_ACTIVE, Guess, Room, RoomState, Stroke


class MutationQueue:
    """FIFO single-writer turnstile: callers run one at a time, in arrival order.

    A caller interrupted while waiting gives up its ticket; the turnstile
    skips it instead of waiting for it forever.
    """

    def __init__(self) -> None:
        self._cond = Condition()
        self._next_ticket = 0
        self._serving = 0
        self._abandoned: set[int] = set()

    def _advance(self) -> None:
        # caller holds self._cond
        self._serving += 1
        while self._serving in self._abandoned:
            self._abandoned.discard(self._serving)
            self._serving += 1
        self._cond.notify_all()

    @contextmanager
    def turn(self) -> Iterator[None]:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            try:
                while ticket != self._serving:
                    self._cond.wait()
            except BaseException:
                if ticket == self._serving:
                    self._advance()
                else:
                    self._abandoned.add(ticket)
                raise
        try:
            yield
        finally:
            with self._cond:
                self._advance()


@dataclass(frozen=True)
class RoomSnapshot:
    """Read model of a room as of its last committed mutation."""

    room_id: str
    state: RoomState
    is_active: bool
    closed: bool
    created_at_ms: int
    public: dict[str, Any]
    summary: dict[str, Any]
    drawer_id: str | None
    word: str | None
    online_count: int
    empty_since_ms: int | None
    ended_at_ms: int | None
    offline_since: dict[str, int]
    guesses: tuple[Guess, ...]
    strokes: tuple[Stroke, ...]

    @classmethod
    def capture(cls, room: Room) -> "RoomSnapshot":
        return cls(
            room_id=room.id,
            state=room.state,
            is_active=room.is_active,
            closed=room.closed,
            created_at_ms=room.created_at_ms,
            public=room.public_state(),
            summary=room.summary(),
            drawer_id=room.current_player_id,
            word=room.current_word,
            online_count=len(room.online_players()),
            empty_since_ms=room.empty_since_ms,
            ended_at_ms=room.ended_at_ms,
            offline_since={
                p.id: p.offline_since_ms
                for p in room.players.values()
                if not p.is_online and p.offline_since_ms is not None
            },
            guesses=tuple(room.guesses),
            strokes=tuple(room.strokes),
        )

    def has_player(self, player_id: str | None) -> bool:
        return any(p["id"] == player_id for p in self.public["players"])

    def state_for(self, viewer_id: str | None = None) -> dict[str, Any]:
        payload = dict(self.public)
        if viewer_id and viewer_id == self.drawer_id and self.state == ROUND_ACTIVE and self.word:
            payload["word"] = self.word
        return payload


class RoomSession:
    """One room plus the single-writer queue that owns every mutation of it.

    ``mutate()`` yields an outbox; events appended to it are published on the
    bus only if the mutation completes, and while the turn is still held, so
    subscribers see events in commit order.
    """

    def __init__(self, room: Room, bus: EventBus):
        self.room = room
        self._bus = bus
        self._queue = MutationQueue()
        self._snapshot = RoomSnapshot.capture(room)

    @property
    def id(self) -> str:
        return self.room.id

    @property
    def snapshot(self) -> RoomSnapshot:
        return self._snapshot

    @contextmanager
    def mutate(self) -> Iterator[list[Event]]:
        with self._queue.turn():
            outbox: list[Event] = []
            yield outbox
            self._snapshot = RoomSnapshot.capture(self.room)
            for event in outbox:
                self._bus.publish(self.room.id, event)
