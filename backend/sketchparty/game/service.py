from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Sequence

from ..config import GameSettings
from ..realtime.bus import EventBus
from .errors import NotFoundError, player_not_found
from .guesses import GuessEvaluator
from .machine import SessionMachine
from .models import GAME_ENDED, Guess
from .registry import RoomRegistry
from .scheduler import RoundScheduler
from .session import RoomSession, RoomSnapshot
from .strokes import StrokeBroadcastChannel
from .words import GAME_WORDS


logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class GameService:
    """The operation surface transports call into.

    Wires the registry, state machine, scheduler, guess evaluator, stroke
    channel and event bus together and converts results to wire dicts.
    """

    def __init__(
        self,
        settings: GameSettings | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], int] = now_ms,
        words: Sequence[str] = GAME_WORDS,
        rng: random.Random | None = None,
    ):
        self.settings = settings or GameSettings()
        self.clock = clock
        self.bus = bus or EventBus()
        self.scheduler = RoundScheduler()
        self.machine = SessionMachine(self.settings, self.scheduler, clock, words=words, rng=rng)
        self.registry = RoomRegistry(self.settings, self.machine, self.bus, clock)
        self.guesses = GuessEvaluator(self.settings, self.machine, clock)
        self.strokes = StrokeBroadcastChannel(self.settings, clock)
        self.scheduler.bind(self._on_round_timeout)

    def _on_round_timeout(self, room_id: str, generation: int) -> None:
        session = self.registry.find(room_id)
        if session is None:
            return
        self.machine.end_round(session, generation, reason="timeout")

    # ---- rooms ----

    def create_room(
        self,
        host_name: Any,
        name: Any = None,
        max_rounds: Any = None,
        time_per_round: Any = None,
    ) -> dict[str, Any]:
        session, host = self.registry.create_room(host_name, name, max_rounds, time_per_round)
        return {
            "roomId": session.id,
            "playerId": host.id,
            "room": session.snapshot.state_for(host.id),
        }

    def join_room(self, room_ref: str, player_name: Any) -> dict[str, Any]:
        session, player = self.registry.join_room(room_ref, player_name)
        return {"roomId": session.id, "playerId": player.id, "player": player.to_dict()}

    def rejoin(self, room_ref: str, player_id: str) -> dict[str, Any]:
        session = self.registry.get_room(room_ref)
        player = self.machine.set_online(session, player_id, True)
        return {"roomId": session.id, "playerId": player.id, "player": player.to_dict()}

    def leave_room(self, room_ref: str, player_id: str, sid: str | None = None) -> None:
        session = self.registry.get_room(room_ref)
        if sid is not None:
            self.bus.unsubscribe(sid)
        self.machine.set_online(session, player_id, False)

    def list_active_rooms(self) -> list[dict[str, Any]]:
        return self.registry.list_active_rooms()

    def get_state(self, room_ref: str, viewer_id: str | None = None) -> dict[str, Any]:
        snap = self.registry.get_room(room_ref).snapshot
        return {
            "room": snap.state_for(viewer_id),
            "guesses": [g.to_dict(reveal_text=_reveal_guess(snap, g, viewer_id)) for g in snap.guesses],
            "strokes": [s.to_dict() for s in snap.strokes],
        }

    # ---- game flow ----

    def start_game(self, room_ref: str, player_id: str) -> dict[str, Any]:
        session = self.registry.get_room(room_ref)
        self.machine.start_game(session, player_id)
        return session.snapshot.state_for(player_id)

    def end_game(self, room_ref: str, player_id: str) -> dict[str, Any]:
        session = self.registry.get_room(room_ref)
        self.machine.end_game(session, player_id)
        return session.snapshot.state_for(player_id)

    def submit_guess(self, room_ref: str, player_id: str, text: Any) -> dict[str, Any]:
        session = self.registry.get_room(room_ref)
        return self.guesses.submit_guess(session, player_id, text).to_dict()

    def submit_stroke(
        self,
        room_ref: str,
        player_id: str,
        points: Any,
        origin_sid: str | None = None,
    ) -> dict[str, Any]:
        session = self.registry.get_room(room_ref)
        return self.strokes.submit_stroke(session, player_id, points, origin_sid=origin_sid).to_dict()

    def clear_canvas(self, room_ref: str, player_id: str) -> None:
        session = self.registry.get_room(room_ref)
        self.strokes.clear_strokes(session, player_id)

    # ---- connections ----

    def subscribe(self, room_ref: str, sid: str, player_id: str | None = None) -> RoomSession:
        session = self.registry.get_room(room_ref)
        if player_id is not None and not session.snapshot.has_player(player_id):
            raise player_not_found(player_id)
        self.bus.subscribe(session.id, sid, player_id)
        return session

    def disconnect(self, sid: str) -> None:
        """Transport-level drop: unsubscribe, and mark the player offline if this was their last socket."""
        subscription = self.bus.unsubscribe(sid)
        if subscription is None:
            return
        room_id, player_id = subscription
        if player_id is None or self.bus.connections(room_id, player_id):
            return
        session = self.registry.find(room_id)
        if session is None or not session.snapshot.has_player(player_id):
            return
        try:
            self.machine.set_online(session, player_id, False)
        except NotFoundError:
            logger.debug(f"[disconnect] room={room_id} player={player_id} already gone")

    # ---- time ----

    def tick(self, now: int | None = None) -> None:
        """One scheduler sweep: fire due round timers, then collect garbage."""
        current = self.clock() if now is None else now
        self.scheduler.run_due(current)
        self.registry.collect_garbage(current)


def _reveal_guess(snap: RoomSnapshot, guess: Guess, viewer_id: str | None) -> bool:
    if not guess.is_correct or guess.player_id == viewer_id:
        return True
    # Past rounds' words are public once the round is over.
    return snap.state == GAME_ENDED or guess.round_number < snap.public["roundNumber"]

