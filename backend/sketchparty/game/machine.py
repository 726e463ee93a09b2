from __future__ import annotations

import logging
import random
import uuid
from typing import Any, Callable, Sequence

from ..config import GameSettings
from ..realtime.events import (
    GAME_ENDED,
    PLAYER_JOINED,
    PLAYER_LEFT,
    ROOM_UPDATED,
    ROUND_ENDED,
    Event,
)
from .errors import ConflictError, TimingError, player_not_found, room_not_found
from .models import GAME_ENDED as STATE_GAME_ENDED
from .models import LOBBY, ROUND_ACTIVE, ROUND_ENDING, Player, Room
from .scheduler import RoundScheduler
from .session import RoomSession
from .strokes import clear_stroke_log
from .words import GAME_WORDS, pick_word


logger = logging.getLogger(__name__)


def room_updated(room: Room) -> Event:
    """RoomUpdated event; only the drawer's connections receive the word."""
    public = room.public_state()
    private: dict[str, dict[str, Any]] = {}
    if room.state == ROUND_ACTIVE and room.current_player_id and room.current_word:
        private[room.current_player_id] = {"room": dict(public, word=room.current_word)}
    return Event(ROOM_UPDATED, {"room": public}, private=private)


class SessionMachine:
    """Lobby -> RoundActive -> RoundEnding -> RoundActive | GameEnded.

    Every method taking a ``RoomSession`` acquires that room's mutation turn.
    Methods taking a bare ``Room`` plus an outbox (``finish_round``) expect
    the caller to already hold the turn.
    """

    def __init__(
        self,
        settings: GameSettings,
        scheduler: RoundScheduler,
        clock: Callable[[], int],
        words: Sequence[str] = GAME_WORDS,
        rng: random.Random | None = None,
    ):
        self._settings = settings
        self._scheduler = scheduler
        self._clock = clock
        self._words = words
        self._rng = rng or random.Random()

    # ---- membership ----

    def add_player(self, session: RoomSession, name: str) -> Player:
        with session.mutate() as outbox:
            room = session.room
            if room.closed:
                raise room_not_found(room.id)
            if not room.is_active:
                raise ConflictError("This game has already ended", code="room_inactive")

            player = Player(
                id=uuid.uuid4().hex,
                room_id=room.id,
                name=name,
                joined_at_ms=self._clock(),
            )
            room.players[player.id] = player
            room.seats.append(player.id)
            room.empty_since_ms = None

            outbox.append(Event(PLAYER_JOINED, {"player": player.to_dict()}))
            outbox.append(room_updated(room))
            logger.info(f"[player-join] room={room.id} player={player.id} name={name!r}")
            return player

    def set_online(self, session: RoomSession, player_id: str, online: bool) -> Player:
        with session.mutate() as outbox:
            room = session.room
            if room.closed:
                raise room_not_found(room.id)
            player = room.players.get(player_id)
            if player is None:
                raise player_not_found(player_id)
            if player.is_online == online:
                return player

            now = self._clock()
            player.is_online = online
            if online:
                player.offline_since_ms = None
                room.empty_since_ms = None
                outbox.append(Event(PLAYER_JOINED, {"player": player.to_dict(), "reconnected": True}))
            else:
                player.offline_since_ms = now
                if not room.online_players():
                    room.empty_since_ms = now
                outbox.append(Event(PLAYER_LEFT, {"player": player.to_dict(), "removed": False}))
            logger.info(f"[player-online] room={room.id} player={player_id} online={online}")
            return player

    def drop_stale_players(self, session: RoomSession, now_ms: int) -> list[str]:
        """Remove players that stayed offline past the reconnect grace period."""
        grace_ms = self._settings.reconnect_grace_sec * 1000
        with session.mutate() as outbox:
            room = session.room
            stale = [
                p for p in room.players.values()
                if not p.is_online and p.offline_since_ms is not None and now_ms - p.offline_since_ms >= grace_ms
            ]
            for player in stale:
                del room.players[player.id]
                outbox.append(Event(PLAYER_LEFT, {"player": player.to_dict(), "removed": True}))
                logger.info(f"[player-drop] room={room.id} player={player.id}")
            if stale:
                outbox.append(room_updated(room))
            return [p.id for p in stale]

    # ---- game flow ----

    def start_game(self, session: RoomSession, player_id: str) -> None:
        with session.mutate() as outbox:
            room = session.room
            if room.closed:
                raise room_not_found(room.id)
            if player_id not in room.players:
                raise player_not_found(player_id)
            if player_id != room.host_id:
                raise ConflictError("Only the host can start the game", code="not_host")
            if not room.is_active:
                raise ConflictError("This game has already ended", code="room_inactive")
            if room.state != LOBBY:
                raise ConflictError("The game has already started", code="already_started")
            online = len(room.online_players())
            if online < self._settings.min_players:
                raise ConflictError(
                    f"At least {self._settings.min_players} players are required to start",
                    code="not_enough_players",
                )

            room.round_number = 1
            self._begin_round(room, outbox, self._seat_from(room, room.seats.index(room.host_id)))
            logger.info(f"[game-start] room={room.id} players={online}")

    def end_round(self, session: RoomSession, generation: int, reason: str = "timeout") -> bool:
        """Round-end entry point for the scheduler; False if the trigger was stale."""
        with session.mutate() as outbox:
            if session.room.closed:
                return False
            try:
                self.finish_round(session.room, outbox, generation, reason)
            except TimingError:
                logger.debug(f"[round-stale] room={session.id} generation={generation} reason={reason}")
                return False
            return True

    def finish_round(self, room: Room, outbox: list[Event], generation: int, reason: str) -> None:
        """Commit the single transition out of RoundActive for ``generation``.

        Raises ``TimingError`` when that round already ended; a racing second
        trigger sees the bumped generation and changes nothing.
        """
        if room.state != ROUND_ACTIVE or room.generation != generation:
            raise TimingError(f"Round generation {generation} is no longer active")

        room.state = ROUND_ENDING
        self._scheduler.cancel(room.id)
        word = room.current_word
        outbox.append(
            Event(
                ROUND_ENDED,
                {
                    "roundNumber": room.round_number,
                    "word": word,
                    "reason": reason,
                    "drawerId": room.current_player_id,
                },
            )
        )
        logger.info(f"[round-end] room={room.id} round={room.round_number} reason={reason}")
        room.previous_word = word

        if room.round_number >= room.max_rounds:
            self._end_game(room, outbox, reason="completed")
            return

        seat = self._next_seat(room)
        if seat is None:
            self._end_game(room, outbox, reason="abandoned")
            return

        clear_stroke_log(room, outbox)
        room.round_number += 1
        self._begin_round(room, outbox, seat)

    def end_game(self, session: RoomSession, player_id: str) -> None:
        """Host ends the game early."""
        with session.mutate() as outbox:
            room = session.room
            if room.closed:
                raise room_not_found(room.id)
            if player_id not in room.players:
                raise player_not_found(player_id)
            if player_id != room.host_id:
                raise ConflictError("Only the host can end the game", code="not_host")
            if not room.is_active:
                raise ConflictError("This game has already ended", code="room_inactive")
            self._end_game(room, outbox, reason="host_ended")

    def close(self, session: RoomSession) -> None:
        """Mark the room closed so queued mutations behind the eviction fail."""
        with session.mutate():
            session.room.closed = True
            self._scheduler.cancel(session.id)

    # ---- internals, caller holds the turn ----

    def _begin_round(self, room: Room, outbox: list[Event], seat: int) -> None:
        now = self._clock()
        room.generation += 1
        room.state = ROUND_ACTIVE
        room.drawer_seat = seat
        room.current_player_id = room.seats[seat]
        room.current_word = pick_word(self._words, exclude=room.previous_word, rng=self._rng)
        room.correct_guessers = set()
        room.round_ends_at_ms = now + room.time_per_round * 1000
        self._scheduler.arm(room.id, room.generation, room.round_ends_at_ms)
        outbox.append(room_updated(room))
        logger.info(
            f"[round-start] room={room.id} round={room.round_number}/{room.max_rounds} "
            f"drawer={room.current_player_id} generation={room.generation}"
        )

    def _end_game(self, room: Room, outbox: list[Event], reason: str) -> None:
        self._scheduler.cancel(room.id)
        room.state = STATE_GAME_ENDED
        room.is_active = False
        room.generation += 1
        room.current_player_id = None
        room.current_word = None
        room.round_ends_at_ms = None
        room.ended_at_ms = self._clock()

        standings = sorted(room.players.values(), key=lambda p: p.score, reverse=True)
        outbox.append(
            Event(
                GAME_ENDED,
                {
                    "reason": reason,
                    "roundNumber": room.round_number,
                    "standings": [p.to_dict() for p in standings],
                },
            )
        )
        outbox.append(room_updated(room))
        logger.info(f"[game-end] room={room.id} reason={reason} round={room.round_number}")

    def _next_seat(self, room: Room) -> int | None:
        """Next seat after the current drawer's, in join order."""
        start = room.drawer_seat if room.drawer_seat is not None else -1
        return self._seat_from(room, start + 1)

    def _seat_from(self, room: Room, first: int) -> int | None:
        """First seat at or after ``first``, wrapping, whose player is still present.

        Offline players are skipped while anyone online is left to draw.
        """
        total = len(room.seats)
        fallback = None
        for step in range(total):
            seat = (first + step) % total
            player = room.players.get(room.seats[seat])
            if player is None:
                continue
            if player.is_online:
                return seat
            if fallback is None:
                fallback = seat
        return fallback
