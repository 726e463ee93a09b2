from __future__ import annotations

import logging
import uuid
from threading import RLock
from typing import Any, Callable

from ..config import GameSettings
from ..realtime.bus import EventBus
from ..realtime.events import ROOM_CLOSED, Event
from .errors import ValidationError, room_not_found
from .machine import SessionMachine
from .models import GAME_ENDED, Player, Room, room_code
from .session import RoomSession


logger = logging.getLogger(__name__)


def validate_name(raw: Any, max_length: int, field_name: str = "name") -> str:
    name = raw.strip() if isinstance(raw, str) else ""
    if not name:
        raise ValidationError(f"{field_name} must not be empty", code="invalid_name")
    if len(name) > max_length:
        raise ValidationError(f"{field_name} is longer than {max_length} characters", code="invalid_name")
    # Avoid obvious HTML/script injection.
    if "<" in name or ">" in name:
        raise ValidationError(f"{field_name} contains forbidden characters", code="invalid_name")
    if any(ord(ch) < 32 for ch in name):
        raise ValidationError(f"{field_name} contains control characters", code="invalid_name")
    return name


def _bounded_int(raw: Any, default: int, upper: int, field_name: str) -> int:
    if raw is None:
        return default
    if isinstance(raw, bool):
        raise ValidationError(f"{field_name} must be an integer", code="invalid_config")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer", code="invalid_config") from None
    if value < 1 or value > upper:
        raise ValidationError(f"{field_name} must be between 1 and {upper}", code="invalid_config")
    return value


class RoomRegistry:
    """Catalog of live rooms.

    The id -> session map is the only structure shared across rooms; it is
    guarded by the registry lock, which is never held while a room's
    mutation turn is taken.
    """

    def __init__(
        self,
        settings: GameSettings,
        machine: SessionMachine,
        bus: EventBus,
        clock: Callable[[], int],
    ):
        self._settings = settings
        self._machine = machine
        self._bus = bus
        self._clock = clock
        self._lock = RLock()
        self._sessions: dict[str, RoomSession] = {}
        # room id -> when its last subscribed connection went away
        self._unwatched_since: dict[str, int] = {}

    def create_room(
        self,
        host_name: Any,
        name: Any = None,
        max_rounds: Any = None,
        time_per_round: Any = None,
    ) -> tuple[RoomSession, Player]:
        settings = self._settings
        host_name = validate_name(host_name, settings.name_max_length, "hostName")
        if name is None or (isinstance(name, str) and not name.strip()):
            room_name = f"{host_name}'s Room"
        else:
            room_name = validate_name(name, settings.name_max_length * 2, "name")
        rounds = _bounded_int(max_rounds, settings.default_max_rounds, settings.max_rounds_limit, "maxRounds")
        seconds = _bounded_int(
            time_per_round,
            settings.default_time_per_round_sec,
            settings.time_per_round_limit_sec,
            "timePerRound",
        )

        now = self._clock()
        with self._lock:
            room_id = uuid.uuid4().hex
            while room_id in self._sessions or self._code_taken(room_code(room_id)):
                room_id = uuid.uuid4().hex

            host = Player(
                id=uuid.uuid4().hex,
                room_id=room_id,
                name=host_name,
                is_host=True,
                joined_at_ms=now,
            )
            room = Room(
                id=room_id,
                name=room_name,
                host_id=host.id,
                max_rounds=rounds,
                time_per_round=seconds,
                created_at_ms=now,
                players={host.id: host},
                seats=[host.id],
            )
            session = RoomSession(room, self._bus)
            self._sessions[room_id] = session
            self._unwatched_since[room_id] = now

        logger.info(f"[room-create] room={room_id} code={room.code} rounds={rounds} seconds={seconds}")
        return session, host

    def _code_taken(self, code: str) -> bool:
        return any(room_code(rid) == code for rid in self._sessions)

    def find(self, room_ref: str) -> RoomSession | None:
        """Look a room up by full id, or by the short code shown to players."""
        ref = (room_ref or "").strip()
        if not ref:
            return None
        with self._lock:
            session = self._sessions.get(ref) or self._sessions.get(ref.lower())
            if session is None:
                code = ref.upper()
                session = next((s for rid, s in self._sessions.items() if room_code(rid) == code), None)
            return session

    def get_room(self, room_ref: str) -> RoomSession:
        session = self.find(room_ref)
        if session is None or session.snapshot.closed:
            raise room_not_found(room_ref)
        return session

    def join_room(self, room_ref: str, player_name: Any) -> tuple[RoomSession, Player]:
        name = validate_name(player_name, self._settings.name_max_length, "playerName")
        session = self.get_room(room_ref)
        return session, self._machine.add_player(session, name)

    def list_active_rooms(self) -> list[dict[str, Any]]:
        with self._lock:
            snapshots = [s.snapshot for s in self._sessions.values()]
        active = [s for s in snapshots if s.is_active and not s.closed]
        active.sort(key=lambda s: s.created_at_ms, reverse=True)
        return [dict(s.summary) for s in active]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def collect_garbage(self, now_ms: int) -> list[str]:
        """Drop long-offline players, then evict empty, unwatched or long-finished rooms.

        A room nobody is subscribed to counts as empty even while its players
        are still marked online, since only a socket disconnect marks them offline.
        """
        with self._lock:
            sessions = list(self._sessions.values())

        reconnect_ms = self._settings.reconnect_grace_sec * 1000
        empty_ms = self._settings.empty_room_grace_sec * 1000
        finished_ms = self._settings.finished_room_grace_sec * 1000
        evicted = []
        for session in sessions:
            snap = session.snapshot
            if snap.closed:
                continue
            if any(now_ms - since >= reconnect_ms for since in snap.offline_since.values()):
                self._machine.drop_stale_players(session, now_ms)
                snap = session.snapshot

            if snap.online_count == 0 and snap.empty_since_ms is not None and now_ms - snap.empty_since_ms >= empty_ms:
                self.evict(session.id, reason="empty")
                evicted.append(session.id)
            elif snap.state == GAME_ENDED and snap.ended_at_ms is not None and now_ms - snap.ended_at_ms >= finished_ms:
                self.evict(session.id, reason="finished")
                evicted.append(session.id)
            elif self._unwatched_for(session.id, now_ms) >= empty_ms:
                self.evict(session.id, reason="unwatched")
                evicted.append(session.id)
        return evicted

    def _unwatched_for(self, room_id: str, now_ms: int) -> int:
        """How long the room has had no subscribed connection; 0 while anyone watches."""
        with self._lock:
            if self._bus.connections(room_id):
                self._unwatched_since.pop(room_id, None)
                return 0
            since = self._unwatched_since.setdefault(room_id, now_ms)
        return now_ms - since

    def evict(self, room_id: str, reason: str = "evicted") -> bool:
        with self._lock:
            session = self._sessions.pop(room_id, None)
            self._unwatched_since.pop(room_id, None)
        if session is None:
            return False
        # Waits behind any queued mutation, then closes the room to later ones.
        self._machine.close(session)
        self._bus.close_room(room_id, Event(ROOM_CLOSED, {"reason": reason}))
        logger.info(f"[room-evict] room={room_id} reason={reason}")
        return True
