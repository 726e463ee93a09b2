from __future__ import annotations

import math
import re
import uuid
from typing import Any, Callable, Iterable, NamedTuple

from ..config import GameSettings
from ..realtime.events import STROKE_APPENDED, STROKES_CLEARED, Event
from .errors import ConflictError, ValidationError, player_not_found, room_not_found
from .models import ROUND_ACTIVE, Room, Stroke, StrokePoint
from .session import RoomSession


_COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})")
MAX_STROKE_WIDTH = 100


class PathOp(NamedTuple):
    op: str  # "move" | "line"
    x: float
    y: float
    color: str
    width: float


def replay_path(strokes: Iterable[Stroke]) -> list[PathOp]:
    """Flatten a stroke log into the move/line operations a canvas must perform.

    Every stroke opens a new path at its first point; inside a stroke a point
    with ``starts_new_stroke`` opens another one. Any two renderers fed the
    same log produce the same operation sequence.
    """
    ops: list[PathOp] = []
    for stroke in sorted(strokes, key=lambda s: s.seq):
        for index, p in enumerate(stroke.points):
            op = "move" if index == 0 or p.starts_new_stroke else "line"
            ops.append(PathOp(op, p.x, p.y, p.color, p.stroke_width))
    return ops


def _number(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw):
        raise ValidationError(f"Point field {field_name!r} must be a finite number", code="invalid_stroke")
    return float(raw)


def parse_points(raw: Any, max_points: int) -> tuple[StrokePoint, ...]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("Stroke needs a non-empty list of points", code="invalid_stroke")
    if len(raw) > max_points:
        raise ValidationError(f"Stroke has more than {max_points} points", code="invalid_stroke")

    points = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValidationError("Every point must be an object", code="invalid_stroke")
        color = item.get("color")
        if not isinstance(color, str) or not _COLOR_RE.fullmatch(color):
            raise ValidationError("Point color must be a hex color like #000000", code="invalid_stroke")
        width = _number(item.get("strokeWidth"), "strokeWidth")
        if width <= 0 or width > MAX_STROKE_WIDTH:
            raise ValidationError(f"strokeWidth must be in (0, {MAX_STROKE_WIDTH}]", code="invalid_stroke")
        starts_new = item.get("startsNewStroke", False)
        if not isinstance(starts_new, bool):
            raise ValidationError("startsNewStroke must be a boolean", code="invalid_stroke")
        points.append(
            StrokePoint(
                x=_number(item.get("x"), "x"),
                y=_number(item.get("y"), "y"),
                color=color,
                stroke_width=width,
                starts_new_stroke=starts_new,
            )
        )
    return tuple(points)


def clear_stroke_log(room: Room, outbox: list[Event]) -> None:
    """Empty the room's stroke log; caller must hold the room's mutation turn."""
    room.strokes = []
    outbox.append(Event(STROKES_CLEARED, {"roundNumber": room.round_number}))


class StrokeBroadcastChannel:
    def __init__(self, settings: GameSettings, clock: Callable[[], int]):
        self._settings = settings
        self._clock = clock

    def _require_drawer(self, room: Room, player_id: str) -> None:
        if room.closed:
            raise room_not_found(room.id)
        if player_id not in room.players:
            raise player_not_found(player_id)
        if not room.is_active or room.state != ROUND_ACTIVE:
            raise ConflictError("No round is being drawn right now", code="room_not_active")
        if player_id != room.current_player_id:
            raise ConflictError("Only the current drawer can draw", code="not_drawer")

    def submit_stroke(
        self,
        session: RoomSession,
        player_id: str,
        raw_points: Any,
        origin_sid: str | None = None,
    ) -> Stroke:
        points = parse_points(raw_points, self._settings.stroke_max_points)

        with session.mutate() as outbox:
            room = session.room
            self._require_drawer(room, player_id)

            room.stroke_seq += 1
            stroke = Stroke(
                id=uuid.uuid4().hex,
                room_id=room.id,
                player_id=player_id,
                seq=room.stroke_seq,
                points=points,
                created_at_ms=self._clock(),
            )
            room.strokes.append(stroke)
            if len(room.strokes) > self._settings.stroke_log_limit:
                room.strokes = room.strokes[-self._settings.stroke_log_limit:]

            # The drawer already rendered it locally.
            outbox.append(Event(STROKE_APPENDED, {"stroke": stroke.to_dict()}, exclude_sid=origin_sid))
            return stroke

    def clear_strokes(self, session: RoomSession, player_id: str) -> None:
        with session.mutate() as outbox:
            room = session.room
            self._require_drawer(room, player_id)
            clear_stroke_log(room, outbox)
