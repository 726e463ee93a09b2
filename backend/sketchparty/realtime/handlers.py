from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import request
from flask_socketio import SocketIO, emit

from ..game.errors import GameError, ValidationError
from ..game.service import GameService
from .events import ROOM_ERROR, ROOM_SYNC


logger = logging.getLogger(__name__)


def _text(payload: dict, key: str) -> str:
    return str(payload.get(key, "") or "").strip()


def register_socketio_handlers(socketio: SocketIO, service: GameService) -> None:
    def _acked(handler: Callable[[dict], dict | None]) -> Callable[[Any], dict]:
        """Turn a handler's result or GameError into the ack dict; errors also go out as room:error."""

        @functools.wraps(handler)
        def wrapper(data=None):
            payload = data if isinstance(data, dict) else {}
            try:
                result = handler(payload) or {}
            except GameError as err:
                logger.info(f"[socket-reject] sid={request.sid} handler={handler.__name__} error={err.code}")
                emit(ROOM_ERROR, err.to_dict())
                return {"ok": False, **err.to_dict()}
            return {"ok": True, **result}

        return wrapper

    def _room_id(payload: dict) -> str:
        room_id = _text(payload, "roomId")
        if not room_id:
            raise ValidationError("roomId is required", code="invalid_room")
        return room_id

    def _player_id(payload: dict) -> str:
        player_id = _text(payload, "playerId")
        if not player_id:
            # Fall back to the identity this connection subscribed with.
            subscription = service.bus.subscription(request.sid)
            player_id = (subscription[1] if subscription else None) or ""
        if not player_id:
            raise ValidationError("playerId is required")
        return player_id

    def _sync(room_id: str, viewer_id: str | None) -> None:
        state = service.get_state(room_id, viewer_id=viewer_id)
        emit(ROOM_SYNC, dict(state, roomId=room_id), to=request.sid)

    @socketio.on("room:create")
    @_acked
    def room_create(payload: dict):
        created = service.create_room(
            payload.get("hostName"),
            name=payload.get("name"),
            max_rounds=payload.get("maxRounds"),
            time_per_round=payload.get("timePerRound"),
        )
        service.subscribe(created["roomId"], request.sid, created["playerId"])
        _sync(created["roomId"], created["playerId"])
        return created

    @socketio.on("room:join")
    @_acked
    def room_join(payload: dict):
        room_id = _room_id(payload)
        player_id = _text(payload, "playerId")
        if player_id:
            joined = service.rejoin(room_id, player_id)
        else:
            joined = service.join_room(room_id, payload.get("playerName"))
        service.subscribe(joined["roomId"], request.sid, joined["playerId"])
        _sync(joined["roomId"], joined["playerId"])
        return joined

    @socketio.on("room:watch")
    @_acked
    def room_watch(payload: dict):
        session = service.subscribe(_room_id(payload), request.sid)
        _sync(session.id, None)
        return {"roomId": session.id}

    @socketio.on("room:leave")
    @_acked
    def room_leave(payload: dict):
        room_id = _room_id(payload)
        service.leave_room(room_id, _player_id(payload), sid=request.sid)
        return {"roomId": room_id}

    @socketio.on("game:start")
    @_acked
    def game_start(payload: dict):
        return {"room": service.start_game(_room_id(payload), _player_id(payload))}

    @socketio.on("game:end")
    @_acked
    def game_end(payload: dict):
        return {"room": service.end_game(_room_id(payload), _player_id(payload))}

    @socketio.on("guess:submit")
    @_acked
    def guess_submit(payload: dict):
        return service.submit_guess(_room_id(payload), _player_id(payload), payload.get("text"))

    @socketio.on("draw:stroke")
    @_acked
    def draw_stroke(payload: dict):
        stroke = service.submit_stroke(
            _room_id(payload),
            _player_id(payload),
            payload.get("points"),
            origin_sid=request.sid,
        )
        return {"stroke": stroke}

    @socketio.on("draw:clear")
    @_acked
    def draw_clear(payload: dict):
        service.clear_canvas(_room_id(payload), _player_id(payload))

    @socketio.on("disconnect")
    def on_disconnect(*_args):
        service.disconnect(request.sid)
