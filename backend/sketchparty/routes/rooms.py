from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..game.errors import GameError, ValidationError
from ..game.service import GameService

bp = Blueprint("rooms", __name__)


def _service() -> GameService:
    return current_app.extensions["sketchparty"]


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _player_id(data: dict) -> str:
    player_id = str(data.get("playerId", "")).strip()
    if not player_id:
        raise ValidationError("playerId is required")
    return player_id


@bp.errorhandler(GameError)
def handle_game_error(err: GameError):
    return jsonify(err.to_dict()), err.status


@bp.post("/rooms")
def create_room():
    data = _payload()
    created = _service().create_room(
        data.get("hostName"),
        name=data.get("name"),
        max_rounds=data.get("maxRounds"),
        time_per_round=data.get("timePerRound"),
    )
    return jsonify(created), 201


@bp.get("/rooms")
def list_rooms():
    return jsonify({"rooms": _service().list_active_rooms()})


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    viewer = request.args.get("playerId") or None
    return jsonify(_service().get_state(room_id, viewer_id=viewer))


@bp.post("/rooms/<room_id>/players")
def join_room(room_id: str):
    data = _payload()
    joined = _service().join_room(room_id, data.get("playerName"))
    return jsonify(joined), 201


@bp.post("/rooms/<room_id>/start")
def start_game(room_id: str):
    data = _payload()
    return jsonify({"ok": True, "room": _service().start_game(room_id, _player_id(data))})


@bp.post("/rooms/<room_id>/end")
def end_game(room_id: str):
    data = _payload()
    return jsonify({"ok": True, "room": _service().end_game(room_id, _player_id(data))})


@bp.post("/rooms/<room_id>/leave")
def leave_room(room_id: str):
    data = _payload()
    _service().leave_room(room_id, _player_id(data))
    return jsonify({"ok": True})


@bp.post("/rooms/<room_id>/guesses")
def submit_guess(room_id: str):
    data = _payload()
    return jsonify(_service().submit_guess(room_id, _player_id(data), data.get("text")))


@bp.post("/rooms/<room_id>/strokes")
def submit_stroke(room_id: str):
    data = _payload()
    stroke = _service().submit_stroke(room_id, _player_id(data), data.get("points"))
    return jsonify({"stroke": stroke}), 201


@bp.delete("/rooms/<room_id>/strokes")
def clear_canvas(room_id: str):
    data = _payload()
    _service().clear_canvas(room_id, _player_id(data))
    return jsonify({"ok": True})
