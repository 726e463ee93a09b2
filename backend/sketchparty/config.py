import os
from dataclasses import dataclass, fields
from typing import Any, Mapping


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Empty means: pick per platform (see server.create_app)
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    # Game
    DEFAULT_MAX_ROUNDS = int(os.environ.get("DEFAULT_MAX_ROUNDS", "5"))
    DEFAULT_TIME_PER_ROUND_SEC = int(os.environ.get("DEFAULT_TIME_PER_ROUND_SEC", "60"))
    MAX_ROUNDS_LIMIT = int(os.environ.get("MAX_ROUNDS_LIMIT", "20"))
    TIME_PER_ROUND_LIMIT_SEC = int(os.environ.get("TIME_PER_ROUND_LIMIT_SEC", "300"))
    MIN_PLAYERS = int(os.environ.get("MIN_PLAYERS", "2"))
    CORRECT_GUESS_POINTS = int(os.environ.get("CORRECT_GUESS_POINTS", "10"))

    # Input limits
    NAME_MAX_LENGTH = int(os.environ.get("NAME_MAX_LENGTH", "32"))
    GUESS_MAX_LENGTH = int(os.environ.get("GUESS_MAX_LENGTH", "100"))
    GUESS_LOG_LIMIT = int(os.environ.get("GUESS_LOG_LIMIT", "200"))
    STROKE_MAX_POINTS = int(os.environ.get("STROKE_MAX_POINTS", "500"))
    STROKE_LOG_LIMIT = int(os.environ.get("STROKE_LOG_LIMIT", "2000"))

    # Lifecycle
    EMPTY_ROOM_GRACE_SEC = int(os.environ.get("EMPTY_ROOM_GRACE_SEC", "300"))
    RECONNECT_GRACE_SEC = int(os.environ.get("RECONNECT_GRACE_SEC", "60"))
    FINISHED_ROOM_GRACE_SEC = int(os.environ.get("FINISHED_ROOM_GRACE_SEC", "300"))
    SCHEDULER_TICK_SEC = float(os.environ.get("SCHEDULER_TICK_SEC", "0.25"))
    ENABLE_SCHEDULER_IN_TESTS = False


@dataclass(frozen=True)
class GameSettings:
    """The game-engine subset of ``Config``, usable without a Flask app."""

    default_max_rounds: int = 5
    default_time_per_round_sec: int = 60
    max_rounds_limit: int = 20
    time_per_round_limit_sec: int = 300
    min_players: int = 2
    correct_guess_points: int = 10
    name_max_length: int = 32
    guess_max_length: int = 100
    guess_log_limit: int = 200
    stroke_max_points: int = 500
    stroke_log_limit: int = 2000
    empty_room_grace_sec: int = 300
    reconnect_grace_sec: int = 60
    finished_room_grace_sec: int = 300

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "GameSettings":
        values = {}
        for f in fields(cls):
            key = f.name.upper()
            if mapping.get(key) is not None:
                values[f.name] = int(mapping[key])
        return cls(**values)
