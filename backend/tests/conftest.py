import os
import random
import sys

import pytest

# Ensure the backend root (containing the `sketchparty` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from sketchparty.config import Config, GameSettings  # noqa: E402
from sketchparty.game.service import GameService  # noqa: E402
from sketchparty.realtime.bus import EventBus  # noqa: E402
from sketchparty.server import create_app  # noqa: E402


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SOCKETIO_ASYNC_MODE = "threading"
    TRUST_PROXY_HEADERS = False


class FakeClock:
    """Millisecond clock that only moves when a test says so."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> int:
        self.now += int(seconds * 1000)
        return self.now


class Recorder:
    """Stands in for Socket.IO rooms and remembers every delivery per sid."""

    def __init__(self):
        self.sent = []
        self.rooms = {}

    def enter_room(self, sid, room):
        self.rooms.setdefault(room, set()).add(sid)

    def leave_room(self, sid, room):
        self.rooms.get(room, set()).discard(sid)

    def close_room(self, room):
        self.rooms.pop(room, None)

    def emit(self, event, payload, to, skip_sid=None):
        skip = set(skip_sid or ())
        targets = sorted(self.rooms[to]) if to in self.rooms else [to]
        for sid in targets:
            if sid not in skip:
                self.sent.append((sid, event, payload))

    def events(self, sid=None):
        return [event for s, event, _ in self.sent if sid is None or s == sid]

    def payloads(self, event, sid=None):
        return [p for s, e, p in self.sent if e == event and (sid is None or s == sid)]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def make_service(clock, recorder):
    def _make(**overrides):
        return GameService(
            settings=GameSettings(**overrides),
            bus=EventBus(recorder),
            clock=clock,
            rng=random.Random(7),
        )

    return _make


@pytest.fixture()
def service(make_service):
    return make_service()


@pytest.fixture()
def lobby(service):
    """A room with a host and one guest, both subscribed; returns ids."""
    created = service.create_room("Alice")
    room_id, host_id = created["roomId"], created["playerId"]
    guest_id = service.join_room(room_id, "Bob")["playerId"]
    service.subscribe(room_id, "sid-host", host_id)
    service.subscribe(room_id, "sid-guest", guest_id)
    return {"room_id": room_id, "host_id": host_id, "guest_id": guest_id}


@pytest.fixture()
def word_of(service):
    def _word(room_id):
        return service.registry.get_room(room_id).snapshot.word

    return _word


@pytest.fixture()
def state_of(service):
    def _state(room_id, viewer_id=None):
        return service.get_state(room_id, viewer_id=viewer_id)["room"]

    return _state


@pytest.fixture()
def flask_app():
    app, _ = create_app(TestConfig)
    yield app


@pytest.fixture()
def socketio_app():
    return create_app(TestConfig)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()
