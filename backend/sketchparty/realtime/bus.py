from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Protocol

from flask_socketio import SocketIO, join_room, leave_room

from .events import Event


logger = logging.getLogger(__name__)


class Transport(Protocol):
    def emit(self, event: str, payload: dict, to: str, skip_sid: list[str] | None = None) -> None: ...

    def enter_room(self, sid: str, room: str) -> None: ...

    def leave_room(self, sid: str, room: str) -> None: ...

    def close_room(self, room: str) -> None: ...


class SocketIOTransport:
    """Socket.IO rooms named after room ids.

    ``enter_room``/``leave_room`` run inside a Socket.IO handler (they need
    the app context); ``emit`` and ``close_room`` work from background tasks.
    """

    def __init__(self, socketio: SocketIO, namespace: str = "/"):
        self._socketio = socketio
        self._namespace = namespace

    def emit(self, event: str, payload: dict, to: str, skip_sid: list[str] | None = None) -> None:
        self._socketio.emit(event, payload, to=to, skip_sid=skip_sid, namespace=self._namespace)

    def enter_room(self, sid: str, room: str) -> None:
        join_room(room, sid=sid, namespace=self._namespace)

    def leave_room(self, sid: str, room: str) -> None:
        leave_room(room, sid=sid, namespace=self._namespace)

    def close_room(self, room: str) -> None:
        self._socketio.close_room(room, namespace=self._namespace)


class EventBus:
    """Fans room events out through the transport's rooms.

    Room membership lives in the transport (Socket.IO rooms). The bus only
    remembers which room and player each connection subscribed as, so the
    drawer's connections can be skipped on the public emit and sent their
    private payload instead. A connection watches at most one room at a time.

    Delivery is best-effort: a failing emit is logged and skipped. The order
    of ``publish`` calls for one room is the order of delivery, which the
    per-room mutation queue guarantees matches commit order.
    """

    def __init__(self, transport: Transport | None = None):
        self._transport = transport
        self._lock = RLock()
        # sid -> (room_id, player_id)
        self._members: dict[str, tuple[str, str | None]] = {}

    def bind(self, transport: Transport) -> None:
        self._transport = transport

    def subscribe(self, room_id: str, sid: str, player_id: str | None = None) -> None:
        with self._lock:
            previous = self._members.get(sid)
            self._members[sid] = (room_id, player_id)
        if self._transport is None:
            return
        if previous is not None and previous[0] != room_id:
            self._transport.leave_room(sid, previous[0])
        self._transport.enter_room(sid, room_id)

    def unsubscribe(self, sid: str) -> tuple[str, str | None] | None:
        """Drop the connection's subscription; returns ``(room_id, player_id)`` it had."""
        with self._lock:
            subscription = self._members.pop(sid, None)
        if subscription is not None and self._transport is not None:
            self._transport.leave_room(sid, subscription[0])
        return subscription

    def subscription(self, sid: str) -> tuple[str, str | None] | None:
        with self._lock:
            return self._members.get(sid)

    def connections(self, room_id: str, player_id: str | None = None) -> list[str]:
        with self._lock:
            return [
                sid for sid, (rid, pid) in self._members.items()
                if rid == room_id and (player_id is None or pid == player_id)
            ]

    def publish(self, room_id: str, event: Event) -> None:
        """Emit the public payload to the room, then each private payload to its connections."""
        if self._transport is None:
            return
        with self._lock:
            members = [(sid, pid) for sid, (rid, pid) in self._members.items() if rid == room_id]
        if not members:
            return

        private = [
            (sid, pid) for sid, pid in members
            if pid is not None and pid in event.private and sid != event.exclude_sid
        ]
        skip = [sid for sid, _ in private]
        if event.exclude_sid:
            skip.append(event.exclude_sid)

        self._send(room_id, event.kind, dict(event.payload, roomId=room_id), to=room_id, skip_sid=skip or None)
        for sid, pid in private:
            self._send(room_id, event.kind, dict(event.private[pid], roomId=room_id), to=sid)

    def _send(self, room_id: str, kind: str, payload: dict[str, Any], to: str, skip_sid: list[str] | None = None) -> None:
        try:
            self._transport.emit(kind, payload, to=to, skip_sid=skip_sid)
        except Exception:
            logger.warning(f"[bus-drop] room={room_id} to={to} event={kind}", exc_info=True)

    def close_room(self, room_id: str, event: Event) -> None:
        """Publish a terminal event and forget every subscription of the room."""
        self.publish(room_id, event)
        with self._lock:
            for sid in [sid for sid, (rid, _) in self._members.items() if rid == room_id]:
                del self._members[sid]
        if self._transport is not None:
            self._transport.close_room(room_id)
