from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Callable


logger = logging.getLogger(__name__)

ExpireFn = Callable[[str, int], None]


@dataclass(frozen=True)
class Countdown:
    room_id: str
    generation: int
    deadline_ms: int


class RoundScheduler:
    """Round countdowns, one per room, keyed by the round generation they guard.

    Arming a room replaces its previous countdown, so a round transition
    resets the timer atomically with the generation bump. ``run_due`` is
    driven by a single background sweeper; an expired countdown calls back
    into the state machine's round-end entry point with the generation it
    was armed for, and the machine ignores it if that round is already over.
    """

    def __init__(self, on_expire: ExpireFn | None = None):
        self._lock = RLock()
        self._timers: dict[str, Countdown] = {}
        self._on_expire = on_expire

    def bind(self, on_expire: ExpireFn) -> None:
        self._on_expire = on_expire

    def arm(self, room_id: str, generation: int, deadline_ms: int) -> Countdown:
        countdown = Countdown(room_id=room_id, generation=generation, deadline_ms=deadline_ms)
        with self._lock:
            self._timers[room_id] = countdown
        logger.info(f"[timer-set] room={room_id} generation={generation} deadline={deadline_ms}")
        return countdown

    def cancel(self, room_id: str) -> bool:
        with self._lock:
            countdown = self._timers.pop(room_id, None)
        if countdown is not None:
            logger.info(f"[timer-cancel] room={room_id} generation={countdown.generation}")
        return countdown is not None

    def get(self, room_id: str) -> Countdown | None:
        with self._lock:
            return self._timers.get(room_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def run_due(self, now_ms: int) -> list[Countdown]:
        """Fire every countdown whose deadline has passed; returns the fired ones."""
        with self._lock:
            due = [c for c in self._timers.values() if c.deadline_ms <= now_ms]
            for countdown in due:
                del self._timers[countdown.room_id]

        for countdown in due:
            logger.info(f"[timer-fire] room={countdown.room_id} generation={countdown.generation}")
            if self._on_expire is None:
                continue
            try:
                self._on_expire(countdown.room_id, countdown.generation)
            except Exception:
                logger.exception(f"[timer-error] room={countdown.room_id} generation={countdown.generation}")
        return due
