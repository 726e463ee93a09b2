from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from ..config import GameSettings
from ..realtime.events import GUESS_SUBMITTED, Event
from .errors import ConflictError, ValidationError, player_not_found, room_not_found
from .machine import SessionMachine
from .models import ROUND_ACTIVE, Guess
from .session import RoomSession
from .words import normalize


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuessResult:
    accepted: bool
    is_correct: bool
    points_awarded: int
    guess: Guess

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "isCorrect": self.is_correct,
            "pointsAwarded": self.points_awarded,
            "guess": self.guess.to_dict(),
        }


class GuessEvaluator:
    def __init__(self, settings: GameSettings, machine: SessionMachine, clock: Callable[[], int]):
        self._settings = settings
        self._machine = machine
        self._clock = clock

    def submit_guess(self, session: RoomSession, player_id: str, text: Any) -> GuessResult:
        """Record a guess; a first correct one scores and ends the round.

        Rejections raise before anything is recorded.
        """
        cleaned = text.strip() if isinstance(text, str) else ""
        if not cleaned:
            raise ValidationError("Guess must not be empty")
        if len(cleaned) > self._settings.guess_max_length:
            raise ValidationError(f"Guess is longer than {self._settings.guess_max_length} characters")

        with session.mutate() as outbox:
            room = session.room
            if room.closed:
                raise room_not_found(room.id)
            player = room.players.get(player_id)
            if player is None:
                raise player_not_found(player_id)
            if room.state != ROUND_ACTIVE or not room.current_word:
                raise ConflictError("No round is being played right now", code="room_not_active")
            if player_id == room.current_player_id:
                raise ConflictError("The drawer cannot guess", code="is_drawer")

            is_correct = normalize(cleaned) == normalize(room.current_word)
            guess = Guess(
                id=uuid.uuid4().hex,
                room_id=room.id,
                player_id=player_id,
                player_name=player.name,
                text=cleaned,
                is_correct=is_correct,
                round_number=room.round_number,
                created_at_ms=self._clock(),
            )
            room.guesses.append(guess)
            if len(room.guesses) > self._settings.guess_log_limit:
                room.guesses = room.guesses[-self._settings.guess_log_limit:]

            points = 0
            if is_correct and player_id not in room.correct_guessers:
                room.correct_guessers.add(player_id)
                points = self._settings.correct_guess_points
                player.score += points

            # Everyone but the guesser learns that the word was hit, not the word.
            outbox.append(
                Event(
                    GUESS_SUBMITTED,
                    {"guess": guess.to_dict(reveal_text=False), "player": player.to_dict()},
                    private={player_id: {"guess": guess.to_dict(), "player": player.to_dict()}},
                )
            )

            if points:
                logger.info(f"[guess-correct] room={room.id} player={player_id} round={room.round_number}")
                self._machine.finish_round(room, outbox, room.generation, reason="guessed")

            return GuessResult(accepted=True, is_correct=is_correct, points_awarded=points, guess=guess)
