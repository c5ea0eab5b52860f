"""Round resolution and fluidity rating for the reaction game."""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import FLUIDITY_EXCELLENT_MS, FLUIDITY_GOOD_MS
from .gesture_types import GestureType

MOVES: tuple[GestureType, ...] = (GestureType.ROCK, GestureType.PAPER, GestureType.SCISSORS)


# move -> move it beats
_BEATS: dict[GestureType, GestureType] = {
    GestureType.ROCK: GestureType.SCISSORS,
    GestureType.PAPER: GestureType.ROCK,
    GestureType.SCISSORS: GestureType.PAPER,
}


class RoundResult(Enum):
    """Outcome from the player's point of view."""
    WIN = "win"
    LOSE = "lose"
    DRAW = "draw"


def determine_winner(user_move: GestureType, ai_move: GestureType) -> RoundResult:
    """
    Compare two moves.

    Raises:
        ValueError: If either gesture is not rock, paper or scissors.
    """
    for move in (user_move, ai_move):
        if not move.is_move:
            raise ValueError(f"Not a playable move: {move.value}")

    if user_move == ai_move:
        return RoundResult.DRAW
    if _BEATS[user_move] == ai_move:
        return RoundResult.WIN
    return RoundResult.LOSE


def counter_move(move: GestureType) -> GestureType:
    """Return the move that beats the given one."""
    for candidate, beaten in _BEATS.items():
        if beaten == move:
            return candidate
    raise ValueError(f"Not a playable move: {move.value}")


def rate_fluidity(latency_ms: float) -> str:
    """Short commentary for the action-to-response latency."""
    if latency_ms < FLUIDITY_EXCELLENT_MS:
        return "Excellent Sync!"
    if latency_ms < FLUIDITY_GOOD_MS:
        return "Good timing."
    return "Out of sync."


@dataclass
class RoundOutcome:
    """One resolved round."""
    round_number: int
    user_move: GestureType
    ai_move: GestureType
    result: RoundResult
    latency_ms: float
    commentary: str


class GameSession:
    """
    Score keeper for a series of rounds against the AI opponent.

    Attributes:
        player_score: Rounds won by the player.
        ai_score: Rounds won by the opponent.
        rounds: Rounds played.
    """

    def __init__(
        self,
        ai_policy: Optional[Callable[[GestureType], GestureType]] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            ai_policy: Chooses the opponent move given the player's move.
                Defaults to a uniformly random move.
            rng: Random source for the default policy.
        """
        self._rng = rng or random.Random()
        self._ai_policy = ai_policy or (lambda _user_move: self._rng.choice(MOVES))
        self.player_score = 0
        self.ai_score = 0
        self.rounds = 0
        self.history: list[RoundOutcome] = []

    def play(self, user_move: GestureType, latency_ms: float) -> RoundOutcome:
        """
        Resolve one round.

        Raises:
            ValueError: If user_move is not rock, paper or scissors.
        """
        ai_move = self._ai_policy(user_move)
        result = determine_winner(user_move, ai_move)

        self.rounds += 1
        if result == RoundResult.WIN:
            self.player_score += 1
        elif result == RoundResult.LOSE:
            self.ai_score += 1

        outcome = RoundOutcome(
            round_number=self.rounds,
            user_move=user_move,
            ai_move=ai_move,
            result=result,
            latency_ms=latency_ms,
            commentary=rate_fluidity(latency_ms),
        )
        self.history.append(outcome)
        return outcome

    def reset(self) -> None:
        self.player_score = 0
        self.ai_score = 0
        self.rounds = 0
        self.history.clear()
