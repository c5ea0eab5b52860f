"""Tests for round resolution and fluidity rating."""

import random

import pytest

from handreflex.game_rules import (
    GameSession,
    RoundResult,
    counter_move,
    determine_winner,
    rate_fluidity,
)
from handreflex.gesture_types import GestureType

ROCK, PAPER, SCISSORS = GestureType.ROCK, GestureType.PAPER, GestureType.SCISSORS


class TestDetermineWinner:
    @pytest.mark.parametrize("user,ai,expected", [
        (ROCK, SCISSORS, RoundResult.WIN),
        (PAPER, ROCK, RoundResult.WIN),
        (SCISSORS, PAPER, RoundResult.WIN),
        (ROCK, PAPER, RoundResult.LOSE),
        (PAPER, SCISSORS, RoundResult.LOSE),
        (SCISSORS, ROCK, RoundResult.LOSE),
        (ROCK, ROCK, RoundResult.DRAW),
    ])
    def test_outcomes(self, user, ai, expected):
        assert determine_winner(user, ai) == expected

    @pytest.mark.parametrize("gesture", [GestureType.NONE, GestureType.MOVING_UP, GestureType.UNKNOWN])
    def test_non_moves_rejected(self, gesture):
        with pytest.raises(ValueError):
            determine_winner(gesture, ROCK)

    def test_counter_move(self):
        for move in (ROCK, PAPER, SCISSORS):
            assert determine_winner(counter_move(move), move) == RoundResult.WIN


class TestRateFluidity:
    @pytest.mark.parametrize("latency,expected", [
        (0.0, "Excellent Sync!"),
        (149.9, "Excellent Sync!"),
        (150.0, "Good timing."),
        (299.0, "Good timing."),
        (300.0, "Out of sync."),
        (2000.0, "Out of sync."),
    ])
    def test_bands(self, latency, expected):
        assert rate_fluidity(latency) == expected


class TestGameSession:
    def test_scores(self):
        session = GameSession(ai_policy=lambda _move: SCISSORS)
        session.play(ROCK, 100.0)
        session.play(PAPER, 200.0)
        session.play(SCISSORS, 400.0)

        assert session.rounds == 3
        assert session.player_score == 1
        assert session.ai_score == 1
        assert [o.result for o in session.history] == [RoundResult.WIN, RoundResult.LOSE, RoundResult.DRAW]
        assert session.history[1].commentary == "Good timing."

    def test_counter_policy_always_wins(self):
        session = GameSession(ai_policy=counter_move)
        outcome = session.play(PAPER, 50.0)
        assert outcome.ai_move == SCISSORS
        assert outcome.result == RoundResult.LOSE

    def test_default_policy_plays_moves(self):
        session = GameSession(rng=random.Random(7))
        for _ in range(20):
            assert session.play(ROCK, 0.0).ai_move.is_move

    def test_reset(self):
        session = GameSession(ai_policy=lambda _move: SCISSORS)
        session.play(ROCK, 0.0)
        session.reset()
        assert session.rounds == 0
        assert session.player_score == 0
        assert session.history == []
