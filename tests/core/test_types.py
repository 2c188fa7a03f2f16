"""Tests for core type definitions."""

import math

import numpy as np
import pytest

from bgengine.core.types import (
    BAR,
    OFF,
    Evaluation,
    Move,
    Player,
    Position,
)


class TestPlayer:
    """Tests for Player enum."""

    def test_opponent(self):
        assert Player.WHITE.opponent() == Player.BLACK
        assert Player.BLACK.opponent() == Player.WHITE

    def test_string_representation(self):
        assert str(Player.WHITE) == "white"
        assert str(Player.BLACK) == "black"

    def test_sign_and_index(self):
        assert Player.WHITE.sign == 1
        assert Player.BLACK.sign == -1
        assert Player.WHITE.index == 0
        assert Player.BLACK.index == 1


class TestMove:
    """Tests for Move."""

    def test_sentinels(self):
        assert Move(BAR, 3, 4).is_entry
        assert Move(20, OFF, 4).is_bear_off

    def test_invalid_die(self):
        with pytest.raises(AssertionError):
            Move(0, 3, 7)

    def test_dict_round_trip(self):
        move = Move(BAR, 3, 4)
        assert move.to_dict() == {"from": -1, "to": 3, "die": 4}
        assert Move.from_dict(move.to_dict()) == move

    @pytest.mark.parametrize("data", [
        {"from": 3, "to": 5},
        {"from": 30, "to": 5, "die": 2},
        {"from": 3, "to": -4, "die": 2},
        {"from": 3, "to": 5, "die": 9},
        {"from": None, "to": 5, "die": 2},
        {"from": "3", "to": 5, "die": 2},
        {"from": float("inf"), "to": 5, "die": 2},
        {"from": float("nan"), "to": 5, "die": 2},
        {"from": 3.7, "to": 5, "die": 2},
        {"from": 3, "to": 5, "die": True},
        "3/5",
    ])
    def test_from_dict_rejects(self, data):
        with pytest.raises(ValueError):
            Move.from_dict(data)

    def test_from_dict_accepts_integral_floats(self):
        assert Move.from_dict({"from": 3.0, "to": 5.0, "die": 2.0}) == Move(3, 5, 2)


class TestPosition:
    """Tests for Position dataclass."""

    def test_defaults(self):
        position = Position()
        assert len(position.points) == 24
        assert position.points.dtype == np.int16
        assert position.player_to_move == Player.WHITE
        assert position.dice == ()

    def test_doubles_expand(self):
        assert Position(dice=(5, 5)).dice == (5, 5, 5, 5)
        assert Position(dice=(5, 2)).dice == (5, 2)

    def test_points_are_copied(self):
        points = np.zeros(24, dtype=np.int16)
        position = Position(points=points)
        points[0] = 3
        assert position.points[0] == 0

    def test_checkers_at(self):
        points = np.zeros(24, dtype=np.int16)
        points[4] = 3
        points[9] = -2
        position = Position(points=points)
        assert position.checkers_at(Player.WHITE, 4) == 3
        assert position.checkers_at(Player.BLACK, 4) == 0
        assert position.checkers_at(Player.BLACK, 9) == 2

    def test_equality(self):
        a = Position(dice=(3, 1))
        b = Position(dice=(3, 1))
        assert a == b
        assert a != Position(dice=(3, 2))


class TestEvaluation:
    """Tests for Evaluation serialization and validation."""

    def _evaluation(self):
        return Evaluation(
            win_probability=0.6,
            gammon_probability=0.12,
            backgammon_probability=0.03,
            equity=0.2,
            best_moves=(Move(0, 3, 3), Move(18, 19, 1)),
        )

    def test_to_dict(self):
        data = self._evaluation().to_dict()
        assert data["winProbability"] == 0.6
        assert data["bestMoves"][0] == {"from": 0, "to": 3, "die": 3}

    def test_from_dict(self):
        restored = Evaluation.from_dict(self._evaluation().to_dict())
        assert restored.best_moves == self._evaluation().best_moves
        assert restored.source == "rescored"

    def test_probability_range(self):
        with pytest.raises(AssertionError):
            Evaluation(1.5, 0.1, 0.0, 0.0)

    def test_from_dict_rejects_bad_values(self):
        data = self._evaluation().to_dict()
        for key, value in [
            ("winProbability", 1.2),
            ("gammonProbability", "high"),
            ("equity", math.inf),
            ("equity", True),
            ("bestMoves", "24/21"),
        ]:
            bad = dict(data)
            bad[key] = value
            with pytest.raises(ValueError):
                Evaluation.from_dict(bad)

    def test_from_dict_requires_object(self):
        with pytest.raises(ValueError):
            Evaluation.from_dict([])
