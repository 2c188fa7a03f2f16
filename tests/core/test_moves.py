"""Tests for turn-sequence enumeration and the maximal-play rules."""

import numpy as np
import pytest

from bgengine.core.board import (
    apply_moves,
    end_turn,
    initial_position,
    is_game_over,
    position_from_checkers,
    with_dice,
)
from bgengine.core.dice import roll_dice
from bgengine.core.moves import (
    enumerate_sequences,
    legal_sequences,
    max_playable,
    unique_sequences,
)
from bgengine.core.types import Move, Player


class TestEnumeration:
    """Tests for raw sequence enumeration."""

    def test_opening_non_double(self, start):
        sequences = legal_sequences(with_dice(start, (3, 1)))
        assert sequences
        assert all(len(s) == 2 for s in sequences)
        assert all(s.die_sum == 4 for s in sequences)

    def test_doubles_play_four(self, start):
        sequences = legal_sequences(with_dice(start, (3, 3)), distinct=True)
        assert all(len(s) == 4 for s in sequences)

    def test_sequence_position_matches_moves(self, start):
        position = with_dice(start, (6, 4))
        for seq in legal_sequences(position):
            assert apply_moves(position, seq.moves) == seq.position

    def test_distinct_reaches_same_positions(self, start):
        """Pruning repeated intermediate nodes loses no resulting position."""
        position = with_dice(start, (2, 2))
        full = unique_sequences(legal_sequences(position))
        pruned = unique_sequences(legal_sequences(position, distinct=True))
        assert len(full) == len(pruned)

    def test_requires_dice(self, start):
        with pytest.raises(ValueError):
            legal_sequences(start)

    def test_explicit_dice_override(self, start):
        assert legal_sequences(start, (6, 5))

    def test_unique_sequences_keeps_first(self, start):
        position = with_dice(start, (3, 1))
        sequences = legal_sequences(position)
        unique = unique_sequences(sequences)
        assert len(unique) < len(sequences)
        assert unique[0] is sequences[0]


class TestMaximalPlay:
    """The roll must be used as fully as possible."""

    def test_must_play_both_dice(self):
        """Playing the 1 first is the only way to use both dice."""
        position = position_from_checkers(
            white={10: 1, 20: 1},
            black={16: 2, 0: 13},
            dice=(6, 1),
        )
        raw = enumerate_sequences(position)
        assert min(len(s) for s in raw) == 1

        sequences = legal_sequences(position)
        assert len(sequences) == 1
        assert sequences[0].moves == (Move(10, 11, 1), Move(11, 17, 6))

    def test_forced_larger_die(self):
        """Either die alone is playable but not both: the 6 must be played."""
        position = position_from_checkers(
            white={10: 1},
            black={17: 2, 0: 13},
            dice=(6, 1),
        )
        sequences = legal_sequences(position)
        assert [s.moves for s in sequences] == [(Move(10, 16, 6),)]
        assert max_playable(position) == 1

    def test_only_smaller_die_playable(self):
        """If the larger die cannot be played at all, the smaller one is."""
        position = position_from_checkers(
            white={10: 1},
            black={16: 2, 17: 2, 0: 11},
            dice=(6, 1),
        )
        sequences = legal_sequences(position)
        assert [s.moves for s in sequences] == [(Move(10, 11, 1),)]

    def test_partial_doubles(self):
        """Doubles are played as far as possible when blocked part way."""
        position = position_from_checkers(
            white={10: 1},
            black={18: 2, 0: 13},
            dice=(4, 4),
        )
        sequences = legal_sequences(position)
        assert [s.moves for s in sequences] == [(Move(10, 14, 4),)]

    def test_maximal_play_over_random_games(self):
        """Legal sequences always use the most dice any ordering can."""
        rng = np.random.default_rng(3)
        position = initial_position()
        for _ in range(25):
            dice = roll_dice(rng)
            rolled = with_dice(position, dice)
            raw = enumerate_sequences(rolled, distinct=True)
            sequences = legal_sequences(rolled, distinct=True)
            longest = max(len(s) for s in raw)
            assert all(len(s) == longest for s in sequences)

            choice = sequences[int(rng.integers(len(sequences)))]
            position = end_turn(choice.position)
            if is_game_over(position):
                break


class TestNoLegalMove:
    """A roll that cannot be played yields the empty sequence."""

    def test_closed_board(self):
        position = position_from_checkers(
            white={20: 5},
            black={0: 2, 1: 2, 2: 2, 3: 2, 4: 2, 5: 2, 12: 3},
            bar=(1, 0),
            dice=(5, 3),
        )
        sequences = legal_sequences(position)
        assert len(sequences) == 1
        assert len(sequences[0]) == 0
        assert sequences[0].position == position
        assert max_playable(position) == 0

    def test_black_dance(self):
        position = position_from_checkers(
            white={18: 2, 19: 2, 20: 2, 21: 2, 22: 2, 23: 2, 10: 3},
            black={},
            bar=(0, 1),
            player_to_move=Player.BLACK,
            dice=(4, 4),
        )
        sequences = legal_sequences(position)
        assert [s.moves for s in sequences] == [()]
