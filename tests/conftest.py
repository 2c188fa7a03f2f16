"""Pytest configuration and shared fixtures."""

import pytest

from bgengine.core.board import initial_position, position_from_checkers
from bgengine.core.types import Player
from bgengine.engine import Engine, EngineConfig
from bgengine.evaluation.search import TranspositionTable


@pytest.fixture
def start():
    """Standard starting position, White to move."""
    return initial_position()


@pytest.fixture
def bearoff_position():
    """Small race: both sides well into the bear-off, White to move."""
    return position_from_checkers(
        white={21: 1, 22: 2, 23: 1},
        black={0: 2, 1: 1, 3: 1},
        player_to_move=Player.WHITE,
    )


@pytest.fixture
def fast_engine():
    """Engine with shallow search so tests run quickly."""
    config = EngineConfig(depth=1, branching_cap=3)
    return Engine(config, transposition_table=TranspositionTable(max_size=10_000))
