"""Core game logic and data structures."""

from bgengine.core.types import (
    BAR,
    OFF,
    Evaluation,
    InvalidPositionError,
    Move,
    Player,
    Point,
    Position,
    TurnSequence,
)
from bgengine.core.board import (
    apply_move,
    generate_moves,
    initial_position,
    pip_count,
    validate_position,
)
from bgengine.core.moves import legal_sequences

__all__ = [
    "BAR",
    "OFF",
    "Evaluation",
    "InvalidPositionError",
    "Move",
    "Player",
    "Point",
    "Position",
    "TurnSequence",
    "apply_move",
    "generate_moves",
    "initial_position",
    "pip_count",
    "validate_position",
    "legal_sequences",
]
