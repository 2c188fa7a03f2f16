"""
bgengine - backgammon position analysis with heuristic evaluation and dice-averaged search.
"""

__version__ = "0.1.0"

# Core exports
from bgengine.core.types import (
    Evaluation,
    InvalidPositionError,
    Move,
    Player,
    Position,
)
from bgengine.engine import Engine, EngineConfig, analyze

__all__ = [
    "Evaluation",
    "InvalidPositionError",
    "Move",
    "Player",
    "Position",
    "Engine",
    "EngineConfig",
    "analyze",
]
