"""Core type definitions for the backgammon analysis engine.

This module defines the data structures shared by move generation, the
positional evaluator and the search engine.

Board convention:
    24 points indexed 0..23 holding signed checker counts.
    Positive counts belong to White, negative counts to Black.
    White moves toward increasing index (home board: 18..23).
    Black moves toward decreasing index (home board: 0..5).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import math

import numpy as np
from numpy.typing import NDArray


# ==============================================================================
# CONSTANTS
# ==============================================================================

NUM_POINTS = 24
NUM_CHECKERS = 15
HOME_SIZE = 6

# Move sentinels (shared by both sides)
BAR = -1   # "from the bar"
OFF = 24   # "borne off"

Point = int  # 0..23, or BAR / OFF in a Move


class InvalidPositionError(ValueError):
    """Raised when a position violates checker conservation or dice rules."""


# ==============================================================================
# PLAYERS
# ==============================================================================


class Player(Enum):
    """Player colors."""
    WHITE = "white"
    BLACK = "black"

    def opponent(self) -> "Player":
        """Return the opponent player."""
        return Player.BLACK if self == Player.WHITE else Player.WHITE

    @property
    def sign(self) -> int:
        """Sign of this player's checker counts (also its direction of travel)."""
        return 1 if self == Player.WHITE else -1

    @property
    def index(self) -> int:
        """Slot of this player in the ``bar`` / ``borne_off`` pairs."""
        return 0 if self == Player.WHITE else 1

    def __str__(self) -> str:
        return self.value


# ==============================================================================
# MOVES
# ==============================================================================


def _as_int(value: Any) -> int:
    """Parse an integral JSON number; bools and fractional floats are rejected."""
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValueError(f"Expected an integer, got {value!r}")
        return int(value)
    if isinstance(value, (int, np.integer)):
        return int(value)
    raise TypeError(f"Expected an integer, got {type(value).__name__}")


@dataclass(frozen=True)
class Move:
    """A single die applied to one checker.

    Attributes:
        from_point: Source point index (0..23) or BAR
        to_point: Destination point index (0..23) or OFF
        die: Die value consumed (1-6)
        hits: Whether the move sends an opposing blot to the bar
    """
    from_point: Point
    to_point: Point
    die: int
    hits: bool = False

    def __post_init__(self):
        """Validate move."""
        assert self.from_point == BAR or 0 <= self.from_point < NUM_POINTS, \
            f"Invalid from_point: {self.from_point}"
        assert self.to_point == OFF or 0 <= self.to_point < NUM_POINTS, \
            f"Invalid to_point: {self.to_point}"
        assert 1 <= self.die <= 6, f"Invalid die: {self.die}"

    @property
    def is_entry(self) -> bool:
        return self.from_point == BAR

    @property
    def is_bear_off(self) -> bool:
        return self.to_point == OFF

    def to_dict(self) -> Dict[str, int]:
        return {"from": self.from_point, "to": self.to_point, "die": self.die}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Move":
        """Build a move from a ``{"from", "to", "die"}`` mapping.

        Raises:
            ValueError: If a field is missing or out of range.
        """
        try:
            from_point = _as_int(data["from"])
            to_point = _as_int(data["to"])
            die = _as_int(data["die"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed move: {data!r}") from exc
        if not (from_point == BAR or 0 <= from_point < NUM_POINTS):
            raise ValueError(f"Invalid from point: {from_point}")
        if not (to_point == OFF or 0 <= to_point < NUM_POINTS):
            raise ValueError(f"Invalid to point: {to_point}")
        if not 1 <= die <= 6:
            raise ValueError(f"Invalid die: {die}")
        return Move(from_point, to_point, die, bool(data.get("hits", False)))


# ==============================================================================
# POSITION
# ==============================================================================


def _expand_dice(dice) -> Tuple[int, ...]:
    values = tuple(int(d) for d in dice)
    if len(values) == 2 and values[0] == values[1]:
        return values * 2
    return values


@dataclass
class Position:
    """Complete game state under analysis.

    Attributes:
        points: Signed checker counts for the 24 points (length 24)
        bar: Checkers waiting to re-enter, as (white, black)
        borne_off: Checkers permanently removed, as (white, black)
        player_to_move: Which player acts next
        dice: Roll to be played (two values, four for doubles, or empty)
    """
    points: NDArray[np.int16] = field(
        default_factory=lambda: np.zeros(NUM_POINTS, dtype=np.int16)
    )
    bar: Tuple[int, int] = (0, 0)
    borne_off: Tuple[int, int] = (0, 0)
    player_to_move: Player = Player.WHITE
    dice: Tuple[int, ...] = ()

    def __post_init__(self):
        """Normalize container types."""
        self.points = np.asarray(self.points, dtype=np.int16).copy()
        if self.points.shape != (NUM_POINTS,):
            raise InvalidPositionError(
                f"points must have length {NUM_POINTS}, got shape {self.points.shape}"
            )
        self.bar = (int(self.bar[0]), int(self.bar[1]))
        self.borne_off = (int(self.borne_off[0]), int(self.borne_off[1]))
        self.dice = _expand_dice(self.dice)

    def copy(self) -> "Position":
        """Create a deep copy of the position."""
        return Position(
            points=self.points.copy(),
            bar=self.bar,
            borne_off=self.borne_off,
            player_to_move=self.player_to_move,
            dice=self.dice,
        )

    def checkers_at(self, player: Player, point: Point) -> int:
        """Number of ``player``'s checkers on a board point."""
        count = int(self.points[point]) * player.sign
        return count if count > 0 else 0

    def bar_count(self, player: Player) -> int:
        return self.bar[player.index]

    def off_count(self, player: Player) -> int:
        return self.borne_off[player.index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return (
            np.array_equal(self.points, other.points)
            and self.bar == other.bar
            and self.borne_off == other.borne_off
            and self.player_to_move == other.player_to_move
            and self.dice == other.dice
        )


# ==============================================================================
# SEARCH RESULTS
# ==============================================================================


@dataclass(frozen=True)
class TurnSequence:
    """One way of playing a whole roll.

    Attributes:
        moves: Moves in the order they are played
        position: Position after all moves are applied
        die_sum: Sum of the die values actually used
    """
    moves: Tuple[Move, ...]
    position: Position
    die_sum: int

    def __len__(self) -> int:
        return len(self.moves)


@dataclass(frozen=True)
class Evaluation:
    """Engine verdict for a position and roll.

    All values are from the perspective of the side to move.

    Attributes:
        win_probability: P(win), in [0, 1]
        gammon_probability: P(win a gammon), in [0, 1]
        backgammon_probability: P(win a backgammon), in [0, 1]
        equity: Expected equity of the recommended play
        best_moves: Recommended moves (empty when the roll cannot be played)
        source: Which layer produced the verdict
    """
    win_probability: float
    gammon_probability: float
    backgammon_probability: float
    equity: float
    best_moves: Tuple[Move, ...] = ()
    source: str = "search"

    def __post_init__(self):
        """Validate probabilities."""
        for name in ("win_probability", "gammon_probability", "backgammon_probability"):
            value = getattr(self, name)
            assert 0.0 <= value <= 1.0, f"{name} out of range: {value}"
        assert math.isfinite(self.equity), f"Non-finite equity: {self.equity}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-ready response shape."""
        return {
            "winProbability": self.win_probability,
            "gammonProbability": self.gammon_probability,
            "backgammonProbability": self.backgammon_probability,
            "equity": self.equity,
            "bestMoves": [m.to_dict() for m in self.best_moves],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any], source: str = "rescored") -> "Evaluation":
        """Create from the JSON response shape.

        Raises:
            ValueError: If any field is missing, of the wrong type or out of range.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")
        values = {}
        for key in ("winProbability", "gammonProbability", "backgammonProbability"):
            value = _as_float(data.get(key), key)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{key} out of range: {value}")
            values[key] = value
        equity = _as_float(data.get("equity"), "equity")
        moves_data = data.get("bestMoves", [])
        if not isinstance(moves_data, list):
            raise ValueError("bestMoves must be a list")
        moves: List[Move] = [Move.from_dict(m) for m in moves_data]
        return Evaluation(
            win_probability=values["winProbability"],
            gammon_probability=values["gammonProbability"],
            backgammon_probability=values["backgammonProbability"],
            equity=equity,
            best_moves=tuple(moves),
            source=source,
        )


def _as_float(value: Optional[Any], name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"{name} must be finite")
    return result


# Legal turns for a given position + dice
LegalSequences = List[TurnSequence]
