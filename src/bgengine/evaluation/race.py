"""Race detection and the bear-off equity table.

When both players have disengaged (no contact), the game becomes a pure
race. In this situation the equity can be estimated from the pip count
difference alone, which is faster and steadier than the full positional
heuristic.

The bear-off table maps a quantized pip differential (multiples of 5,
White's lead positive) to an equity in [-1, 1]. It is built once from a
tanh curve sampled every 5 pips plus a handful of anchor points taken
from race win-rate tables; differentials outside the table fall back to
the curve, never dropping below the table edge.
"""

import math
from typing import Dict, Optional

import numpy as np

from bgengine.core.board import pip_count
from bgengine.core.types import NUM_POINTS, Player, Position


# Equity at selected pip leads (White's perspective)
BEAR_OFF_ANCHORS: Dict[int, float] = {
    0: 0.0,
    10: 0.2,
    20: 0.5,
    30: 0.7,
    40: 0.84,
    50: 0.92,
}


def is_race_position(position: Position) -> bool:
    """Check if the position is a pure race (no contact).

    A race position means all of one player's checkers are ahead of
    all of the other player's checkers and nobody is on the bar.
    """
    if position.bar[0] > 0 or position.bar[1] > 0:
        return False

    points = position.points.tolist()
    white_rearmost = NUM_POINTS
    black_rearmost = -1
    for point, count in enumerate(points):
        if count > 0:
            white_rearmost = min(white_rearmost, point)
        elif count < 0:
            black_rearmost = max(black_rearmost, point)

    return white_rearmost > black_rearmost


def pip_differential(position: Position) -> int:
    """Black's pip count minus White's (positive = White leads)."""
    return pip_count(position, Player.BLACK) - pip_count(position, Player.WHITE)


class BearOffTable:
    """Pip-differential → equity lookup for race positions.

    Args:
        step: Quantization step in pips.
        span: Largest differential stored in the table.
        scale: Scale of the tanh curve used for samples and fallback.
        anchors: Hand-picked equities overriding curve samples
            (mirrored automatically for negative differentials).
    """

    def __init__(
        self,
        step: int = 5,
        span: int = 50,
        scale: float = 36.0,
        anchors: Optional[Dict[int, float]] = None,
    ):
        self.step = step
        self.span = span
        self.scale = scale
        self._table: Dict[int, float] = {}

        for diff in range(-span, span + 1, step):
            self._table[diff] = float(np.tanh(diff / scale))
        for diff, equity in (BEAR_OFF_ANCHORS if anchors is None else anchors).items():
            self._table[diff] = equity
            self._table[-diff] = -equity

    def quantize(self, diff: float) -> int:
        """Round to the nearest multiple of ``step`` (halves away from zero)."""
        magnitude = int(math.floor(abs(diff) / self.step + 0.5)) * self.step
        return magnitude if diff >= 0 else -magnitude

    def lookup(self, diff: float) -> Optional[float]:
        """Stored equity for a differential, or None outside the table."""
        return self._table.get(self.quantize(diff))

    def equity(self, diff: float) -> float:
        """Equity for a differential, falling back to the curve."""
        key = self.quantize(diff)
        stored = self._table.get(key)
        if stored is not None:
            return stored
        curve = float(np.tanh(key / self.scale))
        edge = self._table[self.span]
        return max(edge, curve) if key > 0 else min(-edge, curve)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, diff: int) -> bool:
        return diff in self._table


DEFAULT_BEAR_OFF_TABLE = BearOffTable()


def race_equity(
    position: Position,
    player: Player,
    table: Optional[BearOffTable] = None,
) -> float:
    """Estimate race equity for ``player`` from the bear-off table.

    Returns:
        Estimated equity in [-1, 1] where +1 = certain win for ``player``.
    """
    if table is None:
        table = DEFAULT_BEAR_OFF_TABLE
    equity = table.equity(pip_differential(position))
    return equity if player == Player.WHITE else -equity
