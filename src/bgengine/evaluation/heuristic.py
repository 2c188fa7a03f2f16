"""Static positional evaluator.

Scores a position from White's point of view (positive = good for White)
as a weighted sum of hand-tuned features:

- race: pip differential through ``tanh``, or the bear-off table once no
  contact remains
- primes: runs of two or more consecutive made points, rewarded
  exponentially in the run length
- blots: single checkers, penalized harder inside the home board and while
  the opponent has a checker on the bar
- anchors: made points inside the opponent's home board
- hits and bear-off progress: opponent checkers on the bar, own checkers off
- shaping: distribution, timing, center control, key points, mobility

Per-side features are computed in each side's own point numbering, so
evaluating the mirrored position yields exactly the negated score.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from bgengine.core.board import point_of
from bgengine.core.types import HOME_SIZE, NUM_POINTS, Player, Position
from bgengine.evaluation.race import (
    DEFAULT_BEAR_OFF_TABLE,
    BearOffTable,
    is_race_position,
    pip_differential,
)


@dataclass
class HeuristicWeights:
    """Weights and constants for the static evaluator.

    Attributes:
        race: Weight of the pip / bear-off race term
        pip_scale: Pips per unit of tanh argument in contact positions
        prime: Weight of the prime score difference
        prime_base: Base of the exponential prime reward
        blot: Weight of the blot penalty difference
        blot_base: Penalty for a blot outside the home board
        blot_home: Penalty for a blot inside the home board
        blot_bar_multiplier: Penalty multiplier while the opponent is on the bar
        anchor: Bonus per anchor in the opponent's home board
        bar: Bonus per opponent checker on the bar
        borne_off: Bonus per own checker borne off
        distribution: Weight of home-board concentration
        timing: Weight of the timing term
        center: Weight of center control (points 7..16)
        key_points: Weight of key point ownership
        mobility: Weight of the mobility proxy
    """
    race: float = 1.0
    pip_scale: float = 100.0
    prime: float = 0.35
    prime_base: float = 1.5
    blot: float = 0.25
    blot_base: float = 0.8
    blot_home: float = 2.0
    blot_bar_multiplier: float = 1.5
    anchor: float = 0.5
    bar: float = 1.0
    borne_off: float = 0.5
    distribution: float = 0.15
    timing: float = 0.2
    center: float = 0.15
    key_points: float = 0.1
    mobility: float = 0.1


DEFAULT_WEIGHTS = HeuristicWeights()

# Own 4, 5 and bar points, plus the opponent's 5-point (golden anchor)
KEY_POINT_PIPS = (4, 5, 7, 20)

# Center points 7..16 by index are pips 8..17 for either side
CENTER_PIPS = range(8, 18)

# Normalizer for the number of distinct single-checker moves
MOBILITY_NORM = 36.0


# ==============================================================================
# PER-SIDE FEATURES
# ==============================================================================


def _own_counts(points: List[int], player: Player) -> List[int]:
    """Checker counts for ``player`` indexed by pip (index 0 unused)."""
    sign = player.sign
    counts = [0] * (NUM_POINTS + 1)
    for pip in range(1, NUM_POINTS + 1):
        value = points[point_of(player, pip)] * sign
        counts[pip] = value if value > 0 else 0
    return counts


def prime_score(counts: List[int], base: float = 1.5) -> float:
    """Sum of ``base ** (length - 1)`` over runs of 2+ consecutive made points."""
    score = 0.0
    run = 0
    for pip in range(NUM_POINTS, 0, -1):
        if counts[pip] >= 2:
            run += 1
        else:
            if run >= 2:
                score += base ** (run - 1)
            run = 0
    if run >= 2:
        score += base ** (run - 1)
    return score


def blot_penalty(counts: List[int], opponent_on_bar: bool, weights: HeuristicWeights) -> float:
    penalty = 0.0
    for pip in range(1, NUM_POINTS + 1):
        if counts[pip] == 1:
            value = weights.blot_home if pip <= HOME_SIZE else weights.blot_base
            if opponent_on_bar:
                value *= weights.blot_bar_multiplier
            penalty += value
    return penalty


def anchor_count(counts: List[int]) -> int:
    """Made points inside the opponent's home board (own pips 19-24)."""
    return sum(1 for pip in range(NUM_POINTS - HOME_SIZE + 1, NUM_POINTS + 1) if counts[pip] >= 2)


def distribution_score(counts: List[int]) -> float:
    """Average checker weight, home-board checkers counting double."""
    total = 0
    concentration = 0
    for pip in range(1, NUM_POINTS + 1):
        count = counts[pip]
        if count:
            total += count
            concentration += count * 2 if pip <= HOME_SIZE else count
    return concentration / total if total else 0.0


def timing_score(counts: List[int], bar: int, off: int) -> float:
    timing = off * 0.1 - bar * 0.2
    all_home = all(counts[pip] == 0 for pip in range(HOME_SIZE + 1, NUM_POINTS + 1))
    if all_home and bar == 0:
        timing += 0.3
    return timing


def _mobility(own: List[int], opponent: List[int], bar: int) -> float:
    """Single-checker moves over the six die faces, from per-pip counts.

    ``own`` and ``opponent`` are indexed by each side's own pips, so the
    opponent's count on own pip ``p`` is ``opponent[25 - p]``.
    """
    moves = 0
    if bar > 0:
        # Entering with die d lands on the opponent's pip d
        for die in range(1, 7):
            if opponent[die] < 2:
                moves += 1
        return min(moves / MOBILITY_NORM, 1.0)

    home = not any(own[pip] for pip in range(HOME_SIZE + 1, NUM_POINTS + 1))
    rearmost = max((pip for pip in range(1, NUM_POINTS + 1) if own[pip]), default=0)
    for pip in range(1, NUM_POINTS + 1):
        if not own[pip]:
            continue
        for die in range(1, 7):
            target = pip - die
            if target >= 1:
                if opponent[NUM_POINTS + 1 - target] < 2:
                    moves += 1
            elif home and (target == 0 or pip == rearmost):
                moves += 1
    return min(moves / MOBILITY_NORM, 1.0)


def mobility_score(position: Position, player: Player) -> float:
    """Distinct single-checker moves over the six die faces, normalized to [0, 1]."""
    points = position.points.tolist()
    return _mobility(
        _own_counts(points, player),
        _own_counts(points, player.opponent()),
        position.bar_count(player),
    )


# ==============================================================================
# EVALUATION
# ==============================================================================


def evaluate_terms(
    position: Position,
    weights: Optional[HeuristicWeights] = None,
    bear_off: Optional[BearOffTable] = None,
) -> Dict[str, float]:
    """Weighted contribution of each feature (White's perspective)."""
    if weights is None:
        weights = DEFAULT_WEIGHTS
    if bear_off is None:
        bear_off = DEFAULT_BEAR_OFF_TABLE

    points = position.points.tolist()
    white = _own_counts(points, Player.WHITE)
    black = _own_counts(points, Player.BLACK)
    w_bar, b_bar = position.bar
    w_off, b_off = position.borne_off

    diff = pip_differential(position)
    if is_race_position(position):
        race = bear_off.equity(diff)
    else:
        race = math.tanh(diff / weights.pip_scale)

    terms = {}
    terms["race"] = race * weights.race
    terms["prime"] = (
        prime_score(white, weights.prime_base) - prime_score(black, weights.prime_base)
    ) * weights.prime
    terms["blots"] = (
        blot_penalty(black, w_bar > 0, weights) - blot_penalty(white, b_bar > 0, weights)
    ) * weights.blot
    terms["anchors"] = (anchor_count(white) - anchor_count(black)) * weights.anchor
    terms["bar"] = (b_bar - w_bar) * weights.bar
    terms["borne_off"] = (w_off - b_off) * weights.borne_off
    terms["distribution"] = (
        distribution_score(white) - distribution_score(black)
    ) * weights.distribution
    terms["timing"] = (
        timing_score(white, w_bar, w_off) - timing_score(black, b_bar, b_off)
    ) * weights.timing
    terms["center"] = (
        sum(white[pip] for pip in CENTER_PIPS) - sum(black[pip] for pip in CENTER_PIPS)
    ) / 10.0 * weights.center
    terms["key_points"] = (
        sum(1 for pip in KEY_POINT_PIPS if white[pip] >= 2)
        - sum(1 for pip in KEY_POINT_PIPS if black[pip] >= 2)
    ) / len(KEY_POINT_PIPS) * weights.key_points
    if weights.mobility:
        terms["mobility"] = (
            _mobility(white, black, w_bar) - _mobility(black, white, b_bar)
        ) * weights.mobility
    else:
        terms["mobility"] = 0.0
    return terms


def evaluate(
    position: Position,
    weights: Optional[HeuristicWeights] = None,
    bear_off: Optional[BearOffTable] = None,
) -> float:
    """Static score of a position, positive favouring White."""
    score = 0.0
    for value in evaluate_terms(position, weights, bear_off).values():
        score += value
    return score


def evaluate_for(
    position: Position,
    player: Player,
    weights: Optional[HeuristicWeights] = None,
    bear_off: Optional[BearOffTable] = None,
) -> float:
    """Static score from ``player``'s side."""
    score = evaluate(position, weights, bear_off)
    return score if player == Player.WHITE else -score
