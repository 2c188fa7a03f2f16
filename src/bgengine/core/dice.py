"""Dice utilities for backgammon.

Rolls are unordered pairs: there are 21 of them, each with a weight out of
36 ordered outcomes.
"""

from typing import Dict, List, Sequence, Tuple
import numpy as np


Dice = Tuple[int, int]


def all_dice_rolls() -> List[Dice]:
    """The 21 distinct rolls as (low, high) pairs, doubles included."""
    return [(low, high) for low in range(1, 7) for high in range(low, 7)]


def is_doubles(dice: Sequence[int]) -> bool:
    """Check if dice roll is doubles."""
    return len(dice) >= 2 and all(d == dice[0] for d in dice)


def dice_values(dice: Sequence[int]) -> List[int]:
    """Die values to play, with a double expanded to four.

    Examples:
        >>> dice_values((3, 5))
        [3, 5]
        >>> dice_values((4, 4))
        [4, 4, 4, 4]
    """
    if len(dice) == 2 and dice[0] == dice[1]:
        return [dice[0]] * 4
    return list(dice)


def roll_dice(rng: np.random.Generator) -> Dice:
    """Roll two dice."""
    die1 = int(rng.integers(1, 7))
    die2 = int(rng.integers(1, 7))
    return (die1, die2)


def canonicalize_dice(dice: Sequence[int]) -> Dice:
    """Canonical unordered form of a roll: (high, low).

    Four-value doubles collapse to a pair.

    Examples:
        >>> canonicalize_dice((3, 5))
        (5, 3)
        >>> canonicalize_dice((4, 4, 4, 4))
        (4, 4)
    """
    if not dice:
        raise ValueError("Cannot canonicalize an empty roll")
    return (max(dice), min(dice))


def dice_to_string(dice: Sequence[int]) -> str:
    """Human-readable roll, high die first.

    Examples:
        >>> dice_to_string((3, 5))
        '5-3'
        >>> dice_to_string((4, 4))
        'Double 4s'
    """
    if is_doubles(dice):
        return f"Double {dice[0]}s"
    high, low = canonicalize_dice(dice)
    return f"{high}-{low}"


# Lowest die first, doubles interleaved
ALL_DICE_ROLLS = all_dice_rolls()

# Out of 36 ordered outcomes: non-doubles occur two ways, doubles one way
DICE_WEIGHTS: Dict[Dice, int] = {
    dice: 1 if is_doubles(dice) else 2
    for dice in ALL_DICE_ROLLS
}

DICE_PROBABILITIES: Dict[Dice, float] = {
    dice: weight / 36 for dice, weight in DICE_WEIGHTS.items()
}


def sample_rolls(num_non_doubles: int) -> List[Dice]:
    """Reduced roll set: every double plus the first non-doubles.

    Used to bound the cost of deep recursion. All non-doubles share the
    same probability, so which ones are kept is a tuning choice.
    """
    doubles = [d for d in ALL_DICE_ROLLS if is_doubles(d)]
    non_doubles = [d for d in ALL_DICE_ROLLS if not is_doubles(d)]
    return doubles + non_doubles[:num_non_doubles]
