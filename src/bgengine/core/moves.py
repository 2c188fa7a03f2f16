"""Turn-sequence enumeration.

A turn plays two dice (four for doubles). Sequences are built by recursing
over the remaining dice: for each distinct value still available, every
legal single-checker move is applied and the rest of the roll is played
from the resulting position. The usual rules are then enforced on the
finished list:

1. Play as many dice as legally possible.
2. When only one of two different dice can be played, play the larger one
   (the sequence with the larger die sum wins).

If no die can be played at all, the only result is the empty sequence.
"""

from typing import Dict, List, Optional, Sequence, Set, Tuple

from bgengine.core.board import apply_move, generate_moves, position_key
from bgengine.core.dice import dice_values
from bgengine.core.types import LegalSequences, Player, Position, TurnSequence


def _distinct_desc(values: Tuple[int, ...]) -> List[int]:
    """Distinct die values, largest first."""
    return sorted(set(values), reverse=True)


def _remove_one(values: Tuple[int, ...], die: int) -> Tuple[int, ...]:
    idx = values.index(die)
    return values[:idx] + values[idx + 1:]


def _node_key(position: Position, remaining: Tuple[int, ...]) -> bytes:
    return (
        position.points.tobytes()
        + bytes(position.bar)
        + bytes(position.borne_off)
        + bytes(remaining)
    )


def _enumerate(
    position: Position,
    remaining: Tuple[int, ...],
    player: Player,
    visited: Optional[Set[bytes]],
) -> LegalSequences:
    if not remaining:
        return [TurnSequence((), position, 0)]

    sequences: LegalSequences = []
    playable = False
    for die in _distinct_desc(remaining):
        rest = _remove_one(remaining, die)
        for move in generate_moves(position, die, player):
            playable = True
            after = apply_move(position, move, player)
            if visited is not None:
                key = _node_key(after, rest)
                if key in visited:
                    continue
                visited.add(key)
            for sub in _enumerate(after, rest, player, visited):
                sequences.append(
                    TurnSequence((move,) + sub.moves, sub.position, die + sub.die_sum)
                )

    if not playable:
        # No remaining die can be played from here
        return [TurnSequence((), position, 0)]
    return sequences


def _roll(position: Position, dice: Optional[Sequence[int]]) -> Tuple[int, ...]:
    values = tuple(dice_values(tuple(dice) if dice is not None else position.dice))
    if not values:
        raise ValueError("No dice to play")
    return values


def enumerate_sequences(
    position: Position,
    dice: Optional[Sequence[int]] = None,
    distinct: bool = False,
) -> LegalSequences:
    """Enumerate ways of playing a roll, before the maximal-play rules.

    Args:
        position: Position to play from (``player_to_move`` moves)
        dice: Roll to play (defaults to ``position.dice``)
        distinct: Skip a branch when the same intermediate position with the
            same remaining dice was already expanded. This drops alternative
            orderings that cannot lead anywhere new.

    Returns:
        List of turn sequences; contains only the empty sequence when
        nothing can be played.
    """
    values = _roll(position, dice)
    visited: Optional[Set[bytes]] = set() if distinct else None
    return _enumerate(position, values, position.player_to_move, visited)


def legal_sequences(
    position: Position,
    dice: Optional[Sequence[int]] = None,
    distinct: bool = False,
) -> LegalSequences:
    """All legal ways of playing a roll.

    Applies the "use as many dice as possible" rule and, for a non-double
    where only one die can be used, the "use the larger die" rule.
    """
    values = _roll(position, dice)
    sequences = enumerate_sequences(position, values, distinct=distinct)

    max_moves = max(len(s) for s in sequences)
    candidates = [s for s in sequences if len(s) == max_moves]

    if max_moves < len(values) and len(values) == 2 and values[0] != values[1]:
        max_sum = max(s.die_sum for s in candidates)
        candidates = [s for s in candidates if s.die_sum == max_sum]

    return candidates


def unique_sequences(sequences: LegalSequences) -> LegalSequences:
    """Drop sequences whose resulting position was already reached.

    The first sequence found for each resulting position is kept.
    """
    seen: Dict[bytes, TurnSequence] = {}
    for seq in sequences:
        key = position_key(seq.position, include_dice=False)
        if key not in seen:
            seen[key] = seq
    return list(seen.values())


def max_playable(position: Position, dice: Optional[Sequence[int]] = None) -> int:
    """Largest number of dice that can legally be played."""
    return len(legal_sequences(position, dice, distinct=True)[0])
