"""Opening book for the first roll of the game.

Every one of the 21 rolls has a fixed reply from the starting position.
Plays are written in the mover's own point numbering (24 = back checkers,
13 = midpoint, 6 = home-board point) so the same table serves both colors.
Non-doubles split a back checker with one die and bring a builder down
with the other.

Each play is replayed through the move generator when the book is built;
an entry that is not a complete legal turn is left out, so a lookup for
it simply misses and the roll is searched normally.
"""

import logging
from typing import Dict, Optional, Tuple

from bgengine.core.board import (
    apply_move,
    generate_moves,
    initial_position,
    is_starting_position,
    point_of,
)
from bgengine.core.dice import Dice, canonicalize_dice, dice_to_string, dice_values
from bgengine.core.types import Move, Player, Position

logger = logging.getLogger(__name__)


# (high, low) -> ((from_pip, to_pip), ...)
OPENING_PLAYS: Dict[Dice, Tuple[Tuple[int, int], ...]] = {
    (6, 5): ((24, 18), (13, 8)),
    (6, 4): ((24, 18), (13, 9)),
    (6, 3): ((24, 18), (13, 10)),
    (6, 2): ((24, 18), (13, 11)),
    (6, 1): ((24, 18), (6, 5)),
    (5, 4): ((24, 20), (13, 8)),
    (5, 3): ((24, 21), (13, 8)),
    (5, 2): ((24, 22), (13, 8)),
    (5, 1): ((24, 23), (13, 8)),
    (4, 3): ((24, 20), (13, 10)),
    (4, 2): ((24, 20), (13, 11)),
    (4, 1): ((24, 20), (6, 5)),
    (3, 2): ((24, 21), (13, 11)),
    (3, 1): ((24, 21), (6, 5)),
    (2, 1): ((24, 22), (6, 5)),
    (6, 6): ((24, 18), (24, 18), (13, 7), (13, 7)),
    (5, 5): ((13, 8), (8, 3), (13, 8), (8, 3)),
    (4, 4): ((24, 20), (20, 16), (13, 9), (9, 5)),
    (3, 3): ((24, 21), (21, 18), (13, 10), (10, 7)),
    (2, 2): ((24, 22), (22, 20), (13, 11), (11, 9)),
    (1, 1): ((8, 7), (8, 7), (6, 5), (6, 5)),
}


def _replay(player: Player, dice: Dice, play: Tuple[Tuple[int, int], ...]) -> Optional[Tuple[Move, ...]]:
    """Translate a pip-numbered play into legal moves for ``player``.

    Returns None if any step is illegal or the play does not use the whole roll.
    """
    remaining = dice_values(dice)
    if len(play) != len(remaining):
        return None

    position = initial_position(player, dice)
    moves = []
    for from_pip, to_pip in play:
        die = from_pip - to_pip
        if die not in remaining:
            return None
        source = point_of(player, from_pip)
        dest = point_of(player, to_pip)
        match = next(
            (m for m in generate_moves(position, die)
             if m.from_point == source and m.to_point == dest),
            None,
        )
        if match is None:
            return None
        remaining.remove(die)
        moves.append(match)
        position = apply_move(position, match)
    return tuple(moves)


class OpeningBook:
    """Fixed replies to each roll from the starting position.

    Args:
        plays: Pip-numbered plays keyed by (high, low) dice.
    """

    def __init__(self, plays: Optional[Dict[Dice, Tuple[Tuple[int, int], ...]]] = None):
        if plays is None:
            plays = OPENING_PLAYS
        self._book: Dict[Tuple[Player, Dice], Tuple[Move, ...]] = {}

        for dice, play in plays.items():
            key = canonicalize_dice(dice)
            replies = {player: _replay(player, key, play) for player in Player}
            if any(moves is None for moves in replies.values()):
                logger.warning("Dropping illegal opening book entry for %s", dice_to_string(key))
                continue
            for player, moves in replies.items():
                self._book[(player, key)] = moves

    def lookup(self, position: Position) -> Optional[Tuple[Move, ...]]:
        """Book play for the position's roll, if the position is the opening layout."""
        if not position.dice or not is_starting_position(position):
            return None
        return self._book.get((position.player_to_move, canonicalize_dice(position.dice)))

    def __len__(self) -> int:
        return len({dice for _, dice in self._book})

    def __contains__(self, dice: Dice) -> bool:
        return (Player.WHITE, canonicalize_dice(dice)) in self._book
