"""Board representation and game rules.

This module implements the core backgammon game logic, including:
- Position construction, validation and mirroring
- Single-die move generation
- Move application
- Game state queries

Board Layout (indices):
    White moves 0 → 23 → off (home board: 18-23)
    Black moves 23 → 0 → off (home board: 0-5)

    12 13 14 15 16 17    18 19 20 21 22 23
    +------------------+------------------+
    |                  |                  |  White home
    |                  |                  |
    |                  |                  |
    |                  |                  |  Black home
    +------------------+------------------+
    11 10  9  8  7  6     5  4  3  2  1  0

A player's own point numbering ("pips") counts from its exit: pip 1 is the
last point before bearing off, pip 24 is where its back checkers start.
"""

from typing import Iterable, List, Optional, Sequence, Tuple
import hashlib

import numpy as np

from bgengine.core.types import (
    BAR,
    HOME_SIZE,
    NUM_CHECKERS,
    NUM_POINTS,
    OFF,
    InvalidPositionError,
    Move,
    Player,
    Point,
    Position,
)


# ==============================================================================
# COORDINATES
# ==============================================================================


def pip_of(player: Player, point: Point) -> int:
    """Distance from a board point to ``player``'s exit (1..24)."""
    return NUM_POINTS - point if player == Player.WHITE else point + 1


def point_of(player: Player, pip: int) -> Point:
    """Board index of ``player``'s pip-numbered point."""
    return NUM_POINTS - pip if player == Player.WHITE else pip - 1


def home_points(player: Player) -> range:
    """Indices of a player's home board."""
    if player == Player.WHITE:
        return range(NUM_POINTS - HOME_SIZE, NUM_POINTS)  # 18-23
    return range(0, HOME_SIZE)  # 0-5


def entry_point(player: Player, die: int) -> Point:
    """Point reached when entering from the bar with ``die``.

    White enters in Black's home board (0-5), Black in White's (18-23).
    """
    return point_of(player, 25 - die)


# ==============================================================================
# POSITION CONSTRUCTION
# ==============================================================================

# Standard setup per side, in the side's own pip numbering
STARTING_LAYOUT = {24: 2, 13: 5, 8: 3, 6: 5}


def initial_position(
    player_to_move: Player = Player.WHITE,
    dice: Sequence[int] = (),
) -> Position:
    """Create the standard backgammon starting position.

    Standard setup (per side, own numbering): 2 on 24, 5 on 13, 3 on 8, 5 on 6.
    """
    points = np.zeros(NUM_POINTS, dtype=np.int16)
    for player in Player:
        for pip, count in STARTING_LAYOUT.items():
            points[point_of(player, pip)] = count * player.sign
    return Position(points=points, player_to_move=player_to_move, dice=tuple(dice))


def position_from_checkers(
    white: dict,
    black: dict,
    player_to_move: Player = Player.WHITE,
    dice: Sequence[int] = (),
    bar: Tuple[int, int] = (0, 0),
) -> Position:
    """Build a position from ``{index: count}`` maps.

    Checkers not placed on a point or on the bar are counted as borne off.
    """
    points = np.zeros(NUM_POINTS, dtype=np.int16)
    for point, count in white.items():
        points[point] += count
    for point, count in black.items():
        points[point] -= count
    borne_off = (
        NUM_CHECKERS - sum(white.values()) - bar[0],
        NUM_CHECKERS - sum(black.values()) - bar[1],
    )
    return Position(
        points=points,
        bar=bar,
        borne_off=borne_off,
        player_to_move=player_to_move,
        dice=tuple(dice),
    )


def mirror_position(position: Position) -> Position:
    """Swap colors and reverse the board.

    Point i for White becomes point (23 - i) for Black. Dice are kept.
    """
    return Position(
        points=-position.points[::-1],
        bar=(position.bar[1], position.bar[0]),
        borne_off=(position.borne_off[1], position.borne_off[0]),
        player_to_move=position.player_to_move.opponent(),
        dice=position.dice,
    )


def with_dice(position: Position, dice: Sequence[int]) -> Position:
    """Copy of ``position`` with a different roll."""
    return Position(
        points=position.points,
        bar=position.bar,
        borne_off=position.borne_off,
        player_to_move=position.player_to_move,
        dice=tuple(dice),
    )


def end_turn(position: Position) -> Position:
    """Hand the move to the opponent and clear the dice."""
    result = position.copy()
    result.player_to_move = position.player_to_move.opponent()
    result.dice = ()
    return result


# ==============================================================================
# POSITION QUERIES
# ==============================================================================


def pip_count(position: Position, player: Player) -> int:
    """Calculate pip count for a player.

    Pip count = sum of distance-to-exit over all checkers still in play.
    Checkers on the bar count 25.
    """
    sign = player.sign
    total = 0
    for point, count in enumerate(position.points.tolist()):
        count *= sign
        if count > 0:
            total += count * pip_of(player, point)
    return total + 25 * position.bar_count(player)


def checkers_on_board(position: Position, player: Player) -> int:
    """Checkers on the 24 points (bar and borne-off excluded)."""
    values = position.points * player.sign
    return int(values[values > 0].sum())


def all_home(position: Position, player: Player) -> bool:
    """Check whether every checker still in play is in the home board.

    This is the precondition for bearing off.
    """
    if position.bar_count(player) > 0:
        return False
    home = home_points(player)
    sign = player.sign
    for point, count in enumerate(position.points.tolist()):
        if count * sign > 0 and point not in home:
            return False
    return True


def is_starting_position(position: Position) -> bool:
    """True when the checkers stand exactly as at the start of a game."""
    start = initial_position()
    return (
        np.array_equal(position.points, start.points)
        and position.bar == (0, 0)
        and position.borne_off == (0, 0)
    )


def is_game_over(position: Position) -> bool:
    """Game is over when one player has borne off all 15 checkers."""
    return NUM_CHECKERS in position.borne_off


def validate_position(position: Position) -> Tuple[bool, str]:
    """Validate a position.

    Returns:
        (is_valid, error_message) tuple
    """
    if not isinstance(position.player_to_move, Player):
        return False, f"Invalid player to move: {position.player_to_move!r}"

    if np.abs(position.points).max(initial=0) > NUM_CHECKERS:
        return False, "A point holds more than 15 checkers"

    for player in Player:
        bar = position.bar_count(player)
        off = position.off_count(player)
        if bar < 0 or off < 0:
            return False, f"{player} has a negative bar or borne-off count"
        if off > NUM_CHECKERS:
            return False, f"{player} has {off} checkers borne off"
        total = checkers_on_board(position, player) + bar + off
        if total != NUM_CHECKERS:
            return False, f"{player} has {total} checkers, should have {NUM_CHECKERS}"

    dice = position.dice
    if len(dice) not in (0, 2, 4):
        return False, f"Expected 2 dice (or 4 for doubles), got {len(dice)}"
    if any(not 1 <= d <= 6 for d in dice):
        return False, f"Dice values must be 1-6, got {list(dice)}"
    if len(dice) == 4 and len(set(dice)) != 1:
        return False, f"Four dice are only allowed for doubles, got {list(dice)}"

    return True, ""


def check_position(position: Position) -> None:
    """Raise ``InvalidPositionError`` if the position is malformed."""
    ok, message = validate_position(position)
    if not ok:
        raise InvalidPositionError(message)


def position_key(position: Position, include_dice: bool = True) -> bytes:
    """Canonical hash of a position.

    Covers the board, bar, borne-off counts, side to move and (optionally)
    the sorted dice.
    """
    data = position.points.astype(np.int16).tobytes()
    data += bytes(position.bar) + bytes(position.borne_off)
    data += b'\x00' if position.player_to_move == Player.WHITE else b'\x01'
    if include_dice:
        data += b'|' + bytes(sorted(position.dice))
    return hashlib.md5(data).digest()


# ==============================================================================
# MOVE GENERATION
# ==============================================================================


def _can_land(points: List[int], sign: int, point: Point) -> bool:
    """A point can be landed on unless it holds two or more opposing checkers."""
    return points[point] * sign >= -1


def _bear_off_allowed(points: List[int], sign: int, point: Point, die: int, home: bool) -> bool:
    """Check bear-off legality for a checker on ``point`` using ``die``.

    ``home`` tells whether every checker of the mover is already home.
    """
    if not home:
        return False
    distance = NUM_POINTS - point if sign > 0 else point + 1
    if die == distance:
        return True
    if die < distance:
        return False
    # Oversized die: only from the rearmost occupied point
    behind = range(NUM_POINTS - HOME_SIZE, point) if sign > 0 else range(point + 1, HOME_SIZE)
    return all(points[other] * sign <= 0 for other in behind)


def generate_moves(
    position: Position,
    die: int,
    player: Optional[Player] = None,
) -> List[Move]:
    """Every legal single-checker move for ``player`` using exactly ``die``.

    Checkers on the bar must enter before anything else moves. An empty list
    means the die cannot be played.

    Args:
        position: Current position
        die: Die value (1-6)
        player: Player to move (defaults to ``position.player_to_move``)

    Returns:
        List of legal moves
    """
    if player is None:
        player = position.player_to_move
    sign = player.sign
    points = position.points.tolist()

    if position.bar_count(player) > 0:
        dest = entry_point(player, die)
        if _can_land(points, sign, dest):
            return [Move(BAR, dest, die, hits=points[dest] * sign == -1)]
        return []

    home = all_home(position, player)
    moves = []
    for point in range(NUM_POINTS):
        if points[point] * sign <= 0:
            continue
        dest = point + die * sign
        if dest < 0 or dest >= NUM_POINTS:
            if _bear_off_allowed(points, sign, point, die, home):
                moves.append(Move(point, OFF, die))
        elif _can_land(points, sign, dest):
            moves.append(Move(point, dest, die, hits=points[dest] * sign == -1))
    return moves


def is_legal_move(position: Position, move: Move) -> bool:
    """Check whether a single move is legal for the side to move."""
    return any(
        m.from_point == move.from_point and m.to_point == move.to_point
        for m in generate_moves(position, move.die)
    )


# ==============================================================================
# MOVE APPLICATION
# ==============================================================================


def apply_move(position: Position, move: Move, player: Optional[Player] = None) -> Position:
    """Apply one move, returning a new position (the input is not modified).

    The side to move and the dice are left unchanged; see ``end_turn``.

    Raises:
        ValueError: If the source holds no checker of the mover or the
            destination is blocked.
    """
    if player is None:
        player = position.player_to_move
    sign = player.sign
    opponent = player.opponent()

    points = position.points.copy()
    bar = list(position.bar)
    borne_off = list(position.borne_off)

    if move.from_point == BAR:
        if bar[player.index] <= 0:
            raise ValueError(f"{player} has no checker on the bar")
        bar[player.index] -= 1
    else:
        if points[move.from_point] * sign <= 0:
            raise ValueError(f"{player} has no checker on point {move.from_point}")
        points[move.from_point] -= sign

    if move.to_point == OFF:
        borne_off[player.index] += 1
    else:
        occupant = points[move.to_point] * sign
        if occupant == -1:
            points[move.to_point] = sign
            bar[opponent.index] += 1
        elif occupant < -1:
            raise ValueError(f"Point {move.to_point} is blocked for {player}")
        else:
            points[move.to_point] += sign

    return Position(
        points=points,
        bar=(bar[0], bar[1]),
        borne_off=(borne_off[0], borne_off[1]),
        player_to_move=position.player_to_move,
        dice=position.dice,
    )


def apply_moves(
    position: Position,
    moves: Iterable[Move],
    player: Optional[Player] = None,
) -> Position:
    """Apply a series of moves in order."""
    for move in moves:
        position = apply_move(position, move, player)
    return position


# ==============================================================================
# BOARD DISPLAY (for debugging)
# ==============================================================================


def move_to_string(move: Move, player: Player) -> str:
    """Format a move in the mover's own numbering, e.g. ``24/21`` or ``6/off``."""
    src = "bar" if move.from_point == BAR else str(pip_of(player, move.from_point))
    dst = "off" if move.to_point == OFF else str(pip_of(player, move.to_point))
    return f"{src}/{dst}{'*' if move.hits else ''}"


def position_to_string(position: Position) -> str:
    """Convert a position to a table of occupied points."""
    lines = []
    lines.append("=" * 40)
    lines.append(f"Player to move: {position.player_to_move}")
    if position.dice:
        lines.append(f"Dice: {list(position.dice)}")
    lines.append(f"White pip count: {pip_count(position, Player.WHITE)}")
    lines.append(f"Black pip count: {pip_count(position, Player.BLACK)}")
    lines.append("")
    lines.append("Point | White | Black")
    lines.append("------+-------+------")
    for point in range(NUM_POINTS):
        w = position.checkers_at(Player.WHITE, point)
        b = position.checkers_at(Player.BLACK, point)
        lines.append(f"{point:2d}    |  {w:2d}   |  {b:2d}")
    lines.append(f"BAR   |  {position.bar[0]:2d}   |  {position.bar[1]:2d}")
    lines.append(f"OFF   |  {position.borne_off[0]:2d}   |  {position.borne_off[1]:2d}")
    lines.append("=" * 40)
    return "\n".join(lines)
