"""Expectiminimax search over dice rolls.

Implements n-ply lookahead with dice averaging on top of the static
evaluator.

Terminology:
- static (1-ply): Play the roll every legal way and score each resulting
  position with the heuristic evaluator.
- deep equity at depth d: For each of the 21 rolls of the side about to
  move, that side answers with its best static reply; the replies are
  scored at depth d - 1 and averaged with the roll weights (1 for doubles,
  2 otherwise).

Features:
- Candidate ordering: Sequences are ranked by static score before the
  deep search so the branching cap keeps the most promising ones. A time
  limit bounds the whole search, leaves included.
- Roll sampling: Above a configurable depth, only the doubles and a fixed
  number of non-doubles are averaged.
- Transposition table: Static scores, deep equities and finished
  evaluations are cached by position so repeated positions are never
  searched twice.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional, Tuple

from bgengine.core.board import end_turn, is_game_over, position_key, with_dice
from bgengine.core.dice import ALL_DICE_ROLLS, DICE_WEIGHTS, Dice, sample_rolls
from bgengine.core.moves import legal_sequences, unique_sequences
from bgengine.core.types import Evaluation, LegalSequences, Player, Position, TurnSequence
from bgengine.evaluation.heuristic import DEFAULT_WEIGHTS, HeuristicWeights, evaluate
from bgengine.evaluation.race import DEFAULT_BEAR_OFF_TABLE, BearOffTable

logger = logging.getLogger(__name__)


# ==============================================================================
# TRANSPOSITION TABLE
# ==============================================================================


def evaluation_key(position: Position) -> Tuple[str, bytes]:
    """Cache key for a finished evaluation (position including the roll)."""
    return ("evaluation", position_key(position, include_dice=True))


def equity_key(position: Position, depth: int) -> Tuple[str, bytes, int]:
    """Cache key for a deep equity (position without dice, plus depth)."""
    return ("equity", position_key(position, include_dice=False), depth)


def static_key(position: Position) -> Tuple[str, bytes, Tuple[int, int], Tuple[int, int]]:
    """Cache key for a static score (board only: the score ignores side and dice)."""
    return ("static", position.points.tobytes(), position.bar, position.borne_off)


class TranspositionTable:
    """Cache of evaluated positions shared by all searches of an engine.

    Safe to share between threads: every access holds an internal lock.
    When the table is full, the oldest half of the entries is dropped
    (faster than maintaining LRU order). Static scores are cached too, so
    share a table only between searches using the same weights.

    Args:
        max_size: Maximum number of entries to store.
    """

    def __init__(self, max_size: int = 100_000):
        self.max_size = max_size
        self._table: Dict[Hashable, Any] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def lookup(self, key: Hashable) -> Optional[Any]:
        """Look up a cached value.

        Returns:
            Cached value if found, None otherwise.
        """
        with self._lock:
            value = self._table.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def store(self, key: Hashable, value: Any) -> None:
        """Store a value, evicting half the table first if it is full."""
        with self._lock:
            if key not in self._table and len(self._table) >= self.max_size:
                keys = list(self._table.keys())
                for k in keys[: max(1, len(keys) // 2)]:
                    del self._table[k]
            self._table[key] = value

    def discard(self, key: Hashable) -> None:
        """Remove an entry if present."""
        with self._lock:
            self._table.pop(key, None)

    def clear(self) -> None:
        """Clear all cached entries."""
        with self._lock:
            self._table.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._table

    @property
    def hit_rate_info(self) -> str:
        """Return info string about table usage."""
        return f"TranspositionTable: {len(self)} entries, {self.hits} hits, {self.misses} misses"


def is_well_formed(evaluation: Any) -> bool:
    """Check a cached value has the shape of an Evaluation."""
    if not isinstance(evaluation, Evaluation):
        return False
    for value in (
        evaluation.win_probability,
        evaluation.gammon_probability,
        evaluation.backgammon_probability,
    ):
        if not isinstance(value, float) or not 0.0 <= value <= 1.0:
            return False
    return isinstance(evaluation.equity, float) and math.isfinite(evaluation.equity)


# ==============================================================================
# SEARCH
# ==============================================================================


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.perf_counter() >= deadline


@dataclass
class SearchResult:
    """Outcome of ranking the candidate plays of one roll.

    Attributes:
        best: Recommended sequence
        equity: Its equity from the mover's perspective
        evaluated: Number of candidates that were searched
        timed_out: Whether the time limit cut the search short
        scores: Mover's equity of each searched candidate, in search order
    """
    best: TurnSequence
    equity: float
    evaluated: int
    timed_out: bool = False
    scores: List[float] = field(default_factory=list)


class ExpectiminimaxSearch:
    """Dice-averaged lookahead driven by the static evaluator.

    Args:
        weights: Heuristic weights for static scores.
        bear_off: Bear-off table for race positions.
        table: Transposition table for deep equities (None disables caching).
        sample_depth: Depths above this average over a reduced roll set.
        sampled_non_doubles: Non-doubles kept when sampling.
    """

    def __init__(
        self,
        weights: Optional[HeuristicWeights] = None,
        bear_off: Optional[BearOffTable] = None,
        table: Optional[TranspositionTable] = None,
        sample_depth: int = 3,
        sampled_non_doubles: int = 10,
    ):
        self.weights = weights if weights is not None else DEFAULT_WEIGHTS
        self.bear_off = bear_off if bear_off is not None else DEFAULT_BEAR_OFF_TABLE
        self.table = table
        self.sample_depth = sample_depth
        self.sampled_non_doubles = sampled_non_doubles

    def static(self, position: Position) -> float:
        """Static score, positive favouring White."""
        if self.table is None:
            return evaluate(position, self.weights, self.bear_off)
        key = static_key(position)
        cached = self.table.lookup(key)
        if isinstance(cached, float):
            return cached
        value = float(evaluate(position, self.weights, self.bear_off))
        self.table.store(key, value)
        return value

    def static_for(self, position: Position, player: Player) -> float:
        score = self.static(position)
        return score if player == Player.WHITE else -score

    def candidates(self, position: Position) -> LegalSequences:
        """Legal sequences for the position's roll, one per resulting position."""
        return unique_sequences(legal_sequences(position, distinct=True))

    def order_candidates(self, sequences: LegalSequences, player: Player) -> LegalSequences:
        """Sort sequences by static score for ``player`` (best first, stable)."""
        if len(sequences) <= 1:
            return list(sequences)
        scored = [
            (self.static_for(seq.position, player), i, seq)
            for i, seq in enumerate(sequences)
        ]
        scored.sort(key=lambda x: (-x[0], x[1]))
        return [seq for _, _, seq in scored]

    def best_reply(self, position: Position) -> TurnSequence:
        """Best static play of the position's roll for the side to move.

        Returns the empty sequence (position unchanged) when nothing can be
        played.
        """
        player = position.player_to_move
        best: Optional[TurnSequence] = None
        best_score = -math.inf
        for seq in self.candidates(position):
            score = self.static_for(seq.position, player)
            if score > best_score:
                best, best_score = seq, score
        assert best is not None
        return best

    def rolls_for_depth(self, depth: int) -> List[Dice]:
        if depth > self.sample_depth:
            return sample_rolls(self.sampled_non_doubles)
        return ALL_DICE_ROLLS

    def deep_equity(
        self,
        position: Position,
        depth: int,
        deadline: Optional[float] = None,
    ) -> float:
        """Dice-averaged equity of a position, positive favouring White.

        Args:
            position: Position with ``player_to_move`` about to roll (dice
                are ignored).
            depth: Remaining lookahead; 0 returns the static score.
            deadline: ``time.perf_counter()`` value after which unexpanded
                nodes fall back to their static score. Values computed past
                the deadline are not cached.

        Returns:
            Weighted average over the rolls of the side to move.
        """
        if depth <= 0 or is_game_over(position):
            return self.static(position)

        key = equity_key(position, depth)
        if self.table is not None:
            cached = self.table.lookup(key)
            if isinstance(cached, float) and math.isfinite(cached):
                return cached
            if cached is not None:
                logger.debug("Discarding malformed cached equity %r", cached)
                self.table.discard(key)

        total = 0.0
        total_weight = 0
        for dice in self.rolls_for_depth(depth):
            if _expired(deadline):
                return self.static(position)
            weight = DICE_WEIGHTS[dice]
            reply = self.best_reply(with_dice(position, dice))
            after = end_turn(reply.position)
            total += weight * self.deep_equity(after, depth - 1, deadline)
            total_weight += weight
        value = total / total_weight

        if self.table is not None and not _expired(deadline):
            self.table.store(key, value)
        return value

    def search(
        self,
        position: Position,
        depth: int,
        branching_cap: Optional[int] = None,
        time_limit: Optional[float] = None,
        sequences: Optional[LegalSequences] = None,
    ) -> SearchResult:
        """Choose the best play of the position's roll.

        Candidates are ranked by static score and cut to ``branching_cap``;
        each survivor is scored by the deep equity of the position after the
        turn passes. The time limit bounds the whole search: once it runs out,
        unexpanded nodes fall back to static scores and no further candidate
        is started. The first candidate always gets a score; a later one cut
        short is dropped.

        Args:
            position: Position with the roll to play.
            depth: Lookahead passed to ``deep_equity``.
            branching_cap: Maximum candidates searched deeply.
            time_limit: Optional wall-clock budget in seconds.
            sequences: Precomputed legal sequences (computed if omitted).

        Returns:
            SearchResult with equity from the mover's perspective.
        """
        player = position.player_to_move
        if sequences is None:
            sequences = self.candidates(position)
        ordered = self.order_candidates(sequences, player)
        if branching_cap is not None and len(ordered) > branching_cap:
            logger.debug("Pruning %d candidates to %d", len(ordered), branching_cap)
            ordered = ordered[:branching_cap]

        deadline = None if time_limit is None else time.perf_counter() + time_limit
        best = ordered[0]
        best_score = -math.inf
        scores: List[float] = []
        timed_out = False

        for seq in ordered:
            if scores and _expired(deadline):
                timed_out = True
                break
            value = self.deep_equity(end_turn(seq.position), depth, deadline)
            if _expired(deadline):
                timed_out = True
                if scores:
                    break
            score = value if player == Player.WHITE else -value
            scores.append(score)
            if score > best_score:
                best, best_score = seq, score
            if timed_out:
                break

        if timed_out:
            logger.info(
                "Time limit reached after %d of %d candidates", len(scores), len(ordered)
            )

        logger.debug(
            "Searched %d candidates at depth %d (%s)",
            len(scores), depth,
            self.table.hit_rate_info if self.table is not None else "no cache",
        )
        return SearchResult(best, best_score, len(scores), timed_out, scores)
