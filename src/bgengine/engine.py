"""Position analysis engine.

``Engine.analyze`` turns a position and a roll into an Evaluation by trying
progressively more expensive sources:

1. the transposition table (finished evaluations, keyed with the roll)
2. the opening book, for the starting layout
3. the bear-off table, for races well into the bear-off
4. expectiminimax search over the legal plays

The heuristic verdict is cached before any optional external re-scoring,
and a re-scored verdict is returned for that call only.
"""

import dataclasses
import logging
import math
import threading
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from bgengine.core.board import apply_moves, check_position, end_turn, with_dice
from bgengine.core.moves import legal_sequences
from bgengine.core.types import Evaluation, InvalidPositionError, Move, Position
from bgengine.evaluation.heuristic import HeuristicWeights
from bgengine.evaluation.opening_book import OpeningBook
from bgengine.evaluation.race import BearOffTable, is_race_position, race_equity
from bgengine.evaluation.rescoring import RescoringClient
from bgengine.evaluation.search import (
    ExpectiminimaxSearch,
    TranspositionTable,
    evaluation_key,
    is_well_formed,
)

logger = logging.getLogger(__name__)


GAMMON_RATIO = 0.2
BACKGAMMON_RATIO = 0.05

WIN_MODELS = ("linear", "logistic")


@dataclass
class EngineConfig:
    """Search and caching settings.

    Attributes:
        depth: Lookahead passed to the deep equity (0 = static play choice)
        branching_cap: Maximum candidate plays searched deeply
        sample_depth: Depths above this average over a reduced roll set
        sampled_non_doubles: Non-doubles kept when sampling rolls
        endgame_threshold: Total borne-off checkers from which races are
            answered from the bear-off table
        win_model: Equity to win probability mapping ("linear" or "logistic")
        logistic_scale: Slope of the logistic mapping
        table_size: Transposition table capacity
        time_limit: Optional wall-clock budget per search, in seconds; bounds
            the lookahead itself, not only the number of candidates
        use_opening_book: Consult the opening book
        use_bear_off: Consult the bear-off table in late races
    """
    depth: int = 2
    branching_cap: int = 5
    sample_depth: int = 3
    sampled_non_doubles: int = 10
    endgame_threshold: int = 10
    win_model: str = "linear"
    logistic_scale: float = 2.0
    table_size: int = 100_000
    time_limit: Optional[float] = None
    use_opening_book: bool = True
    use_bear_off: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if self.depth < 0:
            raise ValueError(f"depth must be >= 0, got {self.depth}")
        if self.branching_cap < 1:
            raise ValueError(f"branching_cap must be >= 1, got {self.branching_cap}")
        if self.win_model not in WIN_MODELS:
            raise ValueError(f"win_model must be one of {WIN_MODELS}, got {self.win_model!r}")
        if self.time_limit is not None and self.time_limit < 0:
            raise ValueError(f"time_limit must be >= 0, got {self.time_limit}")

    @classmethod
    def preset(cls, name: str, **overrides) -> "EngineConfig":
        """Named strength tier, optionally with overridden fields."""
        try:
            settings = dict(ENGINE_PRESETS[name])
        except KeyError:
            raise ValueError(
                f"Unknown tier {name!r}; expected one of {sorted(ENGINE_PRESETS)}"
            ) from None
        settings.update(overrides)
        return cls(**settings)


ENGINE_PRESETS = {
    "basic": {"depth": 2, "branching_cap": 5, "time_limit": 5.0},
    "world_class": {"depth": 3, "branching_cap": 10, "time_limit": 10.0},
    "superior": {"depth": 5, "branching_cap": 15, "sample_depth": 3, "time_limit": 20.0},
}


def win_probability(equity: float, model: str = "linear", scale: float = 2.0) -> float:
    """Map an equity to a win probability in [0, 1] (monotone)."""
    if model == "logistic":
        return 1.0 / (1.0 + math.exp(-scale * equity))
    return min(1.0, max(0.0, 0.5 + equity / 2.0))


class Engine:
    """Backgammon position analyzer.

    Args:
        config: Search settings (``EngineConfig()`` if omitted).
        weights: Heuristic weights.
        transposition_table: Shared cache (a new one if omitted).
        opening_book: Opening replies (the built-in book if omitted).
        bear_off: Bear-off table.
        rescorer: Optional external re-scorer.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        weights: Optional[HeuristicWeights] = None,
        transposition_table: Optional[TranspositionTable] = None,
        opening_book: Optional[OpeningBook] = None,
        bear_off: Optional[BearOffTable] = None,
        rescorer: Optional[RescoringClient] = None,
    ):
        self.config = config if config is not None else EngineConfig()
        if transposition_table is None:
            transposition_table = TranspositionTable(self.config.table_size)
        self.table = transposition_table
        self.opening_book = opening_book if opening_book is not None else OpeningBook()
        self.rescorer = rescorer
        self.search = ExpectiminimaxSearch(
            weights=weights,
            bear_off=bear_off,
            table=self.table,
            sample_depth=self.config.sample_depth,
            sampled_non_doubles=self.config.sampled_non_doubles,
        )

    def analyze(
        self,
        position: Position,
        dice: Optional[Sequence[int]] = None,
        use_rescoring: bool = False,
    ) -> Evaluation:
        """Recommend a play and estimate the outcome for the side to move.

        Args:
            position: Position to analyze (its ``dice`` are used unless
                ``dice`` is given).
            dice: Roll to play.
            use_rescoring: Ask the external re-scorer for a second opinion.

        Returns:
            Evaluation from the perspective of ``position.player_to_move``.

        Raises:
            InvalidPositionError: If the position or roll is malformed.
        """
        if dice is not None:
            try:
                position = with_dice(position, dice)
            except (TypeError, ValueError) as exc:
                raise InvalidPositionError(f"Invalid dice {dice!r}: {exc}") from exc
        check_position(position)
        if not position.dice:
            raise InvalidPositionError("A roll is required for analysis")

        key = evaluation_key(position)
        evaluation = self._cached(key)
        if evaluation is None:
            evaluation = self._evaluate(position)
            self.table.store(key, evaluation)
            logger.info(
                "%s to play %s: equity %.3f (%s)",
                position.player_to_move, list(position.dice),
                evaluation.equity, evaluation.source,
            )

        if use_rescoring:
            return self._rescore(position, evaluation)
        return evaluation

    # ==========================================================================
    # SOURCES
    # ==========================================================================

    def _cached(self, key) -> Optional[Evaluation]:
        cached = self.table.lookup(key)
        if cached is None:
            logger.debug("Transposition miss")
            return None
        if not is_well_formed(cached):
            logger.debug("Evicting malformed transposition entry %r", cached)
            self.table.discard(key)
            return None
        logger.debug("Transposition hit")
        return cached

    def _evaluate(self, position: Position) -> Evaluation:
        player = position.player_to_move

        if self.config.use_opening_book:
            book_moves = self.opening_book.lookup(position)
            if book_moves is not None:
                after = apply_moves(position, book_moves)
                equity = self.search.static_for(after, player)
                return self._make_evaluation(equity, book_moves, "opening_book")

        sequences = self.search.candidates(position)
        if len(sequences) == 1 and not sequences[0].moves:
            equity = self.search.static_for(position, player)
            return self._make_evaluation(equity, (), "pass")

        if (
            self.config.use_bear_off
            and is_race_position(position)
            and sum(position.borne_off) >= self.config.endgame_threshold
        ):
            best = self.search.order_candidates(sequences, player)[0]
            equity = race_equity(end_turn(best.position), player, self.search.bear_off)
            return self._make_evaluation(equity, best.moves, "bear_off")

        result = self.search.search(
            position,
            self.config.depth,
            branching_cap=self.config.branching_cap,
            time_limit=self.config.time_limit,
            sequences=sequences,
        )
        return self._make_evaluation(result.equity, result.best.moves, "search")

    def _make_evaluation(self, equity: float, moves: Tuple[Move, ...], source: str) -> Evaluation:
        win = win_probability(equity, self.config.win_model, self.config.logistic_scale)
        return Evaluation(
            win_probability=win,
            gammon_probability=win * GAMMON_RATIO,
            backgammon_probability=win * BACKGAMMON_RATIO,
            equity=float(equity),
            best_moves=tuple(moves),
            source=source,
        )

    def _rescore(self, position: Position, evaluation: Evaluation) -> Evaluation:
        if self.rescorer is None:
            logger.debug("Re-scoring requested but no re-scorer is configured")
            return evaluation

        rescored = self.rescorer.rescore(position, evaluation.best_moves, evaluation.equity)
        if rescored is None:
            logger.warning("Re-scoring unavailable, keeping heuristic evaluation")
            return evaluation

        if not self._is_legal_play(position, rescored.best_moves):
            logger.warning("Re-scorer suggested an illegal play, keeping the engine's moves")
            rescored = dataclasses.replace(rescored, best_moves=evaluation.best_moves)
        return rescored

    def _is_legal_play(self, position: Position, moves: Tuple[Move, ...]) -> bool:
        target = [(m.from_point, m.to_point) for m in moves]
        for seq in legal_sequences(position):
            if [(m.from_point, m.to_point) for m in seq.moves] == target:
                return True
        return False


# ==============================================================================
# MODULE-LEVEL CONVENIENCE
# ==============================================================================


_default_engine: Optional[Engine] = None
_default_lock = threading.Lock()


def default_engine() -> Engine:
    """Shared engine with default settings, created on first use."""
    global _default_engine
    with _default_lock:
        if _default_engine is None:
            _default_engine = Engine()
        return _default_engine


def analyze(
    position: Position,
    dice: Optional[Sequence[int]] = None,
    use_rescoring: bool = False,
) -> Evaluation:
    """Analyze a position with the shared default engine."""
    return default_engine().analyze(position, dice, use_rescoring)
