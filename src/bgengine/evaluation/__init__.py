"""Position evaluation and move selection."""

from bgengine.evaluation.heuristic import (
    HeuristicWeights,
    evaluate,
    evaluate_for,
    evaluate_terms,
)
from bgengine.evaluation.race import BearOffTable, is_race_position, race_equity
from bgengine.evaluation.opening_book import OpeningBook
from bgengine.evaluation.search import ExpectiminimaxSearch, TranspositionTable
from bgengine.evaluation.rescoring import (
    OllamaRescoringClient,
    RescoringClient,
    RescoringConfig,
)

__all__ = [
    # Static evaluation
    "HeuristicWeights",
    "evaluate",
    "evaluate_for",
    "evaluate_terms",
    "BearOffTable",
    "is_race_position",
    "race_equity",
    # Caches and search
    "OpeningBook",
    "ExpectiminimaxSearch",
    "TranspositionTable",
    # External re-scoring
    "OllamaRescoringClient",
    "RescoringClient",
    "RescoringConfig",
]
