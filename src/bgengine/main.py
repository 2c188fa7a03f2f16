"""Command-line entrypoint for bgengine.

Usage:
    bgengine analyze --dice 3 1
    bgengine analyze --dice 6 6 --position position.json --tier world_class

A position file holds ``{"points": [24 ints], "bar": [white, black],
"borneOff": [white, black], "toMove": "white" | "black"}``.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from bgengine import __version__
from bgengine.core.board import initial_position, move_to_string
from bgengine.core.types import InvalidPositionError, Player, Position
from bgengine.engine import ENGINE_PRESETS, Engine, EngineConfig
from bgengine.evaluation.rescoring import OllamaRescoringClient

logger = logging.getLogger(__name__)


def position_from_json(data: Dict[str, Any]) -> Position:
    """Build a Position from the JSON position shape.

    Raises:
        InvalidPositionError: If a field is missing or has the wrong type.
    """
    if not isinstance(data, dict):
        raise InvalidPositionError("Position must be a JSON object")
    try:
        return Position(
            points=[int(v) for v in data["points"]],
            bar=tuple(int(v) for v in data.get("bar", (0, 0))),
            borne_off=tuple(int(v) for v in data.get("borneOff", (0, 0))),
            player_to_move=Player(data.get("toMove", "white")),
        )
    except (KeyError, TypeError, ValueError, IndexError) as exc:
        if isinstance(exc, InvalidPositionError):
            raise
        raise InvalidPositionError(f"Malformed position: {exc}") from exc


def load_position(path: Optional[str]) -> Position:
    if path is None:
        return initial_position()
    with open(path) as f:
        return position_from_json(json.load(f))


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="bgengine",
        description="Backgammon position analysis engine",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"bgengine {__version__}",
    )
    subparsers = parser.add_subparsers(dest="command")

    analyze = subparsers.add_parser("analyze", help="Recommend a play for a roll")
    analyze.add_argument(
        "--dice", type=int, nargs=2, required=True, metavar=("D1", "D2"),
        help="Roll to play",
    )
    analyze.add_argument(
        "--position", default=None,
        help="JSON position file (default: starting position)",
    )
    analyze.add_argument(
        "--tier", default="basic", choices=sorted(ENGINE_PRESETS),
        help="Engine strength preset",
    )
    analyze.add_argument("--depth", type=int, default=None, help="Override search depth")
    analyze.add_argument("--cap", type=int, default=None, help="Override branching cap")
    analyze.add_argument(
        "--time-limit", type=float, default=None,
        help="Stop searching candidates after this many seconds",
    )
    analyze.add_argument(
        "--rescore", action="store_true",
        help="Ask an Ollama model (OLLAMA_URL, OLLAMA_MODEL) for a second opinion",
    )
    analyze.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def run_analyze(args: argparse.Namespace) -> int:
    overrides: Dict[str, Any] = {}
    if args.depth is not None:
        overrides["depth"] = args.depth
    if args.cap is not None:
        overrides["branching_cap"] = args.cap
    if args.time_limit is not None:
        overrides["time_limit"] = args.time_limit

    try:
        config = EngineConfig.preset(args.tier, **overrides)
        position = load_position(args.position)
        rescorer = OllamaRescoringClient() if args.rescore else None
        engine = Engine(config, rescorer=rescorer)
        evaluation = engine.analyze(position, args.dice, use_rescoring=args.rescore)
    except (InvalidPositionError, ValueError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    result = evaluation.to_dict()
    result["source"] = evaluation.source
    result["notation"] = " ".join(
        move_to_string(m, position.player_to_move) for m in evaluation.best_moves
    )
    print(json.dumps(result, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint used by the `bgengine` console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "analyze":
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    return run_analyze(args)


if __name__ == "__main__":
    raise SystemExit(main())
