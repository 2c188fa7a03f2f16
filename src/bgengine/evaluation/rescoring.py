"""Optional re-scoring of a finished evaluation by an external model.

The engine can hand its recommendation to a language model served by
Ollama for a second opinion. The model receives a plain-text description
of the position, the recommended moves and the heuristic equity, and is
asked to answer with a JSON object in the Evaluation response shape.

Re-scoring never breaks analysis: transport errors, timeouts, HTTP errors
and unparseable replies are logged and reported as ``None`` so the caller
keeps the heuristic verdict.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import requests

from bgengine.core.board import move_to_string
from bgengine.core.types import NUM_CHECKERS, NUM_POINTS, Evaluation, Move, Position

logger = logging.getLogger(__name__)


DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "deepseek-coder"

SYSTEM_PROMPT = (
    "You are a world-class backgammon analyst. You evaluate positions "
    "precisely and always answer with valid JSON."
)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

# Used when the reply omits a probability
DEFAULT_PROBABILITIES = {
    "winProbability": 0.5,
    "gammonProbability": 0.1,
    "backgammonProbability": 0.02,
}


@dataclass
class RescoringConfig:
    """Connection settings for the re-scoring model.

    Attributes:
        base_url: Ollama server URL
        model: Model name to query
        timeout: Seconds to wait for a generation
        availability_timeout: Seconds to wait for the availability check
        temperature: Sampling temperature
        max_tokens: Maximum tokens generated
        top_p: Nucleus sampling threshold
        top_k: Top-k sampling cutoff
    """
    base_url: str = DEFAULT_OLLAMA_URL
    model: str = DEFAULT_OLLAMA_MODEL
    timeout: float = 30.0
    availability_timeout: float = 5.0
    temperature: float = 0.2
    max_tokens: int = 800
    top_p: float = 0.9
    top_k: int = 40

    @classmethod
    def from_env(cls) -> "RescoringConfig":
        """Read ``OLLAMA_URL`` and ``OLLAMA_MODEL`` from the environment."""
        return cls(
            base_url=os.environ.get("OLLAMA_URL", DEFAULT_OLLAMA_URL),
            model=os.environ.get("OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL),
        )


# ==============================================================================
# PROMPT AND REPLY HANDLING
# ==============================================================================


def describe_position(position: Position) -> str:
    """Human-readable description of a position for the prompt."""
    player = position.player_to_move
    lines = [
        f"Player to move: {player}, dice: {list(position.dice)}",
        f"Bar: white={position.bar[0]}, black={position.bar[1]}",
        f"Borne off: white={position.borne_off[0]}/{NUM_CHECKERS}, "
        f"black={position.borne_off[1]}/{NUM_CHECKERS}",
        "Board (point index: checkers):",
    ]
    points = position.points.tolist()
    for point in range(NUM_POINTS):
        count = points[point]
        if count > 0:
            lines.append(f"  {point}: {count} white")
        elif count < 0:
            lines.append(f"  {point}: {-count} black")
    return "\n".join(lines)


def build_prompt(position: Position, moves: Sequence[Move], heuristic_equity: float) -> str:
    player = position.player_to_move
    if moves:
        move_text = " ".join(move_to_string(m, player) for m in moves)
    else:
        move_text = "(no legal play)"
    return (
        "Evaluate this backgammon position for the player to move.\n\n"
        f"{describe_position(position)}\n\n"
        f"Proposed play: {move_text}\n"
        f"Heuristic equity: {heuristic_equity:.3f}\n\n"
        "Answer ONLY with a JSON object (no markdown):\n"
        "{\n"
        '  "winProbability": 0.0-1.0,\n'
        '  "gammonProbability": 0.0-1.0,\n'
        '  "backgammonProbability": 0.0-1.0,\n'
        '  "equity": -1.0 to 1.0,\n'
        '  "bestMoves": [{"from": point index or -1 for the bar, '
        '"to": point index or 24 for off, "die": 1-6}]\n'
        "}"
    )


def extract_json(text: str) -> Dict[str, Any]:
    """Pull the outermost JSON object out of a model reply.

    Raises:
        ValueError: If no object is found or it does not parse.
    """
    match = _JSON_OBJECT.search(text)
    if match is None:
        raise ValueError("No JSON object found in reply")
    cleaned = match.group(0).replace("```json", "").replace("```", "").strip()
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("Reply JSON is not an object")
    return data


def parse_reply(
    text: str,
    moves: Sequence[Move],
    heuristic_equity: float,
) -> Evaluation:
    """Turn a model reply into an Evaluation.

    Missing fields fall back to neutral probabilities, the proposed moves
    and the heuristic equity; present fields must be well-formed.

    Raises:
        ValueError: If the reply is not usable.
    """
    data = extract_json(text)
    merged: Dict[str, Any] = dict(DEFAULT_PROBABILITIES)
    merged["equity"] = heuristic_equity
    merged["bestMoves"] = [m.to_dict() for m in moves]
    for key in ("winProbability", "gammonProbability", "backgammonProbability", "equity", "bestMoves"):
        if data.get(key) is not None:
            merged[key] = data[key]
    return Evaluation.from_dict(merged, source="rescored")


# ==============================================================================
# CLIENTS
# ==============================================================================


class RescoringClient:
    """Interface for external re-scorers."""

    def rescore(
        self,
        position: Position,
        moves: Sequence[Move],
        heuristic_equity: float,
    ) -> Optional[Evaluation]:
        """Second opinion on a recommendation, or None if unavailable."""
        raise NotImplementedError


class OllamaRescoringClient(RescoringClient):
    """Re-scorer backed by an Ollama ``/api/generate`` endpoint.

    Args:
        config: Connection settings (read from the environment if omitted).
        session: HTTP session to use (a new ``requests.Session`` if omitted).
    """

    def __init__(
        self,
        config: Optional[RescoringConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config if config is not None else RescoringConfig.from_env()
        self.session = session if session is not None else requests.Session()

    def _url(self, path: str) -> str:
        return self.config.base_url.rstrip("/") + path

    def is_available(self) -> bool:
        """Check whether the server answers on ``/api/tags``."""
        try:
            response = self.session.get(
                self._url("/api/tags"), timeout=self.config.availability_timeout
            )
        except requests.RequestException as exc:
            logger.warning("Ollama not available: %s", exc)
            return False
        return response.ok

    def request_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
                "top_p": self.config.top_p,
                "top_k": self.config.top_k,
            },
            "system": SYSTEM_PROMPT,
        }

    def rescore(
        self,
        position: Position,
        moves: Sequence[Move],
        heuristic_equity: float,
    ) -> Optional[Evaluation]:
        prompt = build_prompt(position, moves, heuristic_equity)
        try:
            response = self.session.post(
                self._url("/api/generate"),
                json=self.request_payload(prompt),
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            content = response.json().get("response", "")
            if not isinstance(content, str):
                raise ValueError("Reply text is not a string")
            evaluation = parse_reply(content, moves, heuristic_equity)
        except requests.RequestException as exc:
            logger.warning("Re-scoring request failed: %s", exc)
            return None
        except (ValueError, TypeError, OverflowError, AttributeError) as exc:
            logger.warning("Discarding malformed re-scoring reply: %s", exc)
            return None

        logger.info(
            "Re-scored with %s: equity %.3f -> %.3f",
            self.config.model, heuristic_equity, evaluation.equity,
        )
        return evaluation
