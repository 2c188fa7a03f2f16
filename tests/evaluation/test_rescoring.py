"""Tests for the Ollama re-scoring client (no network: fake session)."""

import json
import logging

import pytest
import requests

from bgengine.core.board import initial_position
from bgengine.core.types import Move
from bgengine.evaluation.rescoring import (
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_URL,
    OllamaRescoringClient,
    RescoringClient,
    RescoringConfig,
    describe_position,
    extract_json,
    parse_reply,
)


MOVES = (Move(0, 3, 3), Move(18, 19, 1))


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text_error=False):
        self.status_code = status_code
        self._payload = payload
        self._text_error = text_error

    @property
    def ok(self):
        return self.status_code < 400

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self._text_error:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    """Records requests and replays a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _reply(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._reply("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._reply("GET", url, **kwargs)


def _client(response=None, error=None):
    config = RescoringConfig(base_url="http://ollama.test:11434/", model="test-model")
    session = FakeSession(response, error)
    return OllamaRescoringClient(config, session=session), session


def _reply(text):
    return FakeResponse(200, {"model": "test-model", "response": text, "done": True})


@pytest.fixture
def position():
    return initial_position(dice=(3, 1))


class TestConfig:
    def test_defaults(self):
        config = RescoringConfig()
        assert config.base_url == DEFAULT_OLLAMA_URL
        assert config.model == DEFAULT_OLLAMA_MODEL
        assert config.timeout == 30.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_URL", "http://gpu-box:11434")
        monkeypatch.setenv("OLLAMA_MODEL", "llama3")
        config = RescoringConfig.from_env()
        assert config.base_url == "http://gpu-box:11434"
        assert config.model == "llama3"

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv("OLLAMA_URL", raising=False)
        monkeypatch.delenv("OLLAMA_MODEL", raising=False)
        assert RescoringConfig.from_env() == RescoringConfig()


class TestReplyParsing:
    """Tests for extracting the JSON verdict from free text."""

    def test_extract_from_fenced_text(self):
        text = 'Here you go:\n```json\n{"equity": 0.3}\n```\nGood luck!'
        assert extract_json(text) == {"equity": 0.3}

    def test_extract_without_json(self):
        with pytest.raises(ValueError):
            extract_json("I cannot evaluate this position.")

    def test_extract_invalid_json(self):
        with pytest.raises(ValueError):
            extract_json("{equity: high}")

    def test_defaults_for_missing_fields(self):
        evaluation = parse_reply('{"equity": 0.25}', MOVES, 0.1)
        assert evaluation.equity == 0.25
        assert evaluation.win_probability == 0.5
        assert evaluation.gammon_probability == 0.1
        assert evaluation.backgammon_probability == 0.02
        assert evaluation.best_moves == MOVES
        assert evaluation.source == "rescored"

    def test_heuristic_equity_fallback(self):
        evaluation = parse_reply('{"winProbability": 0.7}', MOVES, -0.4)
        assert evaluation.equity == -0.4
        assert evaluation.win_probability == 0.7

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            parse_reply('{"winProbability": 1.7}', MOVES, 0.0)

    def test_rejects_bad_moves(self):
        with pytest.raises(ValueError):
            parse_reply('{"bestMoves": [{"from": 0, "to": 3, "die": 12}]}', MOVES, 0.0)

    @pytest.mark.parametrize("field", ["1e999", "-1e999", "3.7", "true"])
    def test_rejects_non_integer_move_fields(self, field):
        text = '{"bestMoves": [{"from": ' + field + ', "to": 3, "die": 2}]}'
        with pytest.raises(ValueError):
            parse_reply(text, MOVES, 0.0)


class TestOllamaClient:
    """Tests for the HTTP client."""

    def test_request_payload(self, position):
        payload = {
            "winProbability": 0.62,
            "gammonProbability": 0.15,
            "backgammonProbability": 0.01,
            "equity": 0.28,
            "bestMoves": [{"from": 16, "to": 19, "die": 3}, {"from": 18, "to": 19, "die": 1}],
        }
        client, session = _client(_reply(json.dumps(payload)))
        evaluation = client.rescore(position, MOVES, 0.1)

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == "http://ollama.test:11434/api/generate"
        assert kwargs["timeout"] == 30.0
        body = kwargs["json"]
        assert body["model"] == "test-model"
        assert body["stream"] is False
        assert body["options"]["temperature"] == 0.2
        assert body["options"]["num_predict"] == 800
        assert "24/21" in body["prompt"]

        assert evaluation.equity == 0.28
        assert evaluation.best_moves == (Move(16, 19, 3), Move(18, 19, 1))

    def test_timeout_returns_none(self, position, caplog):
        client, _ = _client(error=requests.Timeout("read timed out"))
        with caplog.at_level(logging.WARNING):
            assert client.rescore(position, MOVES, 0.1) is None
        assert "read timed out" in caplog.text

    def test_http_error_returns_none(self, position):
        client, _ = _client(FakeResponse(500))
        assert client.rescore(position, MOVES, 0.1) is None

    def test_non_json_body_returns_none(self, position):
        client, _ = _client(FakeResponse(200, text_error=True))
        assert client.rescore(position, MOVES, 0.1) is None

    def test_no_json_in_reply_returns_none(self, position):
        client, _ = _client(_reply("The position is roughly even."))
        assert client.rescore(position, MOVES, 0.1) is None

    def test_unexpected_body_returns_none(self, position):
        client, _ = _client(FakeResponse(200, ["not", "an", "object"]))
        assert client.rescore(position, MOVES, 0.1) is None

    def test_overflowing_move_returns_none(self, position, caplog):
        text = '{"winProbability": 0.6, "bestMoves": [{"from": 1e999, "to": 3, "die": 2}]}'
        client, _ = _client(_reply(text))
        with caplog.at_level(logging.WARNING):
            assert client.rescore(position, MOVES, 0.1) is None
        assert "malformed" in caplog.text

    def test_is_available(self):
        client, session = _client(FakeResponse(200, {"models": []}))
        assert client.is_available()
        assert session.calls[0][1] == "http://ollama.test:11434/api/tags"
        assert session.calls[0][2]["timeout"] == 5.0

    def test_not_available(self):
        client, _ = _client(error=requests.ConnectionError("refused"))
        assert not client.is_available()
        client, _ = _client(FakeResponse(404))
        assert not client.is_available()

    def test_describe_position(self, position):
        text = describe_position(position)
        assert "Bar: white=0, black=0" in text
        assert "0: 2 white" in text
        assert "23: 2 black" in text

    def test_base_client_is_abstract(self, position):
        with pytest.raises(NotImplementedError):
            RescoringClient().rescore(position, MOVES, 0.0)
