"""Tests for the command-line interface."""

import json

import pytest

from bgengine import __version__
from bgengine.core.types import InvalidPositionError, Player
from bgengine.main import build_parser, main, position_from_json


def _write(tmp_path, data):
    path = tmp_path / "position.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestPositionJson:
    def test_parse(self):
        points = [0] * 24
        points[21], points[22] = 2, 2
        points[0], points[1] = -3, -1
        position = position_from_json({
            "points": points, "bar": [0, 0], "borneOff": [11, 11], "toMove": "black",
        })
        assert position.player_to_move == Player.BLACK
        assert position.borne_off == (11, 11)
        assert position.points[0] == -3

    @pytest.mark.parametrize("data", [
        {"bar": [0, 0]},
        {"points": [0] * 24, "toMove": "red"},
        {"points": "nope"},
        [],
    ])
    def test_rejects(self, data):
        with pytest.raises(InvalidPositionError):
            position_from_json(data)


class TestCli:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "analyze" in capsys.readouterr().out

    def test_analyze_opening(self, capsys):
        assert main(["analyze", "--dice", "3", "1"]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["source"] == "opening_book"
        assert result["notation"] == "24/21 6/5"
        assert result["bestMoves"] == [
            {"from": 0, "to": 3, "die": 3},
            {"from": 18, "to": 19, "die": 1},
        ]

    def test_analyze_position_file(self, tmp_path, capsys):
        points = [0] * 24
        points[21], points[22], points[23] = 1, 2, 1
        points[0], points[1], points[3] = -2, -1, -1
        path = _write(tmp_path, {
            "points": points, "bar": [0, 0], "borneOff": [11, 11], "toMove": "white",
        })
        assert main(["analyze", "--dice", "6", "5", "--position", path, "--depth", "0"]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["source"] == "bear_off"
        assert result["notation"] == "3/off 2/off"

    def test_invalid_position_file(self, tmp_path, capsys):
        path = _write(tmp_path, {"points": [1] * 24, "bar": [0, 0], "borneOff": [0, 0]})
        assert main(["analyze", "--dice", "3", "1", "--position", path]) == 2
        assert "error" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        missing = str(tmp_path / "missing.json")
        assert main(["analyze", "--dice", "3", "1", "--position", missing]) == 2

    def test_bad_dice(self, capsys):
        assert main(["analyze", "--dice", "8", "1"]) == 2
