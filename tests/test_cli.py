"""Tests for gomoku_ai/cli.py - argument parsing and self-play."""

import json

import pytest

from gomoku_ai.ai.adjustments import PositionValueAdjuster
from gomoku_ai.cli import build_parser, play_game, run_selfplay
from gomoku_ai.config import EngineConfig


class TestParser:
    def test_selfplay_defaults(self):
        args = build_parser().parse_args(["selfplay"])
        assert args.command == "selfplay"
        assert args.games == 1
        assert args.black == "normal" and args.white == "normal"
        assert args.variant is None
        assert args.func is run_selfplay

    def test_selfplay_options(self):
        args = build_parser().parse_args(
            ["--log-level", "debug", "selfplay", "--games", "3", "--black", "hard", "--variant", "adaptive", "--json"]
        )
        assert args.log_level == "debug"
        assert args.games == 3
        assert args.black == "hard"
        assert args.variant == "adaptive"
        assert args.json

    def test_rejects_unknown_difficulty(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["selfplay", "--black", "grandmaster"])

    def test_serve(self):
        args = build_parser().parse_args(["serve", "--port", "9001"])
        assert args.port == 9001
        assert args.host == "127.0.0.1"


@pytest.mark.slow
class TestSelfPlay:
    @pytest.mark.asyncio
    async def test_game_finishes(self):
        config = EngineConfig(board_size=9, history_capacity=20)
        summary = await play_game(config, "easy", "hard", seed=4)
        assert summary["result"] in {"winner_1", "winner_2", "draw"}
        assert summary["seed"] == 4
        assert summary["moves"] > 0
        for entry in summary["skills"]:
            player, skill = entry.split(":")
            assert player in {"1", "2"}
            assert skill in {"scatter", "remove", "rewind"}

    @pytest.mark.asyncio
    async def test_same_seed_same_game(self):
        config = EngineConfig(board_size=9)
        first = await play_game(config, "normal", "normal", seed=21)
        second = await play_game(config, "normal", "normal", seed=21)
        assert first == second

    @pytest.mark.asyncio
    async def test_json_report(self, capsys, monkeypatch):
        monkeypatch.setenv("GOMOKU_BOARD_SIZE", "9")
        args = build_parser().parse_args(["selfplay", "--games", "2", "--seed", "5", "--json"])
        assert await run_selfplay(args) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["summary"]["games"] == 2
        assert [g["seed"] for g in report["games"]] == [5, 6]
        assert sum(report["summary"]["results"].values()) == 2

    @pytest.mark.asyncio
    async def test_adaptive_game_trains_shared_table(self):
        config = EngineConfig(board_size=9, evaluator_variant="adaptive")
        values = PositionValueAdjuster.zeros(9)
        summary = await play_game(config, "easy", "hard", seed=8, position_values=values)
        assert summary["result"] != "unfinished"
        if summary["result"].startswith("winner"):
            assert values.values.max() > 0
            assert values.values.min() < 0
        else:
            assert not values.values.any()

    @pytest.mark.asyncio
    async def test_selfplay_saves_position_values(self, tmp_path):
        path = tmp_path / "values.json"
        config_file = tmp_path / "engine.yaml"
        config_file.write_text(
            f"board_size: 9\nevaluator_variant: adaptive\nposition_values_path: {path}\n",
            encoding="utf-8",
        )
        args = build_parser().parse_args(["selfplay", "--config", str(config_file), "--seed", "2", "--json"])
        assert await run_selfplay(args) == 0
        assert path.exists()
        loaded = PositionValueAdjuster.from_json(path, board_size=9)
        assert loaded.values.shape == (9, 9)
