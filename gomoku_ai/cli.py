"""Command-line entry point.

Usage:
    gomoku-ai selfplay --games 10 --black hard --white normal --seed 7
    gomoku-ai serve --port 8000
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from collections import Counter
from typing import Any, Dict, List, Optional

from .ai.adjustments import PositionValueAdjuster
from .ai.factory import EvaluatorFactory, load_position_values
from .ai.pipeline import DecisionPipeline
from .config import EngineConfig
from .core.logging_config import configure_third_party_loggers, setup_logging
from .errors import ConfigurationError
from .game_engine import GameEngine
from .models import CellState, Difficulty, Move, SkillType

logger = logging.getLogger("gomoku_ai")

# Hard stop for a single self-play game; a full board needs 225 placements
# and each side can rewind at most once.
MAX_TURNS = 600


async def play_game(
    config: EngineConfig,
    black: str,
    white: str,
    seed: int,
    show_board: bool = False,
    position_values: Optional[PositionValueAdjuster] = None,
) -> Dict[str, Any]:
    """Play one AI-vs-AI game through the full decision pipeline.

    With the adaptive variant both sides share one position-value table,
    which is reinforced from the placements once the game has ended.
    """
    rng = random.Random(seed)
    engine = GameEngine(config, rng=rng, game_id=f"selfplay-{seed}")
    if position_values is None and config.evaluator_variant == "adaptive":
        position_values = load_position_values(config)
    evaluators = {
        player: EvaluatorFactory.create(
            player, difficulty=difficulty, rng=rng, config=config, position_values=position_values
        )
        for player, difficulty in ((CellState.PLAYER_A, black), (CellState.PLAYER_B, white))
    }
    pipeline = DecisionPipeline(engine, evaluators=evaluators, rng=rng)
    skills: List[str] = []
    moves: List[Move] = []
    turns = 0
    try:
        while not engine.is_over and turns < MAX_TURNS:
            outcome = await pipeline.run_turn()
            turns += 1
            if not outcome.ok:
                logger.warning("Turn rejected: %s", outcome.reason)
                break
            if outcome.skill_used is not None:
                skills.append(f"{int(outcome.player)}:{outcome.skill_used.value}")
            if outcome.skill_used is SkillType.REWIND:
                del moves[engine.move_count:]
            if outcome.move_result is not None and outcome.move_result.ok:
                moves.append(outcome.move_result.move)
            if outcome.move_decision is None and outcome.skill_used is None:
                break
        if show_board:
            print(engine.board.render())
    finally:
        engine.close()

    if position_values is not None and engine.is_over:
        position_values.learn_from_game(moves, engine.winner)

    if engine.winner is not None:
        result = f"winner_{int(engine.winner)}"
    elif engine.is_over:
        result = "draw"
    else:
        result = "unfinished"
    return {
        "seed": seed,
        "result": result,
        "moves": engine.move_count,
        "turns": turns,
        "skills": skills,
    }


async def run_selfplay(args: argparse.Namespace) -> int:
    config = _load_config(args)
    position_values = load_position_values(config) if config.evaluator_variant == "adaptive" else None
    results = []
    for i in range(args.games):
        seed = args.seed + i
        summary = await play_game(
            config, args.black, args.white, seed, show_board=args.show_board, position_values=position_values
        )
        results.append(summary)
        if position_values is not None and config.position_values_path:
            position_values.to_json(config.position_values_path)
        logger.info(
            "Game %d/%d seed=%d result=%s moves=%d skills=%s",
            i + 1, args.games, seed, summary["result"], summary["moves"], ",".join(summary["skills"]) or "-",
        )

    tally = Counter(r["result"] for r in results)
    report = {
        "games": len(results),
        "black": args.black,
        "white": args.white,
        "results": dict(tally),
        "avgMoves": sum(r["moves"] for r in results) / max(1, len(results)),
    }
    if args.json:
        print(json.dumps({"summary": report, "games": results}, indent=2))
    else:
        print(f"Self-play: {report['games']} games, black={args.black} white={args.white}")
        for outcome, count in sorted(tally.items()):
            print(f"  {outcome:12s} {count}")
        print(f"  average moves {report['avgMoves']:.1f}")
    return 0


def run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("gomoku_ai.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _load_config(args: argparse.Namespace) -> EngineConfig:
    if args.config:
        config = EngineConfig.from_yaml(args.config)
    else:
        config = EngineConfig.from_env()
    if args.variant:
        config = config.with_overrides(evaluator_variant=args.variant)
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gomoku-ai",
        description="Gomoku skills engine: self-play and HTTP service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    difficulties = [d.value for d in Difficulty]
    p_self = subparsers.add_parser("selfplay", help="Play AI-vs-AI games")
    p_self.add_argument("--games", type=int, default=1, help="Number of games")
    p_self.add_argument("--black", choices=difficulties, default="normal", help="Difficulty of player 1")
    p_self.add_argument("--white", choices=difficulties, default="normal", help="Difficulty of player 2")
    p_self.add_argument("--variant", choices=EvaluatorFactory.variants(), help="Evaluator variant")
    p_self.add_argument("--seed", type=int, default=0, help="Seed of the first game")
    p_self.add_argument("--config", help="YAML engine config file")
    p_self.add_argument("--show-board", action="store_true", help="Print each final board")
    p_self.add_argument("--json", action="store_true", help="Print results as JSON")
    p_self.set_defaults(func=run_selfplay)

    p_serve = subparsers.add_parser("serve", help="Run the HTTP service")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=run_serve)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    setup_logging("gomoku_ai", level=args.log_level.upper(), format_style="compact")
    configure_third_party_loggers()
    try:
        result = args.func(args)
        if asyncio.iscoroutine(result):
            result = asyncio.run(result)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2
    return result


if __name__ == "__main__":
    sys.exit(main())
