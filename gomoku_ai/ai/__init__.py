"""AI layer for the Gomoku skills engine.

Use the factory to build evaluators and the pipeline to play whole turns:

    from gomoku_ai.ai import DecisionPipeline, EvaluatorFactory

    evaluator = EvaluatorFactory.create(CellState.PLAYER_B, difficulty="hard", seed=1)
    pipeline = DecisionPipeline(engine)
    outcome = await pipeline.run_turn()

Architecture:
- patterns.py: per-direction line analysis and existing-run statistics
- tactics.py: four-three / double-three detection
- weights.py: score constants and difficulty profiles
- base.py / heuristic_ai.py: evaluator interface and the pattern evaluator
- adjustments.py: auxiliary scoring stages (learned position values)
- factory.py: difficulty profiles and evaluator variants
- skill_policy.py: rule-based skill use
- advisor.py: external move advisor client
- pipeline.py: per-turn decision state machine
"""

from gomoku_ai.ai.base import BaseEvaluator, MoveDecision, ScoredCell
from gomoku_ai.ai.factory import (
    CANONICAL_DIFFICULTY_PROFILES,
    EvaluatorFactory,
    get_difficulty_profile,
)
from gomoku_ai.ai.heuristic_ai import HeuristicEvaluator
from gomoku_ai.ai.pipeline import DecisionPipeline, PipelineState, TurnOutcome
from gomoku_ai.ai.skill_policy import SkillDecision, SkillPolicy, SkillVerdict

__all__ = [
    "CANONICAL_DIFFICULTY_PROFILES",
    "BaseEvaluator",
    "DecisionPipeline",
    "EvaluatorFactory",
    "HeuristicEvaluator",
    "MoveDecision",
    "PipelineState",
    "ScoredCell",
    "SkillDecision",
    "SkillPolicy",
    "SkillVerdict",
    "TurnOutcome",
    "get_difficulty_profile",
]
