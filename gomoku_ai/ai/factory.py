"""Evaluator factory.

All evaluator construction goes through here so difficulty profiles and
variant wiring stay consistent between the service, the CLI and tests.

Usage:
    from gomoku_ai.ai.factory import EvaluatorFactory, get_difficulty_profile

    evaluator = EvaluatorFactory.create(CellState.PLAYER_B, difficulty="hard", seed=7)
    profile = get_difficulty_profile("easy")

Variants:
    standard  plain pattern-weight evaluator, mistakes drawn from the top 5
    adaptive  same evaluator composed with dynamic weights, a learned
              position-value stage and the hugging opening; mistakes from
              the top 3
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from pathlib import Path
from typing import Dict, Optional, Union

from ..config import EngineConfig
from ..errors import ConfigurationError
from ..models import CellState, Difficulty
from .adjustments import DynamicWeights, PositionValueAdjuster
from .base import BaseEvaluator
from .heuristic_ai import HeuristicEvaluator
from .weights import DifficultyProfile, load_weight_overrides

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Difficulty profiles
# -----------------------------------------------------------------------------

CANONICAL_DIFFICULTY_PROFILES: Dict[Difficulty, DifficultyProfile] = {
    Difficulty.EASY: DifficultyProfile(
        name="easy",
        attack_multiplier=0.8,
        defense_multiplier=0.3,
        mistake_probability=0.2,
        advanced_tactics_enabled=False,
    ),
    Difficulty.NORMAL: DifficultyProfile(
        name="normal",
        attack_multiplier=1.0,
        defense_multiplier=0.9,
        mistake_probability=0.05,
        advanced_tactics_enabled=False,
    ),
    Difficulty.HARD: DifficultyProfile(
        name="hard",
        attack_multiplier=4.0,
        defense_multiplier=1.2,
        mistake_probability=0.0001,
        advanced_tactics_enabled=True,
        five_multiplier=3.0,
        center_multiplier=5.0,
        pattern_multipliers={
            "WEIGHT_OPEN_FOUR": 5.0,
            "WEIGHT_CLOSED_FOUR": 5.0,
            "WEIGHT_OPEN_THREE": 4.0,
            "WEIGHT_CLOSED_THREE": 4.0,
            "WEIGHT_OPEN_TWO": 2.0,
            "WEIGHT_CLOSED_TWO": 2.0,
        },
    ),
}

ADAPTIVE_DYNAMIC_WEIGHTS = DynamicWeights(
    pattern_recognition=1.0,
    threat_assessment=1.0,
    position_value=1.2,
)


def get_difficulty_profile(difficulty: Union[str, Difficulty]) -> DifficultyProfile:
    """Return the canonical profile for a difficulty name."""
    try:
        key = Difficulty(difficulty)
    except ValueError:
        raise ConfigurationError(f"unknown difficulty {difficulty!r}", config_key="difficulty") from None
    return CANONICAL_DIFFICULTY_PROFILES[key]


EvaluatorBuilder = Callable[..., BaseEvaluator]


def _build_standard(
    player: CellState,
    profile: DifficultyProfile,
    rng: random.Random,
    config: EngineConfig,
    position_values: Optional[PositionValueAdjuster] = None,
) -> BaseEvaluator:
    return HeuristicEvaluator(
        player,
        profile,
        rng=rng,
        mistake_top_k=5,
        opening_piece_limit=config.opening_piece_limit,
        win_length=config.win_length,
        base_weights=load_weight_overrides(),
    )


def load_position_values(config: EngineConfig) -> PositionValueAdjuster:
    """The learned table at ``config.position_values_path``.

    A zero table when no path is set or the file does not exist yet; self-play
    creates it on first save.
    """
    if config.position_values_path and Path(config.position_values_path).exists():
        return PositionValueAdjuster.from_json(config.position_values_path, board_size=config.board_size)
    return PositionValueAdjuster.zeros(config.board_size)


def _build_adaptive(
    player: CellState,
    profile: DifficultyProfile,
    rng: random.Random,
    config: EngineConfig,
    position_values: Optional[PositionValueAdjuster] = None,
) -> BaseEvaluator:
    adjuster = position_values if position_values is not None else load_position_values(config)
    return HeuristicEvaluator(
        player,
        profile,
        rng=rng,
        mistake_top_k=3,
        opening_piece_limit=config.opening_piece_limit,
        dynamic_weights=ADAPTIVE_DYNAMIC_WEIGHTS,
        adjusters=[adjuster],
        shadow_opening=True,
        win_length=config.win_length,
        base_weights=load_weight_overrides(),
    )


class EvaluatorFactory:
    """Creates evaluators by variant name."""

    _registry: Dict[str, EvaluatorBuilder] = {
        "standard": _build_standard,
        "adaptive": _build_adaptive,
    }

    @classmethod
    def register(cls, variant: str, builder: EvaluatorBuilder) -> None:
        cls._registry[variant] = builder

    @classmethod
    def variants(cls) -> list[str]:
        return sorted(cls._registry)

    @classmethod
    def create(
        cls,
        player: CellState,
        difficulty: Union[str, Difficulty, None] = None,
        variant: Optional[str] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        config: Optional[EngineConfig] = None,
        position_values: Optional[PositionValueAdjuster] = None,
    ) -> BaseEvaluator:
        """Build an evaluator.

        Args:
            player: Player the evaluator moves for
            difficulty: Difficulty name; defaults to ``config.difficulty``
            variant: Variant name; defaults to ``config.evaluator_variant``
            rng: Random source; built from ``seed`` when omitted
            seed: Seed for a fresh RNG
            config: Engine configuration
            position_values: Shared learned table for the adaptive variant;
                loaded from ``config`` when omitted
        """
        config = config or EngineConfig()
        variant = variant or config.evaluator_variant
        builder = cls._registry.get(variant)
        if builder is None:
            raise ConfigurationError(
                f"unknown evaluator variant {variant!r}; expected one of {cls.variants()}",
                config_key="evaluator_variant",
            )
        profile = get_difficulty_profile(difficulty or config.difficulty)
        if rng is None:
            rng = random.Random(seed if seed is not None else config.seed)
        evaluator = builder(CellState(player), profile, rng, config, position_values=position_values)
        logger.debug("Created %s evaluator: %s", variant, evaluator)
        return evaluator
