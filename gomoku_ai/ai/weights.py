"""Heuristic weight profiles for the Gomoku move evaluator.

This module centralises every scalar used by :class:`HeuristicEvaluator`
and the difficulty profiles that scale them. Evaluators never read the
base constants directly; they read a :class:`ScoreTable` derived from a
:class:`DifficultyProfile`, so switching difficulty is a matter of building
a new table.

Design goals:

* Keep a **single source of truth** for pattern weights instead of
  scattering literals across the evaluator and tactic detector.
* Keep the strict pattern ordering the evaluator relies on:
  five >> open four > closed four > open three > closed three >
  open two > closed two > single.
* Keep compound tactic values (four-three, double-three) above every
  single-line value so the evaluator always prefers them when available.
* Remain JSON-serialisable so tuning runs can snapshot and override
  weights without touching code.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

HeuristicWeights = Dict[str, float]


# --- Base line and tactic values ---------------------------------------------
#
# Line values are per direction through the candidate cell. A closed line is
# worth half of the matching open line; a dead line (both ends closed) is
# worth nothing unless it already reaches five.

BASE_SCORES: HeuristicWeights = {
    "WEIGHT_FIVE": 100000.0,
    "WEIGHT_OPEN_FOUR": 10000.0,
    "WEIGHT_CLOSED_FOUR": 5000.0,
    "WEIGHT_OPEN_THREE": 1000.0,
    "WEIGHT_CLOSED_THREE": 500.0,
    "WEIGHT_OPEN_TWO": 100.0,
    "WEIGHT_CLOSED_TWO": 50.0,
    "WEIGHT_SINGLE": 10.0,
    "WEIGHT_CENTER": 5.0,
    # Compound tactics; only scored when advanced tactics are enabled.
    "WEIGHT_FOUR_THREE": 200000.0,
    "WEIGHT_DOUBLE_THREE": 150000.0,
    "WEIGHT_BLOCK_FOUR_THREE": 180000.0,
    "WEIGHT_BLOCK_DOUBLE_THREE": 120000.0,
    # Lone open four / open three bonuses, as factors of the line value.
    "FACTOR_LONE_FOUR": 1.5,
    "FACTOR_LONE_THREE": 1.2,
    "FACTOR_BLOCK_LONE": 0.8,
}

# Weight keys that scale with a profile's attack multiplier.
ATTACK_SCALED_KEYS = (
    "WEIGHT_OPEN_FOUR",
    "WEIGHT_CLOSED_FOUR",
    "WEIGHT_OPEN_THREE",
    "WEIGHT_CLOSED_THREE",
    "WEIGHT_OPEN_TWO",
    "WEIGHT_CLOSED_TWO",
)


@dataclass(frozen=True)
class DifficultyProfile:
    """Immutable difficulty tuning.

    ``pattern_multipliers`` lets a profile scale individual line weights on
    top of ``attack_multiplier`` (hard play weights fours above threes more
    steeply than a flat multiplier would).
    """

    name: str
    attack_multiplier: float
    defense_multiplier: float
    mistake_probability: float
    advanced_tactics_enabled: bool
    five_multiplier: float = 1.0
    center_multiplier: float = 1.0
    pattern_multipliers: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.mistake_probability <= 1.0:
            raise ConfigurationError(
                f"mistake_probability must be within [0, 1], got {self.mistake_probability}",
                config_key="mistake_probability",
            )
        if self.attack_multiplier <= 0 or self.defense_multiplier < 0:
            raise ConfigurationError("multipliers must be positive", config_key="attack_multiplier")


@dataclass(frozen=True)
class ScoreTable:
    """Concrete weights an evaluator uses for one difficulty profile."""

    five: float
    open_four: float
    closed_four: float
    open_three: float
    closed_three: float
    open_two: float
    closed_two: float
    single: float
    center: float
    four_three: float
    double_three: float
    block_four_three: float
    block_double_three: float
    lone_four_factor: float
    lone_three_factor: float
    block_lone_factor: float

    @classmethod
    def build(
        cls,
        profile: DifficultyProfile,
        base: Optional[Mapping[str, float]] = None,
    ) -> "ScoreTable":
        weights = dict(BASE_SCORES)
        if base:
            weights.update(base)
        for key in ATTACK_SCALED_KEYS:
            weights[key] = weights[key] * profile.pattern_multipliers.get(key, profile.attack_multiplier)
        return cls(
            five=weights["WEIGHT_FIVE"] * profile.five_multiplier,
            open_four=weights["WEIGHT_OPEN_FOUR"],
            closed_four=weights["WEIGHT_CLOSED_FOUR"],
            open_three=weights["WEIGHT_OPEN_THREE"],
            closed_three=weights["WEIGHT_CLOSED_THREE"],
            open_two=weights["WEIGHT_OPEN_TWO"],
            closed_two=weights["WEIGHT_CLOSED_TWO"],
            single=weights["WEIGHT_SINGLE"],
            center=weights["WEIGHT_CENTER"] * profile.center_multiplier,
            four_three=weights["WEIGHT_FOUR_THREE"],
            double_three=weights["WEIGHT_DOUBLE_THREE"],
            block_four_three=weights["WEIGHT_BLOCK_FOUR_THREE"],
            block_double_three=weights["WEIGHT_BLOCK_DOUBLE_THREE"],
            lone_four_factor=weights["FACTOR_LONE_FOUR"],
            lone_three_factor=weights["FACTOR_LONE_THREE"],
            block_lone_factor=weights["FACTOR_BLOCK_LONE"],
        )


def load_weight_overrides(path: Optional[str] = None) -> HeuristicWeights:
    """Load base weight overrides from JSON.

    The path defaults to ``GOMOKU_WEIGHTS_FILE``; no path means no overrides.
    Unknown keys are rejected so a typo cannot silently fall back to the
    defaults.
    """
    path = path or os.getenv("GOMOKU_WEIGHTS_FILE")
    if not path:
        return {}
    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"cannot load weight overrides: {e}", context={"path": path}) from e
    if not isinstance(data, dict):
        raise ConfigurationError("weight overrides must be a JSON object", context={"path": path})
    unknown = sorted(set(data) - set(BASE_SCORES))
    if unknown:
        raise ConfigurationError(f"unknown weight keys: {', '.join(unknown)}", config_key=unknown[0])
    logger.info("Loaded %d weight overrides from %s", len(data), path)
    return {key: float(value) for key, value in data.items()}
