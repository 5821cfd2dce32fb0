"""
Base move evaluator for the Gomoku engine.
Abstract base class that all evaluator strategies implement.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from ..board_manager import BoardStore
from ..models import CellState
from .weights import DifficultyProfile, ScoreTable


@dataclass
class ScoredCell:
    """One candidate cell with its score breakdown."""
    x: int
    y: int
    score: float
    attack: float = 0.0
    defense: float = 0.0
    positional: float = 0.0
    tactic: float = 0.0
    block_tactic: float = 0.0
    adjustment: float = 0.0
    wins: bool = False
    reasoning: str = ""


@dataclass
class MoveDecision:
    """Chosen cell plus how it was chosen."""
    x: int
    y: int
    score: float
    reasoning: str
    source: str = "evaluator"
    candidates: List[ScoredCell] = field(default_factory=list)


class BaseEvaluator(ABC):
    """Abstract base class for move evaluators.

    Holds the difficulty profile, the derived score table and a per-instance
    RNG used for all stochastic behaviour (mistakes, random fallbacks).
    """

    def __init__(
        self,
        player: CellState,
        profile: DifficultyProfile,
        rng: Optional[random.Random] = None,
        mistake_top_k: int = 5,
        base_weights: Optional[Mapping[str, float]] = None,
    ):
        """
        Initialize evaluator

        Args:
            player: The player this evaluator chooses moves for
            profile: Difficulty tuning
            rng: Seedable random source; a fresh unseeded one if omitted
            mistake_top_k: Pool size for intentional sub-optimal picks
            base_weights: Overrides of the base pattern weights
        """
        self.player = CellState(player)
        self.rng: random.Random = rng if rng is not None else random.Random()
        self.mistake_top_k = mistake_top_k
        self.base_weights = dict(base_weights or {})
        self.set_profile(profile)

    def set_profile(self, profile: DifficultyProfile) -> None:
        """Switch difficulty; recomputes the derived score table."""
        self.profile = profile
        self.table = ScoreTable.build(profile, self.base_weights)

    @property
    def opponent(self) -> CellState:
        return self.player.opponent

    @abstractmethod
    def score_cells(self, board: BoardStore) -> List[ScoredCell]:
        """
        Score every empty cell for this evaluator's player

        Args:
            board: Current board (never mutated)

        Returns:
            Scored cells sorted best first, ties in row-major order
        """

    @abstractmethod
    def select_move(self, board: BoardStore) -> Optional[MoveDecision]:
        """
        Select a move for the current board

        Returns:
            Selected move or None if the board is full
        """

    def should_make_mistake(self) -> bool:
        """Per-decision draw against the profile's mistake probability."""
        probability = self.profile.mistake_probability
        if probability <= 0:
            return False
        return self.rng.random() < probability

    def get_random_element(self, items: List[Any]) -> Optional[Any]:
        """
        Get random element from list using the per-instance RNG.

        Returns:
            Random item or None if list is empty
        """
        if not items:
            return None
        return self.rng.choice(items)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(player={int(self.player)}, difficulty={self.profile.name})"
