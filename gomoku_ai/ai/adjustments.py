"""Auxiliary score-adjustment stages for the evaluator.

An evaluator variant is the plain heuristic evaluator composed with zero or
more adjusters; each adjuster adds a term to a candidate's score after the
line, tactic and positional terms are computed. The adaptive variant uses a
learned per-cell position-value table.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np

from ..board_manager import BoardStore
from ..errors import ConfigurationError
from ..models import PLAYERS, CellState, Move
from .base import ScoredCell

logger = logging.getLogger(__name__)

__all__ = ["DynamicWeights", "PositionValueAdjuster", "ScoreAdjuster", "game_reward"]


@dataclass(frozen=True)
class DynamicWeights:
    """Scales applied to the evaluator's own score terms.

    pattern_recognition scales line scores, threat_assessment scales tactic
    bonuses and position_value scales the centre bonus.
    """

    pattern_recognition: float = 1.0
    threat_assessment: float = 1.0
    position_value: float = 1.0


def game_reward(player: CellState, winner: Optional[CellState], game_length: int, board_cells: int) -> float:
    """Outcome reward for ``player``: 1 plus a quick-win bonus, -1 for a loss, 0 for a draw."""
    if winner is None:
        return 0.0
    if winner is player:
        return 1.0 + 0.5 * max(0, board_cells - game_length) / board_cells
    return -1.0


class ScoreAdjuster(ABC):
    """One additive scoring stage."""

    name: str = "adjuster"

    @abstractmethod
    def adjust(self, board: BoardStore, cell: ScoredCell) -> float:
        """Return the amount to add to ``cell.score``."""


class PositionValueAdjuster(ScoreAdjuster):
    """Adds ``scale * value[x, y]`` from a learned position-value table."""

    name = "position_value"

    def __init__(self, values: np.ndarray, scale: float = 10.0, learning_rate: float = 0.1):
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 2 or values.shape[0] != values.shape[1]:
            raise ConfigurationError(f"position values must be square, got shape {values.shape}")
        self.values = values.copy()
        self.scale = scale
        self.learning_rate = learning_rate

    @classmethod
    def zeros(cls, board_size: int = 15, **kwargs) -> "PositionValueAdjuster":
        return cls(np.zeros((board_size, board_size)), **kwargs)

    @classmethod
    def from_json(cls, path: str | Path, board_size: int = 15, **kwargs) -> "PositionValueAdjuster":
        try:
            with open(path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"cannot load position values: {e}", context={"path": str(path)}) from e
        values = np.asarray(data.get("positionValues") if isinstance(data, dict) else data, dtype=np.float64)
        if values.shape != (board_size, board_size):
            raise ConfigurationError(
                f"position values have shape {values.shape}, expected {(board_size, board_size)}",
                context={"path": str(path)},
            )
        logger.info("Loaded position values from %s", path)
        return cls(values, **kwargs)

    def to_json(self, path: str | Path) -> None:
        with open(path, "w", encoding="utf-8") as handle:
            json.dump({"positionValues": self.values.tolist()}, handle)

    def adjust(self, board: BoardStore, cell: ScoredCell) -> float:
        return self.scale * float(self.values[cell.x, cell.y])

    def reinforce(self, moves: Iterable[Move], reward: float, learning_rate: Optional[float] = None) -> None:
        """Move each played cell's value toward ``reward``."""
        rate = self.learning_rate if learning_rate is None else learning_rate
        for move in moves:
            current = self.values[move.x, move.y]
            self.values[move.x, move.y] = current + rate * (reward - current)

    def learn_from_game(self, moves: Sequence[Move], winner: Optional[CellState]) -> None:
        """Reinforce each side's placements with that side's game reward."""
        for player in PLAYERS:
            reward = game_reward(player, winner, len(moves), self.values.size)
            self.reinforce([m for m in moves if m.player is player], reward)
        logger.debug(
            "Position values updated from %d moves (winner=%s)",
            len(moves), int(winner) if winner is not None else None,
        )
