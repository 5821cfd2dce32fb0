"""Compound threat detection.

A compound threat is a single placement that creates two near-winning
lines at once (four-three or double-three); the opponent can block only one
of them. The detector works from the per-direction :class:`LineAnalysis`
produced by :class:`PatternAnalyzer`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from ..board_manager import BoardStore, Cell
from ..models import CellState
from .patterns import LineAnalysis, PatternAnalyzer
from .weights import ScoreTable

__all__ = ["TacticDetector", "TacticResult", "TacticType"]


class TacticType(str, Enum):
    """Tactic classification of a placement, strongest first."""
    FOUR_THREE = "four-three"
    DOUBLE_THREE = "double-three"
    OPEN_FOUR = "open-four"
    OPEN_THREE = "open-three"
    NONE = "none"


_RANK = {
    TacticType.FOUR_THREE: 4,
    TacticType.DOUBLE_THREE: 3,
    TacticType.OPEN_FOUR: 2,
    TacticType.OPEN_THREE: 1,
    TacticType.NONE: 0,
}


@dataclass(frozen=True)
class TacticResult:
    tactic: TacticType
    open_fours: int
    open_threes: int

    @property
    def is_compound(self) -> bool:
        return self.tactic in (TacticType.FOUR_THREE, TacticType.DOUBLE_THREE)

    @property
    def rank(self) -> int:
        return _RANK[self.tactic]


NO_TACTIC = TacticResult(TacticType.NONE, 0, 0)


class TacticDetector:
    """Combines per-direction line classes into tactic classes and scores."""

    def __init__(self, analyzer: Optional[PatternAnalyzer] = None):
        self.analyzer = analyzer or PatternAnalyzer()

    @staticmethod
    def classify(lines: Sequence[LineAnalysis]) -> TacticResult:
        fours = sum(1 for line in lines if line.is_open_four)
        threes = sum(1 for line in lines if line.is_open_three)
        if fours >= 1 and threes >= 1:
            tactic = TacticType.FOUR_THREE
        elif threes >= 2:
            tactic = TacticType.DOUBLE_THREE
        elif fours >= 1:
            tactic = TacticType.OPEN_FOUR
        elif threes >= 1:
            tactic = TacticType.OPEN_THREE
        else:
            tactic = TacticType.NONE
        return TacticResult(tactic, fours, threes)

    def detect(self, board: BoardStore, x: int, y: int, player: CellState) -> TacticResult:
        return self.classify(self.analyzer.analyze(board, x, y, player))

    @staticmethod
    def score(result: TacticResult, table: ScoreTable, blocking: bool = False) -> float:
        """Bonus for creating (or, with ``blocking``, denying) a tactic."""
        tactic = result.tactic
        if tactic is TacticType.FOUR_THREE:
            return table.block_four_three if blocking else table.four_three
        if tactic is TacticType.DOUBLE_THREE:
            return table.block_double_three if blocking else table.double_three
        if tactic is TacticType.OPEN_FOUR:
            bonus = table.open_four * table.lone_four_factor
        elif tactic is TacticType.OPEN_THREE:
            bonus = table.open_three * table.lone_three_factor
        else:
            return 0.0
        return bonus * table.block_lone_factor if blocking else bonus

    def find_compound_cell(self, board: BoardStore, player: CellState) -> Optional[Tuple[Cell, TacticResult]]:
        """Strongest compound-threat cell for ``player``; row-major on ties."""
        best: Optional[Tuple[Cell, TacticResult]] = None
        for x, y in board.empty_cells():
            result = self.detect(board, x, y, player)
            if not result.is_compound:
                continue
            if best is None or result.rank > best[1].rank:
                best = ((x, y), result)
                if result.tactic is TacticType.FOUR_THREE:
                    break
        return best
