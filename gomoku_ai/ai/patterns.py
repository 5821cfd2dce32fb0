"""Line pattern analysis.

Classifies the line through a candidate cell, in one axis direction, into a
run length plus open/closed ends. The candidate cell is treated as holding
the player's stone without writing it to the board, so analysis never
mutates shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Tuple

import numpy as np

from ..board_manager import DIRECTIONS, BoardStore
from ..models import CellState

__all__ = ["LineAnalysis", "PatternAnalyzer", "RunInfo", "ThreatLevel"]

# Steps walked in each direction from the candidate cell.
MAX_WALK = 4


class ThreatLevel(IntEnum):
    """Line classification, ordered by strength."""
    NONE = 0
    CLOSED_TWO = 1
    OPEN_TWO = 2
    CLOSED_THREE = 3
    OPEN_THREE = 4
    CLOSED_FOUR = 5
    OPEN_FOUR = 6
    FIVE = 7


_BY_RUN = {
    4: (ThreatLevel.CLOSED_FOUR, ThreatLevel.OPEN_FOUR),
    3: (ThreatLevel.CLOSED_THREE, ThreatLevel.OPEN_THREE),
    2: (ThreatLevel.CLOSED_TWO, ThreatLevel.OPEN_TWO),
}


@dataclass(frozen=True, slots=True)
class LineAnalysis:
    """Run through a candidate cell along one direction."""

    run_length: int
    left_open: bool
    right_open: bool
    can_win: bool

    @property
    def open_end_count(self) -> int:
        return int(self.left_open) + int(self.right_open)

    @property
    def threat_level(self) -> ThreatLevel:
        if self.can_win:
            return ThreatLevel.FIVE
        levels = _BY_RUN.get(self.run_length)
        if levels is None or self.open_end_count == 0:
            return ThreatLevel.NONE
        return levels[1] if self.open_end_count == 2 else levels[0]

    @property
    def is_open_four(self) -> bool:
        return self.threat_level is ThreatLevel.OPEN_FOUR

    @property
    def is_open_three(self) -> bool:
        return self.threat_level is ThreatLevel.OPEN_THREE


@dataclass(frozen=True, slots=True)
class RunInfo:
    """A maximal run of existing stones on the board."""

    player: CellState
    length: int
    open_ends: int
    start: Tuple[int, int]
    direction: Tuple[int, int]


class PatternAnalyzer:
    """Line classification around candidate cells and existing runs."""

    def __init__(self, win_length: int = 5):
        self.win_length = win_length

    @staticmethod
    def _walk(grid: np.ndarray, x: int, y: int, dx: int, dy: int, player: int) -> Tuple[int, bool]:
        """Return (own stones found, ended on an in-bounds empty cell)."""
        size = grid.shape[0]
        count = 0
        for step in range(1, MAX_WALK + 1):
            cx, cy = x + dx * step, y + dy * step
            if not (0 <= cx < size and 0 <= cy < size):
                return count, False
            value = grid[cx, cy]
            if value == player:
                count += 1
            elif value == CellState.EMPTY:
                return count, True
            else:
                return count, False
        return count, False

    def analyze_line(
        self,
        board: BoardStore,
        x: int,
        y: int,
        dx: int,
        dy: int,
        player: CellState,
    ) -> LineAnalysis:
        grid = board.cells
        own = int(player)
        right, right_open = self._walk(grid, x, y, dx, dy, own)
        left, left_open = self._walk(grid, x, y, -dx, -dy, own)
        run = 1 + left + right
        return LineAnalysis(
            run_length=run,
            left_open=left_open,
            right_open=right_open,
            can_win=run >= self.win_length,
        )

    def analyze(self, board: BoardStore, x: int, y: int, player: CellState) -> Tuple[LineAnalysis, ...]:
        """LineAnalysis for all four directions, in DIRECTIONS order."""
        return tuple(self.analyze_line(board, x, y, dx, dy, player) for dx, dy in DIRECTIONS)

    def best_threat(self, board: BoardStore, x: int, y: int, player: CellState) -> ThreatLevel:
        return max(line.threat_level for line in self.analyze(board, x, y, player))

    def existing_runs(self, board: BoardStore, player: CellState, min_length: int = 2) -> List[RunInfo]:
        """Maximal runs of ``player`` stones already on the board.

        Each run is reported once, from its first cell in direction order.
        """
        grid = board.cells
        size = board.size
        own = int(player)
        runs: List[RunInfo] = []
        for piece in board.all_pieces(player):
            x, y = piece.x, piece.y
            for dx, dy in DIRECTIONS:
                px, py = x - dx, y - dy
                if 0 <= px < size and 0 <= py < size and grid[px, py] == own:
                    continue
                length = 1
                cx, cy = x + dx, y + dy
                while 0 <= cx < size and 0 <= cy < size and grid[cx, cy] == own:
                    length += 1
                    cx += dx
                    cy += dy
                if length < min_length:
                    continue
                head_open = 0 <= px < size and 0 <= py < size and grid[px, py] == CellState.EMPTY
                tail_open = 0 <= cx < size and 0 <= cy < size and grid[cx, cy] == CellState.EMPTY
                runs.append(RunInfo(
                    player=CellState(player),
                    length=length,
                    open_ends=int(head_open) + int(tail_open),
                    start=(x, y),
                    direction=(dx, dy),
                ))
        return runs
