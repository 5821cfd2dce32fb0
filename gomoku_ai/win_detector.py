"""Win, draw and threat detection.

All checks scan outward from a single cell along the four axis directions,
so a win check after a placement costs O(win_length) rather than a full
board sweep. ``scan_for_winner`` is the exception: skills that relocate
stones can complete a line anywhere, so the game engine uses it after a
scatter.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

import numpy as np

from .board_manager import DIRECTIONS, BoardStore, Cell
from .models import CellState, Move, Position

logger = logging.getLogger(__name__)

__all__ = ["WinDetector"]

MoveLike = Union[Move, Position, Tuple[int, int]]


def _xy(move: MoveLike) -> Cell:
    if isinstance(move, tuple):
        return int(move[0]), int(move[1])
    return move.x, move.y


class WinDetector:
    """Detects five-in-a-row, full-board draws and run-length threats."""

    def __init__(self, win_length: int = 5):
        self.win_length = win_length

    @staticmethod
    def _walk(grid: np.ndarray, x: int, y: int, dx: int, dy: int, player: int) -> int:
        """Count contiguous ``player`` stones from (x, y) exclusive along (dx, dy)."""
        size = grid.shape[0]
        count = 0
        cx, cy = x + dx, y + dy
        while 0 <= cx < size and 0 <= cy < size and grid[cx, cy] == player:
            count += 1
            cx += dx
            cy += dy
        return count

    def run_length(self, board: BoardStore, x: int, y: int, dx: int, dy: int, player: CellState) -> int:
        """Length of the run through (x, y) along one axis, counting (x, y) as ``player``."""
        grid = board.cells
        return 1 + self._walk(grid, x, y, dx, dy, int(player)) + self._walk(grid, x, y, -dx, -dy, int(player))

    def max_run(self, board: BoardStore, x: int, y: int, player: CellState) -> int:
        """Longest run through (x, y) over all four axes if ``player`` stood there."""
        return max(self.run_length(board, x, y, dx, dy, player) for dx, dy in DIRECTIONS)

    def check_win(self, board: BoardStore, last_move: MoveLike) -> Optional[CellState]:
        """Return the player whose stone at ``last_move`` completes a five, else None."""
        x, y = _xy(last_move)
        if not board.in_bounds(x, y):
            return None
        player = board.get(x, y)
        if player is CellState.EMPTY:
            return None
        for dx, dy in DIRECTIONS:
            if self.run_length(board, x, y, dx, dy, player) >= self.win_length:
                return player
        return None

    def is_draw(self, board: BoardStore) -> bool:
        return board.is_full()

    def winning_line(self, board: BoardStore, last_move: MoveLike) -> List[Position]:
        """Ordered cells of the full winning run through ``last_move``.

        When the stone completes runs on several axes, the first axis in
        direction order is reported. Returns an empty list for no win.
        """
        x, y = _xy(last_move)
        if not board.in_bounds(x, y):
            return []
        player = board.get(x, y)
        if player is CellState.EMPTY:
            return []
        grid = board.cells
        for dx, dy in DIRECTIONS:
            back = self._walk(grid, x, y, -dx, -dy, int(player))
            forward = self._walk(grid, x, y, dx, dy, int(player))
            if 1 + back + forward >= self.win_length:
                sx, sy = x - back * dx, y - back * dy
                return [
                    Position(x=sx + i * dx, y=sy + i * dy)
                    for i in range(back + forward + 1)
                ]
        return []

    def would_win(self, board: BoardStore, x: int, y: int, player: CellState) -> bool:
        """True if ``player`` placing at empty (x, y) would win. Never mutates."""
        if not board.is_empty_cell(x, y):
            return False
        return self.max_run(board, x, y, player) >= self.win_length

    def find_winning_cells(self, board: BoardStore, player: CellState) -> List[Cell]:
        """Empty cells that win immediately for ``player``, row-major."""
        return [
            (x, y) for x, y in board.empty_cells()
            if self.max_run(board, x, y, player) >= self.win_length
        ]

    def threat_level(self, board: BoardStore, x: int, y: int, player: CellState) -> int:
        """Run length ``player`` would reach at empty (x, y); 0 for occupied cells."""
        if not board.is_empty_cell(x, y):
            return 0
        return self.max_run(board, x, y, player)

    def check_threat(self, board: BoardStore, x: int, y: int, player: CellState) -> bool:
        """True if a stone at (x, y) would give ``player`` a run of win_length - 1 or more."""
        return self.threat_level(board, x, y, player) >= self.win_length - 1

    def all_threat_cells(self, board: BoardStore, player: CellState) -> List[Cell]:
        return [(x, y) for x, y in board.empty_cells() if self.check_threat(board, x, y, player)]

    def scan_for_winner(self, board: BoardStore) -> Tuple[Optional[CellState], List[Position]]:
        """Board-wide search for any completed line.

        Used after skills that move stones. If both players somehow hold a
        five, the first one found in row-major order is returned and the
        other is logged.
        """
        found: Optional[CellState] = None
        line: List[Position] = []
        for piece in board.all_pieces():
            if piece.player is found:
                continue
            candidate = self.winning_line(board, piece)
            if not candidate:
                continue
            if found is None:
                found, line = piece.player, candidate
            else:
                logger.warning("Both players hold a completed line; keeping %s", found.name)
                break
        return found, line
