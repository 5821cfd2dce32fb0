"""Board storage for the Gomoku engine.

``BoardStore`` is a pure state container over an ``N x N`` numpy grid. It
knows nothing about turns, wins or skills; those live in the win detector,
the skill engine and the game engine. Every mutating primitive validates
its coordinates first, so a rejected call never leaves the grid half
updated.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from .errors import InvalidCoordinateError, InvalidStateError, OccupiedCellError, OutOfBoundsError
from .models import CellState, Move

__all__ = ["BoardStore", "DIRECTIONS", "Cell"]

Cell = Tuple[int, int]

# Horizontal, vertical, diagonal, anti-diagonal.
DIRECTIONS: Tuple[Tuple[int, int], ...] = ((0, 1), (1, 0), (1, 1), (1, -1))

_SYMBOLS = {CellState.EMPTY: ".", CellState.PLAYER_A: "X", CellState.PLAYER_B: "O"}


def _is_int(value: object) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


class BoardStore:
    """Owns the grid and its placement/removal/query primitives."""

    def __init__(self, size: int = 15, cells: Optional[np.ndarray] = None):
        if cells is None:
            self._cells = np.zeros((size, size), dtype=np.int8)
        else:
            self._cells = self._validated_grid(cells, size)
        self.size = size

    @staticmethod
    def _validated_grid(cells: np.ndarray, size: int) -> np.ndarray:
        grid = np.array(cells, dtype=np.int8, copy=True)
        if grid.shape != (size, size):
            raise InvalidStateError(
                f"board has shape {grid.shape}, expected {(size, size)}",
                invariant="board_dimensions",
            )
        if grid.size and (grid.min() < CellState.EMPTY or grid.max() > CellState.PLAYER_B):
            raise InvalidStateError("board holds an unknown cell value", invariant="cell_values")
        return grid

    @classmethod
    def from_array(cls, cells, size: Optional[int] = None) -> "BoardStore":
        """Build a board from any 2D array-like of cell values (copied)."""
        grid = np.asarray(cells)
        if grid.ndim != 2:
            raise InvalidStateError("board must be two-dimensional", invariant="board_dimensions")
        return cls(size=size if size is not None else grid.shape[0], cells=grid)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size and 0 <= y < self.size

    def validate_coordinate(self, x: object, y: object) -> None:
        """Raise unless (x, y) are integers addressing a cell on this board."""
        if not (_is_int(x) and _is_int(y)):
            raise InvalidCoordinateError(f"coordinates must be integers, got ({x!r}, {y!r})", x=x, y=y)
        if not self.in_bounds(int(x), int(y)):
            raise OutOfBoundsError(f"({x}, {y}) is outside the {self.size}x{self.size} board", x=x, y=y)

    def get(self, x: int, y: int) -> CellState:
        self.validate_coordinate(x, y)
        return CellState(int(self._cells[x, y]))

    def is_empty_cell(self, x: int, y: int) -> bool:
        return self.in_bounds(x, y) and self._cells[x, y] == CellState.EMPTY

    def empty_cells(self) -> List[Cell]:
        """Empty cells in row-major order (ascending x, then y)."""
        return [(int(x), int(y)) for x, y in np.argwhere(self._cells == CellState.EMPTY)]

    def all_pieces(self, player: Optional[CellState] = None) -> List[Move]:
        """Occupied cells in row-major order, optionally for one player."""
        if player is None:
            mask = self._cells != CellState.EMPTY
        else:
            mask = self._cells == int(player)
        return [
            Move(x=int(x), y=int(y), player=CellState(int(self._cells[x, y])))
            for x, y in np.argwhere(mask)
        ]

    def piece_count(self, player: Optional[CellState] = None) -> int:
        if player is None:
            return int(np.count_nonzero(self._cells))
        return int(np.count_nonzero(self._cells == int(player)))

    def is_full(self) -> bool:
        return not bool((self._cells == CellState.EMPTY).any())

    def is_empty(self) -> bool:
        return not bool(self._cells.any())

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def place(self, x: int, y: int, player: CellState) -> bool:
        """Put a stone on an empty in-bounds cell.

        Raises:
            InvalidCoordinateError / OutOfBoundsError: bad coordinate
            OccupiedCellError: the cell already holds a stone
        """
        player = CellState(player)
        if player is CellState.EMPTY:
            raise ValueError("cannot place an EMPTY stone; use remove()")
        self.validate_coordinate(x, y)
        occupant = self._cells[x, y]
        if occupant != CellState.EMPTY:
            raise OccupiedCellError(f"({x}, {y}) is already occupied", x=int(x), y=int(y), occupant=occupant)
        self._cells[x, y] = int(player)
        return True

    def remove(self, x: int, y: int) -> CellState:
        """Clear a cell and return what was there (EMPTY if nothing)."""
        self.validate_coordinate(x, y)
        previous = CellState(int(self._cells[x, y]))
        self._cells[x, y] = CellState.EMPTY
        return previous

    def clear(self) -> None:
        self._cells.fill(CellState.EMPTY)

    def load(self, cells: np.ndarray) -> None:
        """Replace the whole grid with a validated copy of ``cells``."""
        self._cells = self._validated_grid(cells, self.size)

    # ------------------------------------------------------------------
    # Copies and views
    # ------------------------------------------------------------------

    def clone(self) -> "BoardStore":
        return BoardStore(self.size, cells=self._cells)

    def to_array(self) -> np.ndarray:
        """Read-only copy of the grid."""
        snapshot = self._cells.copy()
        snapshot.setflags(write=False)
        return snapshot

    @property
    def cells(self) -> np.ndarray:
        """Read-only view of the live grid (no copy)."""
        view = self._cells.view()
        view.setflags(write=False)
        return view

    def to_list(self) -> List[List[int]]:
        return self._cells.tolist()

    def render(self) -> str:
        """Text rendering with row/column indices."""
        header = "   " + " ".join(f"{y:>2}" for y in range(self.size))
        lines = [header]
        for x in range(self.size):
            row = " ".join(f"{_SYMBOLS[CellState(int(v))]:>2}" for v in self._cells[x])
            lines.append(f"{x:>2} {row}")
        return "\n".join(lines)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoardStore):
            return NotImplemented
        return self.size == other.size and bool(np.array_equal(self._cells, other._cells))

    def __repr__(self) -> str:
        return f"BoardStore(size={self.size}, pieces={self.piece_count()})"
