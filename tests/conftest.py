"""
Shared pytest fixtures for gomoku_ai tests.

Board fixtures are function-scoped so every test starts from a clean grid.
"""

import random
from typing import Dict, Iterable, Mapping, Tuple

import pytest


# =============================================================================
# PROMETHEUS REGISTRY FIX
# =============================================================================
# gomoku_ai.metrics registers its collectors at import time. If a test run
# imports the module through more than one path the default registry raises
# "Duplicated timeseries"; make identical re-registration a no-op instead.


def _patch_prometheus_registry():
    """Patch Prometheus registry to handle duplicate metric registration gracefully."""
    from prometheus_client.registry import CollectorRegistry

    _original_register = CollectorRegistry.register

    def _safe_register(self, collector):
        """Register collector, ignoring duplicates."""
        try:
            return _original_register(self, collector)
        except ValueError as e:
            if "Duplicated timeseries" not in str(e):
                raise

    # Only patch once
    if not getattr(CollectorRegistry, "_patched_for_tests", False):
        CollectorRegistry.register = _safe_register
        CollectorRegistry._patched_for_tests = True


_patch_prometheus_registry()

from gomoku_ai.board_manager import BoardStore  # noqa: E402
from gomoku_ai.config import EngineConfig  # noqa: E402
from gomoku_ai.game_engine import GameEngine  # noqa: E402
from gomoku_ai.models import CellState  # noqa: E402

A = CellState.PLAYER_A
B = CellState.PLAYER_B


# =============================================================================
# Helpers
# =============================================================================


def make_board(stones: Mapping[Tuple[int, int], CellState], size: int = 15) -> BoardStore:
    """Board holding exactly ``stones``."""
    board = BoardStore(size)
    for (x, y), player in stones.items():
        board.place(x, y, player)
    return board


def stones_of(player: CellState, cells: Iterable[Tuple[int, int]]) -> Dict[Tuple[int, int], CellState]:
    return {cell: player for cell in cells}


def play(engine: GameEngine, cells: Iterable[Tuple[int, int]]) -> None:
    """Play ``cells`` in order for whichever side is to move; every move must succeed."""
    for x, y in cells:
        result = engine.apply_move(x, y, engine.current_player)
        assert result.ok, f"setup move ({x}, {y}) rejected: {result.reason}"


def interleave(black: Iterable[Tuple[int, int]], white: Iterable[Tuple[int, int]]):
    """Alternate black and white cells, black first; black may hold one extra."""
    black, white = list(black), list(white)
    order = []
    for i, cell in enumerate(black):
        order.append(cell)
        if i < len(white):
            order.append(white[i])
    return order


# Seventeen placements leaving black with an open four on row 7
# ((7,4)..(7,7), ends (7,3) and (7,8) empty) and white to move.
OPEN_FOUR_BLACK = [(7, 4), (7, 5), (7, 6), (7, 7), (0, 0), (0, 4), (0, 8), (0, 12), (14, 0)]
SCATTERED_WHITE = [(14, 4), (14, 8), (14, 12), (3, 0), (3, 14), (11, 0), (11, 14), (4, 10)]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(seed=1234)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def engine(config, rng):
    game = GameEngine(config, rng=rng, game_id="test-game")
    yield game
    game.close()


@pytest.fixture
def board() -> BoardStore:
    return BoardStore(15)


@pytest.fixture
def open_four_engine(engine):
    """White to move at move 17 facing black's open four."""
    play(engine, interleave(OPEN_FOUR_BLACK, SCATTERED_WHITE))
    return engine
