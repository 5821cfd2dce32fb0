"""Tests for gomoku_ai/skills.py - scatter, remove and rewind."""

import random

import numpy as np
import pytest

from gomoku_ai.board_manager import BoardStore
from gomoku_ai.config import EngineConfig
from gomoku_ai.errors import (
    InsufficientHistoryError,
    InsufficientPiecesError,
    InsufficientSpaceError,
    InvalidTargetError,
    SkillAlreadyUsedError,
    UnknownSkillError,
)
from gomoku_ai.history import HistoryStore
from gomoku_ai.models import CellState, SkillType
from gomoku_ai.skills import SkillEngine, parse_skill
from gomoku_ai.state import SkillUsageRecord, TurnState

from conftest import A, B


class Harness:
    """Skill engine over fresh shared state, with a start snapshot recorded."""

    def __init__(self, seed=11, config=None):
        config = config or EngineConfig()
        self.board = BoardStore(config.board_size)
        self.history = HistoryStore(100, config.board_size)
        self.usage = SkillUsageRecord()
        self.turn = TurnState()
        self.skills = SkillEngine(
            self.board, self.history, self.usage, self.turn, random.Random(seed), config
        )
        self.history.record(self.board, self.turn.current_player, self.usage, 0, action="start")

    def move(self, x, y):
        self.board.place(x, y, self.turn.current_player)
        self.turn.move_count += 1
        self.turn.switch_turn()
        self.history.record(self.board, self.turn.current_player, self.usage, self.turn.move_count)

    def state(self):
        return self.board.to_array(), self.usage.to_dict(), len(self.history), self.turn.version


@pytest.fixture
def harness():
    h = Harness()
    for cell in [(7, 7), (7, 8), (8, 8), (6, 6), (9, 9), (5, 5), (3, 10), (10, 3)]:
        h.move(*cell)
    return h


class TestParseSkill:
    @pytest.mark.parametrize("name", ["scatter", "REMOVE", " rewind "])
    def test_known_names(self, name):
        assert parse_skill(name) in SkillType

    def test_unknown_name(self):
        with pytest.raises(UnknownSkillError):
            parse_skill("teleport")


class TestScatter:
    def test_preserves_per_player_counts(self, harness):
        before = {p: harness.board.piece_count(p) for p in (A, B)}
        outcome = harness.skills.use("scatter", A)
        assert {p: harness.board.piece_count(p) for p in (A, B)} == before
        assert len(outcome.relocations) == 5
        assert len(outcome.affected) == 10
        assert harness.usage.is_used(A, SkillType.SCATTER)

    def test_stones_land_on_previously_empty_cells(self, harness):
        occupied = {(m.x, m.y) for m in harness.board.all_pieces()}
        outcome = harness.skills.scatter(A)
        for piece, dest in outcome.relocations:
            assert (dest.x, dest.y) not in occupied
            assert harness.board.get(dest.x, dest.y) is piece.player

    def test_scatter_fewer_than_five(self):
        h = Harness()
        h.move(7, 7)
        h.move(0, 0)
        outcome = h.skills.scatter(B)
        assert len(outcome.relocations) == 2
        assert h.board.piece_count() == 2

    def test_empty_board_rejected(self):
        h = Harness()
        with pytest.raises(InsufficientPiecesError):
            h.skills.scatter(A)
        assert not h.usage.is_used(A, SkillType.SCATTER)

    def test_no_room_rejected(self):
        h = Harness(config=EngineConfig(board_size=5))
        grid = np.ones((5, 5), dtype=np.int8)
        grid[0, :2] = 0
        grid[1, 0] = 2
        h.board.load(grid)
        with pytest.raises(InsufficientSpaceError):
            h.skills.scatter(A)

    def test_records_snapshot(self, harness):
        length = len(harness.history)
        harness.skills.scatter(A)
        assert len(harness.history) == length + 1
        assert harness.history.tail.action == "skill:scatter"


class TestRemove:
    def test_removes_three(self, harness):
        total = harness.board.piece_count()
        outcome = harness.skills.use(SkillType.REMOVE, B)
        assert harness.board.piece_count() == total - 3
        assert len(outcome.affected) == 3
        for cell in outcome.affected:
            assert harness.board.get(cell.x, cell.y) is CellState.EMPTY

    def test_removes_all_when_fewer_than_three(self):
        h = Harness()
        h.move(7, 7)
        h.move(8, 8)
        h.skills.remove(A)
        assert h.board.is_empty()

    def test_explicit_targets(self, harness):
        outcome = harness.skills.remove(A, targets=[(7, 7), (7, 8)])
        assert [(p.x, p.y) for p in outcome.affected] == [(7, 7), (7, 8)]
        assert harness.board.get(7, 7) is CellState.EMPTY

    @pytest.mark.parametrize(
        "targets",
        [[], [(0, 0)], [(7, 7), (7, 7)], [(7, 7), (7, 8), (8, 8), (6, 6)]],
    )
    def test_invalid_targets_change_nothing(self, harness, targets):
        before = harness.state()
        with pytest.raises(InvalidTargetError):
            harness.skills.remove(A, targets=targets)
        assert np.array_equal(harness.state()[0], before[0])
        assert harness.state()[1:] == before[1:]


class TestRewind:
    def test_restores_two_back(self, harness):
        expected = harness.history.get(len(harness.history) - 3)
        outcome = harness.skills.rewind(A)
        assert outcome.restored == expected
        assert np.array_equal(harness.board.to_array(), expected.board)
        assert harness.turn.current_player is expected.current_player
        assert harness.turn.move_count == expected.move_count
        assert harness.usage.is_used(A, SkillType.REWIND)

    def test_rewind_keeps_later_usage(self, harness):
        harness.skills.remove(B)
        harness.skills.rewind(A, steps=3)
        assert harness.usage.is_used(B, SkillType.REMOVE)
        assert harness.usage.is_used(A, SkillType.REWIND)

    def test_insufficient_history(self):
        h = Harness()
        h.move(7, 7)
        before = h.state()
        with pytest.raises(InsufficientHistoryError):
            h.skills.rewind(B)
        assert np.array_equal(h.state()[0], before[0])
        assert h.state()[1:] == before[1:]
        assert not h.usage.is_used(B, SkillType.REWIND)


class TestOncePerGame:
    @pytest.mark.parametrize("skill", list(SkillType))
    def test_second_use_rejected_without_side_effects(self, harness, skill):
        harness.skills.use(skill, A)
        before = harness.state()
        with pytest.raises(SkillAlreadyUsedError) as exc_info:
            harness.skills.use(skill, A)
        assert exc_info.value.code == "SKILL_ALREADY_USED"
        after = harness.state()
        assert np.array_equal(after[0], before[0])
        assert after[1:] == before[1:]

    def test_other_player_unaffected(self, harness):
        harness.skills.remove(A)
        assert SkillType.REMOVE in harness.skills.available_skills(B)
        assert SkillType.REMOVE not in harness.skills.available_skills(A)
        assert harness.skills.can_use(B, SkillType.REMOVE)
