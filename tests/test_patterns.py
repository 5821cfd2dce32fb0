"""Tests for line pattern analysis and compound tactic detection."""

import numpy as np
import pytest

from gomoku_ai.ai.factory import get_difficulty_profile
from gomoku_ai.ai.patterns import LineAnalysis, PatternAnalyzer, ThreatLevel
from gomoku_ai.ai.tactics import NO_TACTIC, TacticDetector, TacticType
from gomoku_ai.ai.weights import ScoreTable

from conftest import A, B, make_board, stones_of


@pytest.fixture
def analyzer():
    return PatternAnalyzer(5)


class TestLineAnalysis:
    @pytest.mark.parametrize(
        "run,left,right,expected",
        [
            (4, True, True, ThreatLevel.OPEN_FOUR),
            (4, True, False, ThreatLevel.CLOSED_FOUR),
            (3, True, True, ThreatLevel.OPEN_THREE),
            (3, False, True, ThreatLevel.CLOSED_THREE),
            (2, True, True, ThreatLevel.OPEN_TWO),
            (2, False, True, ThreatLevel.CLOSED_TWO),
            (4, False, False, ThreatLevel.NONE),
            (1, True, True, ThreatLevel.NONE),
        ],
    )
    def test_threat_levels(self, run, left, right, expected):
        line = LineAnalysis(run_length=run, left_open=left, right_open=right, can_win=False)
        assert line.threat_level is expected

    def test_five_regardless_of_ends(self):
        line = LineAnalysis(run_length=5, left_open=False, right_open=False, can_win=True)
        assert line.threat_level is ThreatLevel.FIVE


class TestPatternAnalyzer:
    def test_open_three_through_candidate(self, analyzer):
        board = make_board(stones_of(A, [(7, 5), (7, 6)]))
        horizontal = analyzer.analyze_line(board, 7, 7, 0, 1, A)
        assert horizontal.run_length == 3
        assert horizontal.open_end_count == 2
        assert horizontal.is_open_three

    def test_blocked_end(self, analyzer):
        board = make_board({(7, 4): B, (7, 5): A, (7, 6): A})
        line = analyzer.analyze_line(board, 7, 7, 0, 1, A)
        assert line.threat_level is ThreatLevel.CLOSED_THREE

    def test_edge_counts_as_closed(self, analyzer):
        board = make_board(stones_of(A, [(0, 1), (0, 2), (0, 3)]))
        line = analyzer.analyze_line(board, 0, 0, 0, 1, A)
        assert line.run_length == 4
        assert not line.left_open
        assert line.right_open

    def test_analysis_never_writes(self, analyzer):
        board = make_board(stones_of(A, [(7, 5), (7, 6)]))
        before = board.to_array()
        analyzer.analyze(board, 7, 7, A)
        assert np.array_equal(board.to_array(), before)

    def test_can_win(self, analyzer):
        board = make_board(stones_of(B, [(1, 1), (2, 2), (4, 4), (5, 5)]))
        assert analyzer.best_threat(board, 3, 3, B) is ThreatLevel.FIVE

    def test_existing_runs(self, analyzer):
        board = make_board({(7, 3): B, **stones_of(A, [(7, 4), (7, 5), (7, 6)]), (0, 0): A})
        runs = analyzer.existing_runs(board, A)
        assert len(runs) == 1
        run = runs[0]
        assert run.length == 3
        assert run.open_ends == 1
        assert run.start == (7, 4)
        assert run.direction == (0, 1)

    def test_existing_runs_min_length(self, analyzer):
        board = make_board(stones_of(A, [(3, 3)]))
        assert analyzer.existing_runs(board, A) == []
        assert len(analyzer.existing_runs(board, A, min_length=1)) == 4


class TestTactics:
    def test_double_three(self):
        board = make_board(stones_of(A, [(7, 5), (7, 6), (5, 7), (6, 7)]))
        result = TacticDetector().detect(board, 7, 7, A)
        assert result.tactic is TacticType.DOUBLE_THREE
        assert result.is_compound
        assert result.open_threes == 2

    def test_four_three(self):
        board = make_board(stones_of(A, [(7, 4), (7, 5), (7, 6), (5, 7), (6, 7)]))
        result = TacticDetector().detect(board, 7, 7, A)
        assert result.tactic is TacticType.FOUR_THREE
        assert result.rank > TacticDetector().detect(board, 7, 3, A).rank

    def test_find_compound_cell(self):
        board = make_board(stones_of(A, [(7, 5), (7, 6), (5, 7), (6, 7)]))
        found = TacticDetector().find_compound_cell(board, A)
        assert found is not None
        cell, result = found
        assert cell == (7, 7)
        assert result.tactic is TacticType.DOUBLE_THREE
        assert TacticDetector().find_compound_cell(board, B) is None

    def test_four_three_preferred_over_double_three(self):
        board = make_board(stones_of(A, [(7, 4), (7, 5), (7, 6), (5, 7), (6, 7)]))
        cell, result = TacticDetector().find_compound_cell(board, A)
        assert cell == (7, 7)
        assert result.tactic is TacticType.FOUR_THREE

    def test_scores(self):
        table = ScoreTable.build(get_difficulty_profile("hard"))
        four_three = TacticDetector.classify(
            [
                LineAnalysis(4, True, True, False),
                LineAnalysis(3, True, True, False),
                LineAnalysis(1, True, True, False),
                LineAnalysis(1, True, True, False),
            ]
        )
        assert TacticDetector.score(four_three, table) == table.four_three
        assert TacticDetector.score(four_three, table, blocking=True) == table.block_four_three
        assert TacticDetector.score(NO_TACTIC, table) == 0.0
