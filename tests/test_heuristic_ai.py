import json
import os
import random
import tempfile
import unittest
from unittest.mock import patch

import numpy as np

from gomoku_ai.ai.adjustments import PositionValueAdjuster, game_reward
from gomoku_ai.ai.factory import (
    CANONICAL_DIFFICULTY_PROFILES,
    EvaluatorFactory,
    get_difficulty_profile,
    load_position_values,
)
from gomoku_ai.ai.heuristic_ai import HeuristicEvaluator
from gomoku_ai.ai.weights import DifficultyProfile, ScoreTable
from gomoku_ai.board_manager import BoardStore
from gomoku_ai.config import EngineConfig
from gomoku_ai.errors import ConfigurationError
from gomoku_ai.models import Difficulty, Move

from conftest import A, B, make_board, stones_of


def _evaluator(player, difficulty="normal", seed=7, **kwargs):
    return HeuristicEvaluator(player, get_difficulty_profile(difficulty), rng=random.Random(seed), **kwargs)


class TestOpening(unittest.TestCase):
    def test_empty_board_takes_centre(self):
        decision = _evaluator(A).select_move(BoardStore(15))
        self.assertEqual((decision.x, decision.y), (7, 7))
        self.assertEqual(decision.source, "opening")

    def test_reply_next_to_centre(self):
        board = make_board({(7, 7): A})
        decision = _evaluator(B).select_move(board)
        self.assertEqual((decision.x, decision.y), (6, 7))
        self.assertEqual(decision.source, "opening")

    def test_opening_skipped_against_a_three(self):
        board = make_board(stones_of(A, [(2, 2), (2, 3), (2, 4)]))
        decision = _evaluator(B, difficulty="hard").select_move(board)
        self.assertNotEqual(decision.source, "opening")

    def test_shadow_opening_hugs_lone_stone(self):
        board = make_board({(7, 8): A})
        decision = _evaluator(B, shadow_opening=True).select_move(board)
        self.assertEqual((decision.x, decision.y), (8, 8))

    def test_full_board_has_no_move(self):
        grid = np.ones((15, 15), dtype=np.int8)
        self.assertIsNone(_evaluator(A).select_move(BoardStore.from_array(grid)))


class TestScoring(unittest.TestCase):
    def test_winning_cell_first(self):
        board = make_board({
            **stones_of(A, [(3, 3), (3, 4), (3, 5), (3, 6)]),
            **stones_of(B, [(9, 2), (9, 3), (9, 4), (9, 5), (3, 2), (10, 10)]),
        })
        best = _evaluator(A).score_cells(board)[0]
        self.assertEqual((best.x, best.y), (3, 7))
        self.assertTrue(best.wins)
        self.assertEqual(best.reasoning, "completes five in a row")

    def test_hard_blocks_closed_four(self):
        # Black four on row 7 closed by a white stone on the left; (7, 7) is the only block.
        board = make_board({**stones_of(A, [(7, 3), (7, 4), (7, 5), (7, 6)]), (7, 2): B})
        evaluator = _evaluator(B, difficulty="hard")
        scored = evaluator.score_cells(board)
        best = scored[0]
        self.assertEqual((best.x, best.y), (7, 7))
        self.assertEqual(best.reasoning, "blocks the opponent's five")
        self.assertGreater(best.score, scored[1].score)

    def test_hard_open_four_blocked_at_an_end(self):
        board = make_board({**stones_of(A, [(7, 4), (7, 5), (7, 6), (7, 7)]), (0, 0): B})
        best = _evaluator(B, difficulty="hard").score_cells(board)[0]
        self.assertIn((best.x, best.y), [(7, 3), (7, 8)])

    def test_hard_creates_four_three(self):
        board = make_board({
            **stones_of(A, [(7, 4), (7, 5), (7, 6), (5, 7), (6, 7)]),
            **stones_of(B, [(0, 0), (0, 14), (14, 0), (14, 14), (1, 7)]),
        })
        best = _evaluator(A, difficulty="hard").score_cells(board)[0]
        self.assertEqual((best.x, best.y), (7, 7))
        self.assertEqual(best.reasoning, "four-three combination")

    def test_scoring_does_not_mutate_board(self):
        board = make_board({(7, 7): A, (7, 8): B, (8, 8): A, (6, 6): B, (9, 9): A, (5, 5): B})
        before = board.to_array()
        _evaluator(B, difficulty="hard").score_cells(board)
        np.testing.assert_array_equal(board.to_array(), before)

    def test_ties_keep_row_major_order(self):
        board = make_board({(7, 7): A, (7, 8): B, (6, 7): A, (0, 0): B, (14, 14): A, (0, 14): B})
        scored = _evaluator(A).score_cells(board)
        for first, second in zip(scored, scored[1:]):
            if first.wins == second.wins and first.score == second.score:
                self.assertLess((first.x, first.y), (second.x, second.y))

    def test_easy_ignores_tactics(self):
        board = make_board(stones_of(A, [(7, 5), (7, 6), (5, 7), (6, 7), (0, 0), (14, 14)]))
        cells = _evaluator(A, difficulty="easy").score_cells(board)
        self.assertTrue(all(c.tactic == 0.0 and c.block_tactic == 0.0 for c in cells))

    def test_mistake_picks_from_top_candidates(self):
        profile = DifficultyProfile("sloppy", 1.0, 1.0, 1.0, False)
        board = make_board({(7, 7): A, (7, 8): B, (6, 7): A, (0, 0): B, (14, 14): A, (0, 14): B})
        evaluator = HeuristicEvaluator(B, profile, rng=random.Random(3), mistake_top_k=3)
        top = [(c.x, c.y) for c in evaluator.score_cells(board)[:3]]
        decision = evaluator.select_move(board)
        self.assertEqual(decision.source, "mistake")
        self.assertIn((decision.x, decision.y), top)


class TestProfiles(unittest.TestCase):
    def test_hard_table_values(self):
        table = ScoreTable.build(CANONICAL_DIFFICULTY_PROFILES[Difficulty.HARD])
        self.assertEqual(table.open_four, 50000.0)
        self.assertEqual(table.five, 300000.0)
        self.assertEqual(table.center, 25.0)

    def test_pattern_ordering_holds_for_every_profile(self):
        for profile in CANONICAL_DIFFICULTY_PROFILES.values():
            t = ScoreTable.build(profile)
            self.assertGreater(t.five, t.open_four)
            self.assertGreater(t.open_four, t.closed_four)
            self.assertGreater(t.closed_four, t.open_three)
            self.assertGreater(t.open_three, t.closed_three)
            self.assertGreater(t.closed_three, t.open_two)
            self.assertGreater(t.open_two, t.closed_two)

    def test_invalid_profile(self):
        with self.assertRaises(ConfigurationError):
            DifficultyProfile("bad", 1.0, 1.0, 1.5, False)

    def test_unknown_difficulty(self):
        with self.assertRaises(ConfigurationError):
            get_difficulty_profile("impossible")


class TestFactory(unittest.TestCase):
    def test_variants(self):
        self.assertEqual(EvaluatorFactory.variants(), ["adaptive", "standard"])

    def test_create_standard(self):
        evaluator = EvaluatorFactory.create(B, difficulty="hard", seed=1)
        self.assertIsInstance(evaluator, HeuristicEvaluator)
        self.assertEqual(evaluator.profile.name, "hard")
        self.assertEqual(evaluator.mistake_top_k, 5)
        self.assertFalse(evaluator.adjusters)

    def test_create_adaptive(self):
        config = EngineConfig(evaluator_variant="adaptive")
        evaluator = EvaluatorFactory.create(A, config=config)
        self.assertEqual(evaluator.mistake_top_k, 3)
        self.assertTrue(evaluator.shadow_opening)
        self.assertIsInstance(evaluator.adjusters[0], PositionValueAdjuster)

    def test_unknown_variant(self):
        with self.assertRaises(ConfigurationError):
            EvaluatorFactory.create(A, variant="neural")

    def test_weight_overrides_from_env(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "weights.json")
            with open(path, "w", encoding="utf-8") as handle:
                json.dump({"WEIGHT_SINGLE": 42}, handle)
            with patch.dict(os.environ, {"GOMOKU_WEIGHTS_FILE": path}):
                evaluator = EvaluatorFactory.create(A, difficulty="normal")
        self.assertEqual(evaluator.table.single, 42.0)


class TestPositionValues(unittest.TestCase):
    def test_adjuster_shifts_scores(self):
        values = np.zeros((15, 15))
        values[0, 0] = 1000.0
        adjuster = PositionValueAdjuster(values, scale=10.0)
        board = make_board({(7, 7): A, (7, 8): B, (6, 7): A, (8, 8): B, (6, 6): A, (9, 9): B})
        evaluator = _evaluator(A, adjusters=[adjuster])
        best = evaluator.score_cells(board)[0]
        self.assertEqual((best.x, best.y), (0, 0))
        self.assertEqual(best.adjustment, 10000.0)

    def test_reinforce_and_round_trip(self):
        adjuster = PositionValueAdjuster.zeros(15, learning_rate=0.5)
        adjuster.reinforce([Move(x=3, y=3, player=A)], reward=1.0)
        self.assertEqual(adjuster.values[3, 3], 0.5)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "values.json")
            adjuster.to_json(path)
            loaded = PositionValueAdjuster.from_json(path)
        self.assertEqual(loaded.values[3, 3], 0.5)

    def test_game_reward(self):
        self.assertEqual(game_reward(A, None, 20, 225), 0.0)
        self.assertEqual(game_reward(B, A, 25, 225), -1.0)
        self.assertAlmostEqual(game_reward(A, A, 25, 225), 1.0 + 0.5 * 200 / 225)

    def test_learn_from_game(self):
        adjuster = PositionValueAdjuster.zeros(15, learning_rate=0.5)
        moves = [Move(x=7, y=7, player=A), Move(x=7, y=8, player=B), Move(x=6, y=6, player=A)]
        adjuster.learn_from_game(moves, A)
        self.assertAlmostEqual(adjuster.values[7, 7], 0.5 * (1.0 + 0.5 * 222 / 225))
        self.assertAlmostEqual(adjuster.values[6, 6], adjuster.values[7, 7])
        self.assertAlmostEqual(adjuster.values[7, 8], -0.5)
        self.assertEqual(adjuster.values[0, 0], 0.0)

    def test_draw_pulls_toward_zero(self):
        values = np.zeros((15, 15))
        values[7, 7] = 1.0
        adjuster = PositionValueAdjuster(values, learning_rate=0.5)
        adjuster.learn_from_game([Move(x=7, y=7, player=A)], None)
        self.assertAlmostEqual(adjuster.values[7, 7], 0.5)

    def test_factory_shares_table(self):
        config = EngineConfig(evaluator_variant="adaptive")
        values = PositionValueAdjuster.zeros(15)
        black = EvaluatorFactory.create(A, config=config, position_values=values)
        white = EvaluatorFactory.create(B, config=config, position_values=values)
        self.assertIs(black.adjusters[0], values)
        self.assertIs(white.adjusters[0], values)

    def test_missing_table_file_starts_at_zero(self):
        with tempfile.TemporaryDirectory() as tmp:
            config = EngineConfig(position_values_path=os.path.join(tmp, "values.json"))
            adjuster = load_position_values(config)
        self.assertFalse(adjuster.values.any())

    def test_wrong_shape_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "values.json")
            with open(path, "w", encoding="utf-8") as handle:
                json.dump({"positionValues": [[0.0] * 9] * 9}, handle)
            with self.assertRaises(ConfigurationError):
                PositionValueAdjuster.from_json(path)


if __name__ == "__main__":
    unittest.main()
