"""
Heuristic move evaluator for Gomoku.

Single-ply scoring of every empty cell: line patterns for the evaluator's
own stone, the same patterns for the opponent (defence), a centre bonus
and, when the difficulty enables advanced tactics, compound-threat bonuses
for creating or denying a four-three / double-three. Optional adjusters add
further terms (the adaptive variant's learned position values).

Scoring never writes to the board; the candidate cell is treated as
occupied by the pattern analyzer.
"""

from __future__ import annotations

import logging
import random
from typing import List, Mapping, Optional, Sequence, Tuple

from ..board_manager import BoardStore
from ..models import CellState
from .adjustments import DynamicWeights, ScoreAdjuster
from .base import BaseEvaluator, MoveDecision, ScoredCell
from .patterns import LineAnalysis, PatternAnalyzer, ThreatLevel
from .tactics import NO_TACTIC, TacticDetector, TacticResult, TacticType
from .weights import DifficultyProfile

logger = logging.getLogger(__name__)

# Centre first, then orthogonal and diagonal neighbours.
OPENING_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (0, 0),
    (-1, 0), (1, 0), (0, -1), (0, 1),
    (-1, -1), (1, 1), (-1, 1), (1, -1),
)

# Replies hugging a lone opponent stone near the centre.
SHADOW_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (1, 0), (-1, 0), (0, 1), (0, -1), (1, 1), (-1, -1),
)

_OWN_REASONS = {
    ThreatLevel.OPEN_FOUR: "creates an open four",
    ThreatLevel.CLOSED_FOUR: "creates a four threat",
    ThreatLevel.OPEN_THREE: "builds an open three",
    ThreatLevel.CLOSED_THREE: "builds a three",
    ThreatLevel.OPEN_TWO: "builds an open two",
    ThreatLevel.CLOSED_TWO: "builds a two",
}

_BLOCK_REASONS = {
    ThreatLevel.OPEN_FOUR: "blocks an open four",
    ThreatLevel.CLOSED_FOUR: "blocks a four threat",
    ThreatLevel.OPEN_THREE: "blocks an open three",
    ThreatLevel.CLOSED_THREE: "blocks a three",
    ThreatLevel.OPEN_TWO: "blocks an open two",
    ThreatLevel.CLOSED_TWO: "blocks a two",
}


class HeuristicEvaluator(BaseEvaluator):
    """Pattern-weight evaluator; variants differ only in configuration.

    Args:
        player: Player to choose moves for
        profile: Difficulty tuning
        rng: Seedable random source
        mistake_top_k: Candidate pool size for intentional mistakes
        opening_piece_limit: Max stones on the board for the opening shortcut
        dynamic_weights: Scales for the line, tactic and position terms
        adjusters: Extra additive scoring stages
        shadow_opening: Answer a lone central opponent stone by hugging it
        win_length: Stones in a row needed to win
        base_weights: Overrides of the base pattern weights
    """

    def __init__(
        self,
        player: CellState,
        profile: DifficultyProfile,
        rng: Optional[random.Random] = None,
        mistake_top_k: int = 5,
        opening_piece_limit: int = 5,
        dynamic_weights: Optional[DynamicWeights] = None,
        adjusters: Sequence[ScoreAdjuster] = (),
        shadow_opening: bool = False,
        win_length: int = 5,
        base_weights: Optional[Mapping[str, float]] = None,
    ):
        super().__init__(player, profile, rng=rng, mistake_top_k=mistake_top_k, base_weights=base_weights)
        self.opening_piece_limit = opening_piece_limit
        self.dynamic_weights = dynamic_weights or DynamicWeights()
        self.adjusters = list(adjusters)
        self.shadow_opening = shadow_opening
        self.analyzer = PatternAnalyzer(win_length)
        self.tactics = TacticDetector(self.analyzer)

    # ------------------------------------------------------------------
    # Scoring terms
    # ------------------------------------------------------------------

    def line_score(self, line: LineAnalysis) -> float:
        table = self.table
        if line.can_win:
            return table.five
        if line.run_length == 1:
            return table.single
        level = line.threat_level
        if level is ThreatLevel.OPEN_FOUR:
            return table.open_four
        if level is ThreatLevel.CLOSED_FOUR:
            return table.closed_four
        if level is ThreatLevel.OPEN_THREE:
            return table.open_three
        if level is ThreatLevel.CLOSED_THREE:
            return table.closed_three
        if level is ThreatLevel.OPEN_TWO:
            return table.open_two
        if level is ThreatLevel.CLOSED_TWO:
            return table.closed_two
        return 0.0

    def attack_score(self, lines: Sequence[LineAnalysis]) -> float:
        return sum(self.line_score(line) for line in lines)

    def positional_bonus(self, x: int, y: int, size: int) -> float:
        """Centre bonus falling off linearly with Manhattan distance."""
        center = size // 2
        distance = abs(x - center) + abs(y - center)
        return self.table.center * max(0, center + 1 - distance)

    def score_cell(self, board: BoardStore, x: int, y: int) -> ScoredCell:
        weights = self.dynamic_weights
        own_lines = self.analyzer.analyze(board, x, y, self.player)
        opp_lines = self.analyzer.analyze(board, x, y, self.opponent)

        attack = self.attack_score(own_lines) * weights.pattern_recognition
        defense = self.profile.defense_multiplier * self.attack_score(opp_lines) * weights.pattern_recognition
        positional = self.positional_bonus(x, y, board.size) * weights.position_value

        own_tactic: TacticResult = NO_TACTIC
        opp_tactic: TacticResult = NO_TACTIC
        tactic = block = 0.0
        if self.profile.advanced_tactics_enabled:
            own_tactic = self.tactics.classify(own_lines)
            opp_tactic = self.tactics.classify(opp_lines)
            tactic = self.tactics.score(own_tactic, self.table) * weights.threat_assessment
            block = self.tactics.score(opp_tactic, self.table, blocking=True) * weights.threat_assessment

        cell = ScoredCell(
            x=x,
            y=y,
            score=0.0,
            attack=attack,
            defense=defense,
            positional=positional,
            tactic=tactic,
            block_tactic=block,
        )
        for adjuster in self.adjusters:
            cell.adjustment += adjuster.adjust(board, cell)
        cell.score = attack + defense + positional + tactic + block + cell.adjustment
        cell.wins = any(line.can_win for line in own_lines)
        cell.reasoning = self.explain(own_lines, opp_lines, own_tactic, opp_tactic)
        return cell

    def score_cells(self, board: BoardStore) -> List[ScoredCell]:
        """Score all empty cells; immediate wins first, then by score.

        ``sorted`` is stable and candidates are generated row-major, so equal
        scores keep ascending (x, y) order.
        """
        scored = [self.score_cell(board, x, y) for x, y in board.empty_cells()]
        return sorted(scored, key=lambda c: (not c.wins, -c.score))

    @staticmethod
    def explain(
        own_lines: Sequence[LineAnalysis],
        opp_lines: Sequence[LineAnalysis],
        own_tactic: TacticResult,
        opp_tactic: TacticResult,
    ) -> str:
        if any(line.can_win for line in own_lines):
            return "completes five in a row"
        if any(line.can_win for line in opp_lines):
            return "blocks the opponent's five"
        for tactic, label in (
            (TacticType.FOUR_THREE, "four-three"),
            (TacticType.DOUBLE_THREE, "double-three"),
        ):
            if own_tactic.tactic is tactic:
                return f"{label} combination"
            if opp_tactic.tactic is tactic:
                return f"blocks the opponent's {label}"
        own_best = max(line.threat_level for line in own_lines)
        opp_best = max(line.threat_level for line in opp_lines)
        if own_best >= opp_best and own_best in _OWN_REASONS:
            return _OWN_REASONS[own_best]
        if opp_best in _BLOCK_REASONS:
            return _BLOCK_REASONS[opp_best]
        return "strategic position"

    # ------------------------------------------------------------------
    # Move selection
    # ------------------------------------------------------------------

    def opening_move(self, board: BoardStore) -> Optional[MoveDecision]:
        """Fixed reply on an empty or near-empty board.

        Skipped once the opponent already has a run of three, and when every
        book cell is taken, so full evaluation takes over.
        """
        pieces = board.piece_count()
        if pieces > self.opening_piece_limit:
            return None
        if pieces and self.analyzer.existing_runs(board, self.opponent, min_length=3):
            return None

        center = board.size // 2
        if self.shadow_opening and pieces == 1:
            stone = board.all_pieces()[0]
            if stone.player is self.opponent and abs(stone.x - center) + abs(stone.y - center) <= 2:
                for dx, dy in SHADOW_OFFSETS:
                    x, y = stone.x + dx, stone.y + dy
                    if board.is_empty_cell(x, y):
                        return MoveDecision(x, y, self.table.center, "hugs the opponent's opening stone", "opening")

        for dx, dy in OPENING_OFFSETS:
            x, y = center + dx, center + dy
            if board.is_empty_cell(x, y):
                reasoning = "takes the centre" if (dx, dy) == (0, 0) else "opens next to the centre"
                return MoveDecision(x, y, self.table.center, reasoning, "opening")
        return None

    def select_move(self, board: BoardStore) -> Optional[MoveDecision]:
        if board.is_full():
            return None
        opening = self.opening_move(board)
        if opening is not None:
            return opening

        scored = self.score_cells(board)
        if self.should_make_mistake():
            pool = scored[: min(self.mistake_top_k, len(scored))]
            pick = self.get_random_element(pool)
            logger.debug("Mistake roll hit; picked (%d, %d) from top %d", pick.x, pick.y, len(pool))
            return MoveDecision(pick.x, pick.y, pick.score, f"{pick.reasoning} (random pick)", "mistake", scored[:5])

        best = scored[0]
        return MoveDecision(best.x, best.y, best.score, best.reasoning, "evaluator", scored[:5])
