"""Rule-based skill-use policy.

Decides whether the acting player should spend a skill this turn and which
one. The decision is three-valued: USE and DECLINE are final, INCONCLUSIVE
means the rules found some value but not enough to act alone, and the
decision pipeline may consult the external advisor.

Order of checks:

1. No skill before the early-game threshold.
2. Urgency: an opponent open four, or two or more opponent open threes,
   forces the highest-priority available skill (remove, rewind, scatter).
3. Otherwise a phase-dependent probability gates a value-based pick.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from ..board_manager import BoardStore
from ..config import EngineConfig
from ..models import CellState, SkillType
from .patterns import PatternAnalyzer, RunInfo

logger = logging.getLogger(__name__)

__all__ = [
    "GamePhase",
    "RunStats",
    "Situation",
    "SkillDecision",
    "SkillPolicy",
    "SkillVerdict",
    "URGENT_PRIORITY",
]

URGENT_PRIORITY: Tuple[SkillType, ...] = (SkillType.REMOVE, SkillType.REWIND, SkillType.SCATTER)

# Board-fullness thresholds for value estimation.
CROWDED_PIECES = 15
SETTLED_PIECES = 20
STALEMATE_PIECES = 100
LATE_GAME_MOVES = 40


class GamePhase(str, Enum):
    OPENING = "opening"
    MIDDLE = "middle"
    ENDGAME = "endgame"


# Probability that the value-based pick is attempted at all.
PHASE_PROBABILITY: Dict[GamePhase, float] = {
    GamePhase.OPENING: 0.0,
    GamePhase.MIDDLE: 0.15,
    GamePhase.ENDGAME: 0.4,
}
LATE_GAME_PROBABILITY = 0.6


class SkillVerdict(str, Enum):
    USE = "use"
    DECLINE = "decline"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class RunStats:
    """Counts of one player's maximal runs on the board."""

    max_run: int = 0
    twos: int = 0
    threes: int = 0
    fours: int = 0
    open_threes: int = 0
    open_fours: int = 0

    @classmethod
    def from_runs(cls, runs: Sequence[RunInfo]) -> "RunStats":
        return cls(
            max_run=max((r.length for r in runs), default=0),
            twos=sum(1 for r in runs if r.length == 2),
            threes=sum(1 for r in runs if r.length == 3),
            fours=sum(1 for r in runs if r.length == 4),
            open_threes=sum(1 for r in runs if r.length == 3 and r.open_ends == 2),
            open_fours=sum(1 for r in runs if r.length == 4 and r.open_ends == 2),
        )


@dataclass(frozen=True)
class Situation:
    """Snapshot of threats and phase from the acting player's side."""

    phase: GamePhase
    move_count: int
    piece_count: int
    own: RunStats
    opponent: RunStats
    advantage: str
    opponent_win_threat: bool
    opponent_multiple_threats: bool
    own_win_threat: bool
    stalemate: bool

    @property
    def urgent(self) -> bool:
        return self.opponent.open_fours >= 1 or self.opponent.open_threes >= 2


@dataclass(frozen=True)
class SkillDecision:
    verdict: SkillVerdict
    skill: Optional[SkillType] = None
    reasoning: str = ""
    value: float = 0.0
    source: str = "rule"
    values: Dict[SkillType, float] = field(default_factory=dict)

    @property
    def use_skill(self) -> bool:
        return self.verdict is SkillVerdict.USE and self.skill is not None


class SkillPolicy:
    """Rule-based skill decisions for one engine configuration."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        analyzer: Optional[PatternAnalyzer] = None,
    ):
        self.config = config or EngineConfig()
        self.rng = rng if rng is not None else random.Random()
        self.analyzer = analyzer or PatternAnalyzer(self.config.win_length)

    def phase_for(self, move_count: int) -> GamePhase:
        if move_count < self.config.early_game_threshold:
            return GamePhase.OPENING
        if move_count < 30:
            return GamePhase.MIDDLE
        return GamePhase.ENDGAME

    def phase_probability(self, situation: Situation) -> float:
        if situation.move_count > LATE_GAME_MOVES:
            return LATE_GAME_PROBABILITY
        return PHASE_PROBABILITY[situation.phase]

    def run_stats(self, board: BoardStore, player: CellState) -> RunStats:
        return RunStats.from_runs(self.analyzer.existing_runs(board, player, min_length=2))

    def analyze(self, board: BoardStore, player: CellState, move_count: int) -> Situation:
        own = self.run_stats(board, player)
        opponent = self.run_stats(board, CellState(player).opponent)
        if opponent.max_run >= 3 or opponent.twos >= 2:
            advantage = "disadvantage"
        elif own.max_run >= 3 or own.twos >= 2:
            advantage = "advantage"
        else:
            advantage = "neutral"
        pieces = board.piece_count()
        significant = (
            own.max_run >= 3 or opponent.max_run >= 3 or own.twos >= 2 or opponent.twos >= 2
        )
        return Situation(
            phase=self.phase_for(move_count),
            move_count=move_count,
            piece_count=pieces,
            own=own,
            opponent=opponent,
            advantage=advantage,
            opponent_win_threat=opponent.max_run >= 4,
            opponent_multiple_threats=opponent.threes >= 1 or opponent.twos >= 3,
            own_win_threat=own.max_run >= 4,
            stalemate=pieces > STALEMATE_PIECES and not significant,
        )

    @staticmethod
    def estimate_values(
        situation: Situation,
        available: Sequence[SkillType],
    ) -> Dict[SkillType, Tuple[float, str]]:
        """Heuristic value in [0, 1] of each available skill, with a reason."""
        own, opp, pieces = situation.own, situation.opponent, situation.piece_count
        values: Dict[SkillType, Tuple[float, str]] = {}
        for skill in available:
            if skill is SkillType.REMOVE:
                if opp.max_run >= 3:
                    values[skill] = (0.9, "opponent has a run of three or more to break")
                elif opp.twos >= 2:
                    values[skill] = (0.6, "opponent has several twos to disrupt")
                elif pieces > CROWDED_PIECES:
                    values[skill] = (0.4, "crowded board worth thinning")
                else:
                    values[skill] = (0.2, "little to gain from removal")
            elif skill is SkillType.SCATTER:
                if opp.max_run >= 3 and own.max_run >= 3:
                    values[skill] = (0.8, "both sides threaten; reshuffling favours the defender")
                elif pieces > SETTLED_PIECES and opp.max_run <= 2 and own.max_run <= 2:
                    values[skill] = (0.7, "settled position worth shaking up")
                elif opp.max_run > own.max_run:
                    values[skill] = (0.5, "opponent stands better; disorder helps")
                else:
                    values[skill] = (0.3, "modest disruption value")
            elif skill is SkillType.REWIND:
                if opp.max_run >= 3:
                    values[skill] = (0.7, "undo the opponent's recent gain")
                elif pieces >= 4 and own.max_run < opp.max_run:
                    values[skill] = (0.5, "position slipping; replay the last exchange")
                else:
                    values[skill] = (0.2, "little to undo")
        return values

    def decide(
        self,
        board: BoardStore,
        player: CellState,
        move_count: int,
        available: Sequence[SkillType],
    ) -> SkillDecision:
        """Rule-based decision for ``player``.

        ``available`` must already exclude spent skills and skills whose
        resource preconditions fail (e.g. rewind without enough history).
        """
        available = list(available)
        if not available:
            return SkillDecision(SkillVerdict.DECLINE, reasoning="no skills available")
        if move_count < self.config.early_game_threshold:
            return SkillDecision(SkillVerdict.DECLINE, reasoning="opening phase; skills held back")

        situation = self.analyze(board, player, move_count)
        if situation.urgent:
            for skill in URGENT_PRIORITY:
                if skill in available:
                    reason = (
                        "opponent has an open four"
                        if situation.opponent.open_fours
                        else "opponent has a double open three"
                    )
                    logger.info("Urgent skill use by player %d: %s (%s)", int(player), skill.value, reason)
                    return SkillDecision(SkillVerdict.USE, skill, reason, value=1.0)

        estimates = self.estimate_values(situation, available)
        values = {skill: value for skill, (value, _) in estimates.items()}
        best = self._best(estimates)
        if best is None:
            return SkillDecision(SkillVerdict.DECLINE, reasoning="no skill has value", values=values)
        skill, (value, reason) = best

        if value >= self.config.skill_value_threshold and self.rng.random() < self.phase_probability(situation):
            return SkillDecision(SkillVerdict.USE, skill, reason, value=value, values=values)
        if value >= self.config.advisor_value_floor:
            return SkillDecision(SkillVerdict.INCONCLUSIVE, skill, reason, value=value, values=values)
        return SkillDecision(SkillVerdict.DECLINE, reasoning="skill value below threshold", value=value, values=values)

    @staticmethod
    def _best(estimates: Dict[SkillType, Tuple[float, str]]) -> Optional[Tuple[SkillType, Tuple[float, str]]]:
        best: Optional[Tuple[SkillType, Tuple[float, str]]] = None
        for skill in URGENT_PRIORITY:
            if skill not in estimates:
                continue
            if best is None or estimates[skill][0] > best[1][0]:
                best = (skill, estimates[skill])
        return best
