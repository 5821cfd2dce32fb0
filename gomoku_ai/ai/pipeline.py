"""Per-turn AI decision pipeline.

One AI turn runs through a fixed sequence of states:

    AWAITING_DECISION -> EVALUATING_SKILL_USE -> (SKILL_APPLIED | NO_SKILL)
        -> EVALUATING_MOVE -> MOVE_APPLIED -> TURN_COMPLETE

Skill decision: the rule-based :class:`SkillPolicy` answers first; an
inconclusive answer is put to the external advisor when one is configured.
Move decision, first match wins:

    1. a cell that completes five for the mover
    2. a cell that blocks the opponent's five
    3. (advanced tactics only) the mover's own four-three / double-three
    4. (advanced tactics only) a cell denying the opponent's compound threat
    5. the advisor's cell, when move advice is enabled
    6. the local evaluator

Advisor failures of any kind fall back to local logic. Before an advisor
answer is applied, the engine's state version is compared with the version
at request time; if the game moved on (reset, rewind, another action) the
answer is discarded.

A rewind ends the turn without a placement. The pipeline never starts
another turn on its own; the controller decides who moves next, and each
player can rewind only once, so rewinds cannot loop.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..errors import AdvisorError, AdvisorTimeoutError, AdvisorValidationError
from ..game_engine import GameEngine
from ..metrics import ADVISOR_REQUESTS
from ..models import PLAYERS, ActionResult, CellState, ErrorCode, GameEndResult, SkillType
from .advisor import MoveAdvisor, build_request
from .base import BaseEvaluator, MoveDecision
from .decision_log import AIDecisionContext
from .factory import EvaluatorFactory
from .skill_policy import SkillDecision, SkillPolicy, SkillVerdict
from .tactics import TacticDetector

logger = logging.getLogger(__name__)

__all__ = ["DecisionPipeline", "PipelineState", "TurnOutcome"]


class PipelineState(str, Enum):
    AWAITING_DECISION = "awaiting_decision"
    EVALUATING_SKILL_USE = "evaluating_skill_use"
    SKILL_APPLIED = "skill_applied"
    NO_SKILL = "no_skill"
    EVALUATING_MOVE = "evaluating_move"
    MOVE_APPLIED = "move_applied"
    TURN_COMPLETE = "turn_complete"


@dataclass
class TurnOutcome:
    """Everything one AI turn did."""

    player: CellState
    ok: bool = True
    error: Optional[ErrorCode] = None
    reason: Optional[str] = None
    skill_decision: Optional[SkillDecision] = None
    skill_result: Optional[ActionResult] = None
    move_decision: Optional[MoveDecision] = None
    move_result: Optional[ActionResult] = None
    game_end: Optional[GameEndResult] = None
    states: List[PipelineState] = field(default_factory=list)

    @property
    def skill_used(self) -> Optional[SkillType]:
        if self.skill_result is not None and self.skill_result.ok:
            return self.skill_result.skill
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ok": self.ok,
            "player": int(self.player),
            "error": self.error.value if self.error else None,
            "reason": self.reason,
            "states": [s.value for s in self.states],
            "skill": None,
            "move": None,
            "gameEnd": self.game_end.model_dump(by_alias=True, mode="json") if self.game_end else None,
        }
        if self.skill_decision is not None:
            data["skill"] = {
                "used": self.skill_used.value if self.skill_used else None,
                "verdict": self.skill_decision.verdict.value,
                "source": self.skill_decision.source,
                "reasoning": self.skill_decision.reasoning,
                "result": self.skill_result.model_dump(by_alias=True, mode="json") if self.skill_result else None,
            }
        if self.move_decision is not None:
            data["move"] = {
                "x": self.move_decision.x,
                "y": self.move_decision.y,
                "source": self.move_decision.source,
                "reasoning": self.move_decision.reasoning,
                "score": self.move_decision.score,
            }
        return data


class DecisionPipeline:
    """Chooses and applies one AI turn against a :class:`GameEngine`.

    Args:
        engine: The game to act on
        evaluators: Evaluator per player; built from the engine config when omitted
        policy: Rule-based skill policy
        advisor: Optional external advisor
        rng: Random source for the default policy and evaluators
    """

    def __init__(
        self,
        engine: GameEngine,
        evaluators: Optional[Mapping[CellState, BaseEvaluator]] = None,
        policy: Optional[SkillPolicy] = None,
        advisor: Optional[MoveAdvisor] = None,
        rng: Optional[random.Random] = None,
    ):
        self.engine = engine
        self.config = engine.config
        self.rng = rng if rng is not None else engine.rng
        if evaluators is None:
            evaluators = {
                player: EvaluatorFactory.create(player, rng=self.rng, config=self.config)
                for player in PLAYERS
            }
        self.evaluators: Dict[CellState, BaseEvaluator] = dict(evaluators)
        self.policy = policy or SkillPolicy(self.config, rng=self.rng)
        self.advisor = advisor
        self.tactics = TacticDetector()
        self.state = PipelineState.AWAITING_DECISION
        self._trace: List[PipelineState] = []

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        self._trace.append(state)

    # ------------------------------------------------------------------
    # Skill decision
    # ------------------------------------------------------------------

    async def decide_skill(self, player: CellState) -> SkillDecision:
        engine = self.engine
        available = engine.usable_skills(player)
        decision = self.policy.decide(engine.board, player, engine.move_count, available)
        if decision.verdict is not SkillVerdict.INCONCLUSIVE:
            return decision
        if self.advisor is None or not self.config.use_advisor_for_skills:
            return SkillDecision(
                SkillVerdict.DECLINE,
                reasoning=f"inconclusive ({decision.reasoning}); no advisor",
                value=decision.value,
            )
        return await self._advise_skill(player, available, decision)

    async def _advise_skill(
        self,
        player: CellState,
        available: List[SkillType],
        fallback: SkillDecision,
    ) -> SkillDecision:
        engine = self.engine
        version = engine.state_version
        request = build_request(engine.board, player, available, engine.recent_moves(6))
        decline = SkillDecision(SkillVerdict.DECLINE, reasoning="advisor unavailable", value=fallback.value)
        try:
            reply = await self.advisor.suggest_skill(request)
        except AdvisorTimeoutError as e:
            ADVISOR_REQUESTS.labels("skill", "timeout").inc()
            logger.warning("Skill advisor timed out: %s", e)
            return decline
        except AdvisorValidationError as e:
            ADVISOR_REQUESTS.labels("skill", "rejected").inc()
            logger.warning("Skill advisor reply rejected: %s", e)
            return decline
        except AdvisorError as e:
            ADVISOR_REQUESTS.labels("skill", "error").inc()
            logger.warning("Skill advisor failed: %s", e)
            return decline
        except Exception:
            ADVISOR_REQUESTS.labels("skill", "error").inc()
            logger.error("Skill advisor raised an unexpected error", exc_info=True)
            return decline

        if engine.state_version != version:
            ADVISOR_REQUESTS.labels("skill", "stale").inc()
            logger.info("Discarding skill advice: game changed while waiting")
            return SkillDecision(SkillVerdict.DECLINE, reasoning="advice went stale", source="advisor")
        if not reply.use_skill:
            ADVISOR_REQUESTS.labels("skill", "accepted").inc()
            return SkillDecision(SkillVerdict.DECLINE, reasoning=reply.reasoning or "", source="advisor")
        skill = SkillType(reply.skill_type)
        if skill not in engine.usable_skills(player):
            ADVISOR_REQUESTS.labels("skill", "rejected").inc()
            return decline
        ADVISOR_REQUESTS.labels("skill", "accepted").inc()
        return SkillDecision(
            SkillVerdict.USE,
            skill,
            reply.reasoning or fallback.reasoning,
            value=fallback.values.get(skill, fallback.value),
            source="advisor",
        )

    # ------------------------------------------------------------------
    # Move decision
    # ------------------------------------------------------------------

    def urgent_move(self, player: CellState) -> Optional[MoveDecision]:
        """Forced replies that bypass full scoring."""
        engine = self.engine
        board, detector = engine.board, engine.win_detector
        wins = detector.find_winning_cells(board, player)
        if wins:
            x, y = wins[0]
            return MoveDecision(x, y, self.evaluators[player].table.five, "completes five in a row", "urgent")
        blocks = detector.find_winning_cells(board, player.opponent)
        if blocks:
            x, y = blocks[0]
            return MoveDecision(x, y, self.evaluators[player].table.five, "blocks the opponent's five", "urgent")

        evaluator = self.evaluators[player]
        if not evaluator.profile.advanced_tactics_enabled:
            return None
        own = self.tactics.find_compound_cell(board, player)
        if own is not None:
            (x, y), result = own
            return MoveDecision(x, y, evaluator.table.four_three, f"{result.tactic.value} combination", "tactic")
        theirs = self.tactics.find_compound_cell(board, player.opponent)
        if theirs is not None:
            (x, y), result = theirs
            return MoveDecision(
                x, y, evaluator.table.block_four_three, f"blocks the opponent's {result.tactic.value}", "tactic"
            )
        return None

    async def decide_move(self, player: CellState) -> Optional[MoveDecision]:
        """Pick a cell for ``player``; None only when the board is full."""
        board = self.engine.board
        if board.is_full():
            return None
        urgent = self.urgent_move(player)
        if urgent is not None:
            return urgent
        if self.advisor is not None and self.config.use_advisor_for_moves:
            advised = await self._advise_move(player)
            if advised is not None:
                return advised
        return self.evaluators[player].select_move(board)

    async def _advise_move(self, player: CellState) -> Optional[MoveDecision]:
        engine = self.engine
        version = engine.state_version
        request = build_request(engine.board, player, engine.available_skills(player), engine.recent_moves(6))
        try:
            reply = await self.advisor.suggest_move(request, engine.board)
        except AdvisorTimeoutError as e:
            ADVISOR_REQUESTS.labels("move", "timeout").inc()
            logger.warning("Move advisor timed out: %s", e)
            return None
        except AdvisorValidationError as e:
            ADVISOR_REQUESTS.labels("move", "rejected").inc()
            logger.warning("Move advisor reply rejected: %s", e)
            return None
        except AdvisorError as e:
            ADVISOR_REQUESTS.labels("move", "error").inc()
            logger.warning("Move advisor failed: %s", e)
            return None
        except Exception:
            ADVISOR_REQUESTS.labels("move", "error").inc()
            logger.error("Move advisor raised an unexpected error", exc_info=True)
            return None

        # Validate against the board as it is now, not as it was at request time.
        if engine.state_version != version or not engine.board.is_empty_cell(reply.x, reply.y):
            ADVISOR_REQUESTS.labels("move", "stale").inc()
            logger.info("Discarding advised move (%d, %d): game changed while waiting", reply.x, reply.y)
            return None
        ADVISOR_REQUESTS.labels("move", "accepted").inc()
        return MoveDecision(reply.x, reply.y, 0.0, reply.reasoning or "advisor suggestion", "advisor")

    # ------------------------------------------------------------------
    # Turn
    # ------------------------------------------------------------------

    async def run_turn(self, player: Optional[CellState] = None) -> TurnOutcome:
        """Decide and apply one full turn for ``player`` (default: side to move)."""
        engine = self.engine
        player = CellState(player) if player is not None else engine.current_player
        self._trace = []
        outcome = TurnOutcome(player=player, states=self._trace)
        self._enter(PipelineState.AWAITING_DECISION)

        if engine.is_over:
            return self._reject(outcome, ErrorCode.GAME_OVER, "the game is over")
        if player is not engine.current_player:
            return self._reject(
                outcome, ErrorCode.NOT_PLAYERS_TURN, f"it is player {int(engine.current_player)}'s turn"
            )

        evaluator = self.evaluators[player]
        with AIDecisionContext(
            game_id=engine.game_id,
            move_number=engine.move_count,
            difficulty=evaluator.profile.name,
            player_number=int(player),
            evaluator=type(evaluator).__name__,
        ) as ctx:
            self._enter(PipelineState.EVALUATING_SKILL_USE)
            decision = await self.decide_skill(player)
            outcome.skill_decision = decision

            if decision.use_skill:
                result = engine.use_skill(decision.skill, player)
                outcome.skill_result = result
                if result.ok:
                    self._enter(PipelineState.SKILL_APPLIED)
                    ctx.record_skill(decision.skill.value, decision.source, decision.reasoning)
                    logger.info(
                        "Player %d used %s (%s): %s",
                        int(player), decision.skill.value, decision.source, decision.reasoning,
                    )
                    if decision.skill is SkillType.REWIND:
                        self._enter(PipelineState.TURN_COMPLETE)
                        return outcome
                    if result.game_end is not None and result.game_end.is_over:
                        outcome.game_end = result.game_end
                        self._enter(PipelineState.TURN_COMPLETE)
                        return outcome
                else:
                    logger.warning("Skill %s rejected: %s", decision.skill.value, result.reason)
                    self._enter(PipelineState.NO_SKILL)
            else:
                self._enter(PipelineState.NO_SKILL)

            self._enter(PipelineState.EVALUATING_MOVE)
            move = await self.decide_move(player)
            if move is None:
                self._enter(PipelineState.TURN_COMPLETE)
                return outcome
            result = engine.apply_move(move.x, move.y, player)
            if not result.ok:
                # Only reachable through an internal inconsistency; fall back to the evaluator.
                logger.error("Chosen move (%d, %d) rejected: %s", move.x, move.y, result.reason)
                ctx.record_fallback(result.reason or "move rejected")
                move = self.evaluators[player].select_move(engine.board)
                if move is None:
                    self._enter(PipelineState.TURN_COMPLETE)
                    return outcome
                result = engine.apply_move(move.x, move.y, player)
            outcome.move_decision = move
            outcome.move_result = result
            outcome.game_end = result.game_end
            outcome.ok = result.ok
            if not result.ok:
                outcome.error, outcome.reason = result.error, result.reason
            ctx.record_move(
                (move.x, move.y),
                source=move.source,
                score=move.score,
                reasoning=move.reasoning,
                alternatives=[(f"({c.x},{c.y})", c.score) for c in move.candidates],
            )
            self._enter(PipelineState.MOVE_APPLIED)
            self._enter(PipelineState.TURN_COMPLETE)
        return outcome

    def _reject(self, outcome: TurnOutcome, code: ErrorCode, reason: str) -> TurnOutcome:
        outcome.ok = False
        outcome.error = code
        outcome.reason = reason
        self._enter(PipelineState.TURN_COMPLETE)
        return outcome
