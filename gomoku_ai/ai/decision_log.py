"""Standardized AI decision logging.

Every AI turn produces one structured entry:
- what was decided (skill and/or cell) and by which source
- how long it took
- whether a fallback replaced an advisor answer

Entries are JSON-serializable and also feed the Prometheus counters in
``gomoku_ai.metrics``.

Usage:
    from gomoku_ai.ai.decision_log import AIDecisionContext

    with AIDecisionContext(game_id="g1", move_number=12, difficulty="hard") as ctx:
        decision = evaluator.select_move(board)
        ctx.record_move((decision.x, decision.y), source=decision.source, score=decision.score)
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..metrics import AI_DECISION_LATENCY, AI_DECISIONS

logger = logging.getLogger(__name__)


@dataclass
class AIDecisionLog:
    """One AI turn, for debugging and analysis."""

    # Context
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    game_id: str = ""
    move_number: int = 0
    difficulty: str = ""
    player_number: int = 0
    evaluator: str = ""

    # Timing
    time_ms: float = 0.0

    # Skill decision
    skill: Optional[str] = None
    skill_source: str = ""
    skill_reasoning: str = ""

    # Move selection
    chosen_move: str = ""
    move_source: str = ""  # urgent, opening, tactic, advisor, evaluator, mistake
    move_score: float = 0.0
    reasoning: str = ""
    top_alternatives: List[Tuple[str, float]] = field(default_factory=list)

    # Fallback tracking
    used_fallback: bool = False
    fallback_reason: str = ""

    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def to_structured_log(self) -> Dict[str, Any]:
        return {
            "event": "ai_decision",
            "level": "info" if not self.error else "error",
            **self.to_dict(),
        }

    def summary(self) -> str:
        """Human-readable summary."""
        parts = [f"[{self.difficulty or '-'}] player={self.player_number}"]
        if self.skill:
            parts.append(f"skill={self.skill}({self.skill_source})")
        if self.chosen_move:
            parts.append(f"move={self.chosen_move}({self.move_source})")
            parts.append(f"score={self.move_score:.1f}")
        parts.append(f"time={self.time_ms:.1f}ms")
        if self.used_fallback:
            parts.append(f"fallback={self.fallback_reason}")
        if self.error:
            parts.append(f"error={self.error}")
        return " ".join(parts)


def log_ai_decision(decision: AIDecisionLog, log_level: int = logging.INFO) -> None:
    """Log a decision and update the decision metrics."""
    # extra keys must not collide with LogRecord attributes
    logger.log(log_level, decision.summary(), extra={"ai_decision": decision.to_structured_log()})

    difficulty = decision.difficulty or "unknown"
    if decision.skill:
        AI_DECISIONS.labels("skill", decision.skill_source or "rule", difficulty).inc()
    if decision.chosen_move:
        AI_DECISIONS.labels("move", decision.move_source or "evaluator", difficulty).inc()
    AI_DECISION_LATENCY.labels(difficulty).observe(decision.time_ms / 1000.0)


class AIDecisionContext:
    """Context manager timing one AI turn and logging it on exit.

    Usage:
        with AIDecisionContext(game_id="g1", difficulty="normal") as ctx:
            ...
            ctx.record_move((7, 7), source="opening")
    """

    def __init__(
        self,
        game_id: str = "",
        move_number: int = 0,
        difficulty: str = "",
        player_number: int = 0,
        evaluator: str = "",
        auto_log: bool = True,
    ):
        self.decision = AIDecisionLog(
            game_id=game_id,
            move_number=move_number,
            difficulty=difficulty,
            player_number=player_number,
            evaluator=evaluator,
        )
        self.auto_log = auto_log
        self._start_time: Optional[float] = None

    def __enter__(self) -> "AIDecisionContext":
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._start_time is not None:
            self.decision.time_ms = (time.perf_counter() - self._start_time) * 1000

        if exc_type is not None:
            self.decision.error = str(exc_val)

        if self.auto_log:
            log_level = logging.ERROR if self.decision.error else logging.INFO
            log_ai_decision(self.decision, log_level)

        return False  # Don't suppress exceptions

    def record_skill(self, skill: str, source: str = "rule", reasoning: str = "") -> None:
        self.decision.skill = skill
        self.decision.skill_source = source
        self.decision.skill_reasoning = reasoning

    def record_move(
        self,
        move: Tuple[int, int],
        source: str = "evaluator",
        score: float = 0.0,
        reasoning: str = "",
        alternatives: Optional[List[Tuple[str, float]]] = None,
    ) -> None:
        """Record the chosen cell and how it was chosen."""
        self.decision.chosen_move = f"({move[0]},{move[1]})"
        self.decision.move_source = source
        self.decision.move_score = score
        self.decision.reasoning = reasoning
        if alternatives:
            self.decision.top_alternatives = alternatives

    def record_fallback(self, reason: str) -> None:
        """Record that an advisor answer was replaced by local logic."""
        self.decision.used_fallback = True
        self.decision.fallback_reason = reason
