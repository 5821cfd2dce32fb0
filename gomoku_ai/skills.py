"""Skill subsystem: scatter, remove and rewind.

Each skill can be used once per player per game. A skill first validates
every precondition and only then mutates, so a rejected call leaves the
board, the usage record and the history untouched. Randomness comes from
the injected ``random.Random`` so tests can pin outcomes with a seed.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .board_manager import BoardStore, Cell
from .config import EngineConfig
from .errors import (
    InsufficientPiecesError,
    InsufficientSpaceError,
    InvalidTargetError,
    SkillAlreadyUsedError,
    UnknownSkillError,
)
from .history import HistoryStore, Snapshot
from .metrics import SKILL_USES
from .models import CellState, Move, Position, SkillType
from .state import SkillUsageRecord, TurnState

logger = logging.getLogger(__name__)

__all__ = ["SkillEngine", "SkillOutcome", "parse_skill", "parse_steps"]


def parse_skill(value: object) -> SkillType:
    """Resolve a skill name, raising UnknownSkillError for anything else."""
    if isinstance(value, SkillType):
        return value
    try:
        return SkillType(str(value).strip().lower())
    except ValueError:
        raise UnknownSkillError(
            f"unknown skill {value!r}",
            context={"known": [s.value for s in SkillType]},
        ) from None


def parse_steps(value: object, default: int) -> int:
    """Resolve a rewind depth, raising InvalidTargetError unless it is a positive int."""
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidTargetError(
            f"rewind steps must be a positive integer, got {value!r}",
            context={"steps": repr(value)},
        )
    return value


@dataclass
class SkillOutcome:
    """What a successful skill did."""

    skill: SkillType
    player: CellState
    affected: List[Position] = field(default_factory=list)
    relocations: List[Tuple[Move, Position]] = field(default_factory=list)
    restored: Optional[Snapshot] = None


class SkillEngine:
    """Applies skills against the shared board, history, usage and turn state."""

    def __init__(
        self,
        board: BoardStore,
        history: HistoryStore,
        usage: SkillUsageRecord,
        turn: TurnState,
        rng: random.Random,
        config: Optional[EngineConfig] = None,
    ):
        self.board = board
        self.history = history
        self.usage = usage
        self.turn = turn
        self.rng = rng
        self.config = config or EngineConfig()

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def can_use(self, player: CellState, skill: SkillType) -> bool:
        return not self.usage.is_used(player, skill)

    def available_skills(self, player: CellState) -> List[SkillType]:
        return self.usage.available(player)

    def _require_unused(self, player: CellState, skill: SkillType) -> None:
        if self.usage.is_used(player, skill):
            raise SkillAlreadyUsedError(
                f"player {int(player)} has already used {skill.value}",
                skill=skill.value,
                player=player,
            )

    def use(
        self,
        skill: object,
        player: CellState,
        targets: Optional[Sequence[Cell]] = None,
        steps: Optional[int] = None,
    ) -> SkillOutcome:
        """Dispatch by skill name."""
        resolved = parse_skill(skill)
        try:
            if resolved is SkillType.SCATTER:
                outcome = self.scatter(player, targets)
            elif resolved is SkillType.REMOVE:
                outcome = self.remove(player, targets)
            else:
                outcome = self.rewind(player, steps)
        except Exception as e:
            SKILL_USES.labels(resolved.value, getattr(e, "code", "error")).inc()
            raise
        SKILL_USES.labels(resolved.value, "ok").inc()
        return outcome

    # ------------------------------------------------------------------
    # Skills
    # ------------------------------------------------------------------

    def _select_pieces(
        self,
        count: int,
        targets: Optional[Sequence[Cell]],
    ) -> List[Move]:
        pieces = self.board.all_pieces()
        if targets is None:
            return self.rng.sample(pieces, count)
        try:
            chosen = [(int(x), int(y)) for x, y in targets]
        except (TypeError, ValueError):
            raise InvalidTargetError(
                f"targets must be a list of [x, y] pairs, got {targets!r}",
                context={"targets": repr(targets)},
            ) from None
        if not chosen or len(chosen) > count:
            raise InvalidTargetError(
                f"expected between 1 and {count} targets, got {len(chosen)}",
                context={"targets": len(chosen)},
            )
        if len(set(chosen)) != len(chosen):
            raise InvalidTargetError("duplicate targets")
        by_cell = {(p.x, p.y): p for p in pieces}
        missing = [cell for cell in chosen if cell not in by_cell]
        if missing:
            raise InvalidTargetError(
                f"targets {missing} do not hold stones",
                context={"missing": missing},
            )
        return [by_cell[cell] for cell in chosen]

    def scatter(self, player: CellState, targets: Optional[Sequence[Cell]] = None) -> SkillOutcome:
        """Relocate up to ``scatter_count`` stones to random empty cells.

        Owners are preserved, so per-player piece counts are unchanged.
        Destinations are drawn from the cells that were empty before the
        stones were lifted, so no stone lands back where it started.
        """
        self._require_unused(player, SkillType.SCATTER)
        total = self.board.piece_count()
        if total == 0:
            raise InsufficientPiecesError("no stones on the board to scatter", required=1, available=0)
        count = min(self.config.scatter_count, total)
        empties = self.board.empty_cells()
        if len(empties) < count:
            raise InsufficientSpaceError(
                "not enough empty cells to scatter into",
                required=count,
                available=len(empties),
            )
        selected = self._select_pieces(count, targets)
        destinations = self.rng.sample(empties, len(selected))

        for piece in selected:
            self.board.remove(piece.x, piece.y)
        relocations: List[Tuple[Move, Position]] = []
        for piece, (x, y) in zip(selected, destinations):
            self.board.place(x, y, piece.player)
            relocations.append((piece, Position(x=x, y=y)))

        affected = [p.position for p in selected] + [dest for _, dest in relocations]
        self._finish(player, SkillType.SCATTER)
        logger.info("Player %d scattered %d stones", int(player), len(selected))
        return SkillOutcome(SkillType.SCATTER, CellState(player), affected=affected, relocations=relocations)

    def remove(self, player: CellState, targets: Optional[Sequence[Cell]] = None) -> SkillOutcome:
        """Clear up to ``remove_count`` stones chosen at random (any owner)."""
        self._require_unused(player, SkillType.REMOVE)
        total = self.board.piece_count()
        if total == 0:
            raise InsufficientPiecesError("no stones on the board to remove", required=1, available=0)
        count = min(self.config.remove_count, total)
        selected = self._select_pieces(count, targets)
        for piece in selected:
            self.board.remove(piece.x, piece.y)
        self._finish(player, SkillType.REMOVE)
        logger.info("Player %d removed %d stones", int(player), len(selected))
        return SkillOutcome(SkillType.REMOVE, CellState(player), affected=[p.position for p in selected])

    def rewind(self, player: CellState, steps: Optional[int] = None) -> SkillOutcome:
        """Restore the state ``steps`` snapshots back.

        The restored tail becomes the new state; nothing is appended.
        """
        self._require_unused(player, SkillType.REWIND)
        steps = parse_steps(steps, self.config.rewind_steps)
        snapshot = self.history.rewind(steps)
        self.restore(snapshot)
        self.usage.mark_used(player, SkillType.REWIND)
        self.turn.bump()
        logger.info(
            "Player %d rewound %d steps to sequence index %d",
            int(player), steps, snapshot.sequence_index,
        )
        return SkillOutcome(SkillType.REWIND, CellState(player), restored=snapshot)

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def restore(self, snapshot: Snapshot) -> None:
        """Load board, turn and usage from ``snapshot``.

        Usage flags are merged rather than replaced: a skill spent after the
        snapshot stays spent.
        """
        self.board.load(snapshot.board)
        self.turn.current_player = snapshot.current_player
        self.turn.move_count = snapshot.move_count
        for p in (CellState.PLAYER_A, CellState.PLAYER_B):
            for skill in SkillType:
                if snapshot.skill_usage.is_used(p, skill):
                    self.usage.mark_used(p, skill)

    def _finish(self, player: CellState, skill: SkillType) -> None:
        self.usage.mark_used(player, skill)
        self.turn.bump()
        self.history.record(
            self.board,
            self.turn.current_player,
            self.usage,
            self.turn.move_count,
            action=f"skill:{skill.value}",
        )
