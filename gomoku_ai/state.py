"""Mutable per-game state shared by the game engine and the skill engine.

``SkillUsageRecord`` tracks which skills each player has spent; flags only
ever move from unused to used within a game. ``TurnState`` carries whose
turn it is, the placement count and a version counter that increments on
every state change so asynchronous callers can detect that the board moved
under them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .errors import InvalidStateError
from .models import PLAYERS, CellState, GameStatus, SkillType

__all__ = ["SkillUsageRecord", "TurnState"]


class SkillUsageRecord:
    """Per-player map of skill -> used flag.

    A frozen record (as stored inside snapshots) rejects mutation.
    """

    def __init__(
        self,
        flags: Optional[Mapping[CellState, Mapping[SkillType, bool]]] = None,
        frozen: bool = False,
    ):
        self._flags: Dict[CellState, Dict[SkillType, bool]] = {
            player: {skill: False for skill in SkillType} for player in PLAYERS
        }
        if flags:
            for player, skills in flags.items():
                for skill, used in skills.items():
                    self._flags[CellState(player)][SkillType(skill)] = bool(used)
        self._frozen = frozen

    @property
    def frozen(self) -> bool:
        return self._frozen

    def is_used(self, player: CellState, skill: SkillType) -> bool:
        return self._flags[CellState(player)][SkillType(skill)]

    def mark_used(self, player: CellState, skill: SkillType) -> None:
        if self._frozen:
            raise InvalidStateError("cannot mutate a frozen skill usage record", invariant="snapshot_immutable")
        self._flags[CellState(player)][SkillType(skill)] = True

    def available(self, player: CellState) -> List[SkillType]:
        """Unused skills for ``player`` in declaration order."""
        return [skill for skill, used in self._flags[CellState(player)].items() if not used]

    def copy(self, frozen: bool = True) -> "SkillUsageRecord":
        return SkillUsageRecord(self._flags, frozen=frozen)

    def check_monotonic_from(self, previous: "SkillUsageRecord") -> None:
        """Raise if any flag set in ``previous`` is clear here."""
        for player in PLAYERS:
            for skill in SkillType:
                if previous.is_used(player, skill) and not self.is_used(player, skill):
                    raise InvalidStateError(
                        f"{skill.value} flag for player {int(player)} reverted to unused",
                        invariant="skill_usage_monotonic",
                    )

    def to_dict(self) -> Dict[str, Dict[str, bool]]:
        return {
            str(int(player)): {skill.value: used for skill, used in skills.items()}
            for player, skills in self._flags.items()
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, bool]], frozen: bool = False) -> "SkillUsageRecord":
        try:
            flags = {
                CellState(int(player)): {SkillType(skill): bool(used) for skill, used in skills.items()}
                for player, skills in data.items()
            }
        except (TypeError, ValueError) as e:
            raise InvalidStateError(f"malformed skill usage record: {e}", invariant="skill_usage_shape") from e
        if CellState.EMPTY in flags:
            raise InvalidStateError("skill usage keyed by EMPTY", invariant="skill_usage_shape")
        return cls(flags, frozen=frozen)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SkillUsageRecord):
            return NotImplemented
        return self._flags == other._flags

    def __repr__(self) -> str:
        return f"SkillUsageRecord({self.to_dict()})"


@dataclass
class TurnState:
    """Whose turn it is and how far the game has progressed."""

    current_player: CellState = CellState.PLAYER_A
    move_count: int = 0
    status: GameStatus = GameStatus.ACTIVE
    winner: Optional[CellState] = None
    version: int = 0

    def bump(self) -> int:
        self.version += 1
        return self.version

    def switch_turn(self) -> None:
        self.current_player = self.current_player.opponent
