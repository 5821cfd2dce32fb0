"""Bounded snapshot history backing the rewind skill.

Every state-changing action records a :class:`Snapshot`: a read-only copy
of the grid plus the turn, the skill usage flags and the counters at that
point. The store is append-only except for :meth:`HistoryStore.rewind`,
which truncates from the tail. When full, the oldest snapshot is evicted.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

import numpy as np

from .board_manager import BoardStore
from .errors import InsufficientHistoryError, InvalidStateError
from .models import CellState, Move, StateView
from .state import SkillUsageRecord

logger = logging.getLogger(__name__)

__all__ = ["HistoryStore", "Snapshot"]

EXPORT_VERSION = 1


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Immutable record of the full game state after one action.

    ``current_player`` is the player to move next in that state.
    """

    board: np.ndarray
    current_player: CellState
    skill_usage: SkillUsageRecord
    move_count: int
    sequence_index: int
    action: str = "move"

    @classmethod
    def capture(
        cls,
        board: BoardStore,
        current_player: CellState,
        skill_usage: SkillUsageRecord,
        move_count: int,
        sequence_index: int,
        action: str = "move",
    ) -> "Snapshot":
        return cls(
            board=board.to_array(),
            current_player=CellState(current_player),
            skill_usage=skill_usage.copy(frozen=True),
            move_count=move_count,
            sequence_index=sequence_index,
            action=action,
        )

    @property
    def size(self) -> int:
        return int(self.board.shape[0])

    def board_store(self) -> BoardStore:
        """A fresh mutable board equal to this snapshot's grid."""
        return BoardStore(self.size, cells=self.board)

    def to_view(self) -> StateView:
        return StateView(
            board=self.board.tolist(),
            current_player=self.current_player,
            skill_usage=self.skill_usage.to_dict(),
            move_count=self.move_count,
            sequence_index=self.sequence_index,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "board": self.board.tolist(),
            "currentPlayer": int(self.current_player),
            "skillUsage": self.skill_usage.to_dict(),
            "moveCount": self.move_count,
            "sequenceIndex": self.sequence_index,
            "action": self.action,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], board_size: int) -> "Snapshot":
        try:
            grid = np.asarray(data["board"], dtype=np.int8)
            board = BoardStore(board_size, cells=grid)
            player = CellState(int(data["currentPlayer"]))
            usage = SkillUsageRecord.from_dict(data["skillUsage"])
            move_count = int(data["moveCount"])
            index = int(data["sequenceIndex"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidStateError(f"malformed snapshot: {e}", invariant="snapshot_shape") from e
        if player is CellState.EMPTY:
            raise InvalidStateError("snapshot turn belongs to EMPTY", invariant="snapshot_shape")
        return cls.capture(board, player, usage, move_count, index, action=str(data.get("action", "move")))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return (
            np.array_equal(self.board, other.board)
            and self.current_player == other.current_player
            and self.skill_usage == other.skill_usage
            and self.move_count == other.move_count
            and self.sequence_index == other.sequence_index
        )

    __hash__ = None  # type: ignore[assignment]


class HistoryStore:
    """Ordered, capacity-bounded sequence of snapshots."""

    def __init__(self, capacity: int = 100, board_size: int = 15):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.board_size = board_size
        self._snapshots: Deque[Snapshot] = deque()
        self._next_index = 0
        self.evicted = 0

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self):
        return iter(list(self._snapshots))

    @property
    def tail(self) -> Optional[Snapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def record(
        self,
        board: BoardStore,
        current_player: CellState,
        skill_usage: SkillUsageRecord,
        move_count: int,
        action: str = "move",
    ) -> Snapshot:
        """Capture the live state and append it."""
        snapshot = Snapshot.capture(
            board, current_player, skill_usage, move_count, self._next_index, action=action
        )
        self.push(snapshot)
        return snapshot

    def push(self, snapshot: Snapshot) -> None:
        """Append an existing snapshot after checking its invariants."""
        if snapshot.board.shape != (self.board_size, self.board_size):
            raise InvalidStateError(
                f"snapshot board has shape {snapshot.board.shape}",
                invariant="snapshot_dimensions",
                context={"expected": self.board_size},
            )
        previous = self.tail
        if previous is not None:
            snapshot.skill_usage.check_monotonic_from(previous.skill_usage)
        self._snapshots.append(snapshot)
        self._next_index = snapshot.sequence_index + 1
        if len(self._snapshots) > self.capacity:
            self._snapshots.popleft()
            self.evicted += 1
            logger.debug("History full; evicted oldest snapshot (capacity=%d)", self.capacity)

    def can_rewind(self, steps: int) -> bool:
        return steps >= 1 and len(self._snapshots) >= steps + 1

    def rewind(self, steps: int) -> Snapshot:
        """Drop the last ``steps`` snapshots and return the new tail.

        Raises:
            InsufficientHistoryError: fewer than ``steps + 1`` snapshots are
                held; the store is left unchanged.
        """
        if steps < 1:
            raise ValueError("steps must be positive")
        if not self.can_rewind(steps):
            raise InsufficientHistoryError(
                f"cannot rewind {steps} steps with {len(self._snapshots)} snapshots",
                required=steps + 1,
                available=len(self._snapshots),
            )
        for _ in range(steps):
            self._snapshots.pop()
        tail = self._snapshots[-1]
        self._next_index = tail.sequence_index + 1
        logger.debug("Rewound %d steps to sequence index %d", steps, tail.sequence_index)
        return tail

    def get(self, index: int) -> Snapshot:
        """Snapshot by position in the store (negative indexes from the tail)."""
        return self._snapshots[index]

    def recent(self, count: int) -> List[Snapshot]:
        if count <= 0:
            return []
        return list(self._snapshots)[-count:]

    def recent_moves(self, count: int = 6) -> List[Move]:
        """Up to ``count`` most recent placements, oldest first.

        Derived by diffing consecutive snapshots: a pair differing by exactly
        one newly occupied cell is a placement; skill transitions are skipped.
        """
        snapshots = list(self._snapshots)
        moves: List[Move] = []
        for previous, current in zip(snapshots, snapshots[1:]):
            if current.action != "move":
                continue
            added = np.argwhere((previous.board == CellState.EMPTY) & (current.board != CellState.EMPTY))
            if len(added) != 1:
                continue
            x, y = (int(v) for v in added[0])
            moves.append(Move(x=x, y=y, player=CellState(int(current.board[x, y]))))
        return moves[-count:] if count > 0 else []

    def clear(self) -> None:
        self._snapshots.clear()
        self._next_index = 0
        self.evicted = 0

    def stats(self) -> Dict[str, Any]:
        tail = self.tail
        pieces = {}
        if tail is not None:
            pieces = {
                str(int(player)): int(np.count_nonzero(tail.board == int(player)))
                for player in (CellState.PLAYER_A, CellState.PLAYER_B)
            }
        return {
            "length": len(self._snapshots),
            "capacity": self.capacity,
            "evicted": self.evicted,
            "oldestIndex": self._snapshots[0].sequence_index if self._snapshots else None,
            "newestIndex": tail.sequence_index if tail is not None else None,
            "moveCount": tail.move_count if tail is not None else 0,
            "pieces": pieces,
        }

    def export_json(self) -> str:
        return json.dumps({
            "version": EXPORT_VERSION,
            "boardSize": self.board_size,
            "capacity": self.capacity,
            "snapshots": [s.to_dict() for s in self._snapshots],
        })

    @classmethod
    def import_json(cls, payload: str) -> "HistoryStore":
        """Rebuild a store from :meth:`export_json` output, validating every snapshot."""
        try:
            data = json.loads(payload)
            board_size = int(data["boardSize"])
            capacity = int(data.get("capacity", 100))
            entries = data["snapshots"]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidStateError(f"malformed history export: {e}", invariant="history_shape") from e
        if data.get("version") != EXPORT_VERSION:
            raise InvalidStateError(
                f"unsupported history export version {data.get('version')!r}",
                invariant="history_shape",
            )
        store = cls(capacity=capacity, board_size=board_size)
        for entry in entries:
            store.push(Snapshot.from_dict(entry, board_size))
        return store
