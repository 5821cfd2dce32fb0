"""
Pydantic Models for the Gomoku skills engine.

Covers cell/player enums, moves and positions, controller-facing result
values, and the request/response contract of the external move advisor.
Wire-facing fields use camelCase aliases so the same models serialise the
way browser clients and the advisor expect.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, StrictBool, StrictInt


class CellState(IntEnum):
    """Content of one board cell; doubles as the player identifier."""
    EMPTY = 0
    PLAYER_A = 1
    PLAYER_B = 2

    @property
    def opponent(self) -> "CellState":
        if self is CellState.PLAYER_A:
            return CellState.PLAYER_B
        if self is CellState.PLAYER_B:
            return CellState.PLAYER_A
        raise ValueError("EMPTY has no opponent")


PLAYERS = (CellState.PLAYER_A, CellState.PLAYER_B)


class SkillType(str, Enum):
    """Limited-use special actions, one use per player per game."""
    SCATTER = "scatter"
    REMOVE = "remove"
    REWIND = "rewind"


class Difficulty(str, Enum):
    """Difficulty ladder for the local evaluator"""
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


class GameStatus(str, Enum):
    """Game status enumeration"""
    ACTIVE = "active"
    FINISHED = "finished"


class ErrorCode(str, Enum):
    """Machine-readable rejection reasons returned at the controller boundary."""
    INVALID_COORDINATE = "INVALID_COORDINATE"
    OCCUPIED_CELL = "OCCUPIED_CELL"
    NOT_PLAYERS_TURN = "NOT_PLAYERS_TURN"
    UNKNOWN_SKILL = "UNKNOWN_SKILL"
    SKILL_ALREADY_USED = "SKILL_ALREADY_USED"
    INSUFFICIENT_RESOURCES = "INSUFFICIENT_RESOURCES"
    INSUFFICIENT_HISTORY = "INSUFFICIENT_HISTORY"
    INVALID_TARGET = "INVALID_TARGET"
    GAME_OVER = "GAME_OVER"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"


class Position(BaseModel):
    """Board coordinate: x is the row, y the column."""
    x: int
    y: int

    class Config:
        frozen = True


class Move(BaseModel):
    """A stone placement by one player."""
    x: int
    y: int
    player: CellState

    class Config:
        frozen = True

    @property
    def position(self) -> Position:
        return Position(x=self.x, y=self.y)


class StateView(BaseModel):
    """Serializable read-only view of a history snapshot."""
    board: List[List[int]]
    current_player: CellState = Field(alias="currentPlayer")
    skill_usage: Dict[str, Dict[str, bool]] = Field(alias="skillUsage")
    move_count: int = Field(alias="moveCount")
    sequence_index: int = Field(alias="sequenceIndex")

    class Config:
        populate_by_name = True
        frozen = True


class GameEndResult(BaseModel):
    """Outcome of a game-end check: a winner, a draw, or neither."""
    winner: Optional[CellState] = None
    draw: bool = False
    winning_line: List[Position] = Field(default_factory=list, alias="winningLine")

    class Config:
        populate_by_name = True

    @property
    def is_over(self) -> bool:
        return self.winner is not None or self.draw


class ActionResult(BaseModel):
    """Result of a placement or skill action.

    Rejections are reported as values: ``ok`` is false and ``error`` carries
    the machine-readable code together with a human-readable ``reason``.
    """
    ok: bool
    error: Optional[ErrorCode] = None
    reason: Optional[str] = None
    detail: Optional[str] = None
    move: Optional[Move] = None
    skill: Optional[SkillType] = None
    affected_cells: List[Position] = Field(default_factory=list, alias="affectedCells")
    game_end: Optional[GameEndResult] = Field(default=None, alias="gameEnd")

    class Config:
        populate_by_name = True


class RewindResult(BaseModel):
    """Result of a rewind: the restored state or an error code."""
    ok: bool
    snapshot: Optional[StateView] = None
    error: Optional[ErrorCode] = None
    reason: Optional[str] = None

    class Config:
        populate_by_name = True


class MoveRecord(BaseModel):
    """A recent move as sent to the advisor."""
    x: int
    y: int
    player: int


class AdvisorRequest(BaseModel):
    """Request payload for the external move advisor."""
    board: List[List[int]]
    current_player: int = Field(alias="currentPlayer")
    available_skills: List[str] = Field(default_factory=list, alias="availableSkills")
    recent_moves: List[MoveRecord] = Field(default_factory=list, alias="recentMoves")

    class Config:
        populate_by_name = True


class AdvisorMoveResponse(BaseModel):
    """Advisor answer to a move request."""
    x: StrictInt
    y: StrictInt
    reasoning: str = ""


class AdvisorSkillResponse(BaseModel):
    """Advisor answer to a skill request."""
    use_skill: StrictBool = Field(alias="useSkill")
    skill_type: Optional[str] = Field(default=None, alias="skillType")
    reasoning: Optional[str] = None

    class Config:
        populate_by_name = True
