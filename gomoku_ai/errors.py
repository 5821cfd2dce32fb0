"""
Gomoku Engine Error Hierarchy

Unified exception hierarchy for consistent error handling across the engine.
All custom exceptions inherit from GomokuError for easy catching and filtering.

Low-level components (BoardStore, SkillEngine, HistoryStore) raise these;
GameEngine converts validation errors into ActionResult values so the
controller never sees them as faults.

Usage:
    from gomoku_ai.errors import OccupiedCellError, ValidationError

    try:
        board.place(7, 7, CellState.PLAYER_A)
    except ValidationError as e:
        logger.info(f"Rejected placement: {e.message}")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    # Advisor errors
    "AdvisorError",
    "AdvisorResponseError",
    "AdvisorTimeoutError",
    "AdvisorTransportError",
    "AdvisorValidationError",
    "ConfigurationError",
    "GameOverError",
    # Base error
    "GomokuError",
    "InsufficientHistoryError",
    "InsufficientPiecesError",
    "InsufficientResourcesError",
    "InsufficientSpaceError",
    "InvalidCoordinateError",
    # Invariant errors
    "InvalidStateError",
    "InvalidTargetError",
    "NotPlayersTurnError",
    "OccupiedCellError",
    "OutOfBoundsError",
    "SkillAlreadyUsedError",
    "UnknownSkillError",
    # Validation errors
    "ValidationError",
]


class GomokuError(Exception):
    """Base exception for all engine errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "GOMOKU_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(GomokuError):
    """Expected, caller-recoverable rejection of a player action."""
    code: str = "VALIDATION_ERROR"


class InvalidCoordinateError(ValidationError):
    """Coordinate is not an integer cell on the board."""
    code: str = "INVALID_COORDINATE"

    def __init__(
        self,
        message: str,
        x: Any = None,
        y: Any = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.x = x
        self.y = y
        self.context.setdefault("x", x)
        self.context.setdefault("y", y)


class OutOfBoundsError(InvalidCoordinateError):
    """Coordinate lies outside [0, size)."""


class OccupiedCellError(ValidationError):
    """Target cell already holds a stone."""
    code: str = "OCCUPIED_CELL"

    def __init__(
        self,
        message: str,
        x: int,
        y: int,
        occupant: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.x = x
        self.y = y
        self.context["x"] = x
        self.context["y"] = y
        if occupant is not None:
            self.context["occupant"] = int(occupant)


class NotPlayersTurnError(ValidationError):
    """Action submitted by the player who is not to move."""
    code: str = "NOT_PLAYERS_TURN"


class GameOverError(ValidationError):
    """Action submitted after the game finished."""
    code: str = "GAME_OVER"


class UnknownSkillError(ValidationError):
    """Skill name is not one of scatter, remove, rewind."""
    code: str = "UNKNOWN_SKILL"


class SkillAlreadyUsedError(ValidationError):
    """Player has already spent this skill in the current game."""
    code: str = "SKILL_ALREADY_USED"

    def __init__(
        self,
        message: str,
        skill: str,
        player: int,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.skill = skill
        self.player = player
        self.context["skill"] = skill
        self.context["player"] = int(player)


class InvalidTargetError(ValidationError):
    """Explicit skill targets do not name valid pieces."""
    code: str = "INVALID_TARGET"


class InsufficientResourcesError(ValidationError):
    """The board or history cannot supply what a skill needs.

    Attributes:
        resource: Which resource ran short ("pieces", "space", "history")
        required: Amount the operation needed
        available: Amount actually present
    """
    code: str = "INSUFFICIENT_RESOURCES"
    resource: str = "resources"

    def __init__(
        self,
        message: str,
        required: int | None = None,
        available: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.required = required
        self.available = available
        self.context["resource"] = self.resource
        if required is not None:
            self.context["required"] = required
        if available is not None:
            self.context["available"] = available


class InsufficientPiecesError(InsufficientResourcesError):
    """Not enough stones on the board."""
    resource = "pieces"


class InsufficientSpaceError(InsufficientResourcesError):
    """Not enough empty cells to relocate stones into."""
    resource = "space"


class InsufficientHistoryError(InsufficientResourcesError):
    """History holds too few snapshots to rewind the requested steps."""
    code: str = "INSUFFICIENT_HISTORY"
    resource = "history"


# =============================================================================
# Invariant Errors
# =============================================================================


class InvalidStateError(GomokuError):
    """Corrupted or unexpected engine state.

    Raised when an internal invariant is found broken (wrong board
    dimensions in a snapshot, a skill flag reverting to unused). Indicates
    a bug; callers log it, count it and reject the action.
    """
    code: str = "INVARIANT_VIOLATION"

    def __init__(
        self,
        message: str,
        invariant: str = "unknown",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.invariant = invariant
        self.context["invariant"] = invariant


class ConfigurationError(GomokuError):
    """Invalid engine configuration."""
    code: str = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.config_key = config_key
        if config_key:
            self.context["config_key"] = config_key


# =============================================================================
# Advisor Errors
# =============================================================================


class AdvisorError(GomokuError):
    """Base class for external advisor failures.

    Always recovered inside the decision pipeline.
    """
    code: str = "ADVISOR_ERROR"


class AdvisorTimeoutError(AdvisorError):
    """Advisor did not answer within the hard timeout."""
    code: str = "ADVISOR_TIMEOUT"

    def __init__(
        self,
        message: str,
        timeout_seconds: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.timeout_seconds = timeout_seconds
        if timeout_seconds is not None:
            self.context["timeout_seconds"] = timeout_seconds


class AdvisorTransportError(AdvisorError):
    """Network or HTTP failure talking to the advisor."""
    code: str = "ADVISOR_TRANSPORT"

    def __init__(
        self,
        message: str,
        status: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.status = status
        if status is not None:
            self.context["status"] = status


class AdvisorResponseError(AdvisorError):
    """Advisor reply could not be parsed into the expected shape."""
    code: str = "ADVISOR_MALFORMED"


class AdvisorValidationError(AdvisorError):
    """Advisor reply parsed but does not fit the current board."""
    code: str = "ADVISOR_INVALID"
