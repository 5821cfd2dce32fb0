"""Game engine facade for the Gomoku skills engine.

``GameEngine`` is the single entry point a controller talks to. It owns the
board, the snapshot history, the skill usage record, the turn state, the
skill engine and the win detector for one game, and exposes:

- ``apply_move(x, y, player)`` -> ActionResult
- ``use_skill(skill, player, params)`` -> ActionResult
- ``rewind(steps)`` -> RewindResult
- ``get_state()`` -> Snapshot (read-only)
- ``check_game_end(last_move)`` -> GameEndResult

Validation failures never escape as exceptions: they are converted into
rejected results carrying an ``ErrorCode`` and a reason string, and the
state is left untouched. Internal invariant violations are logged, counted
and reported as a rejected action with ``INVARIANT_VIOLATION``.

Turn sequencing belongs to the controller. The engine only refuses moves
out of turn, on occupied cells, off the board, or after the game ended.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Union

from .board_manager import BoardStore
from .config import EngineConfig
from .errors import (
    GameOverError,
    InsufficientHistoryError,
    InsufficientResourcesError,
    InvalidStateError,
    NotPlayersTurnError,
    ValidationError,
)
from .history import HistoryStore, Snapshot
from .metrics import ACTIVE_GAMES, record_game_outcome, record_invariant_violation
from .models import (
    PLAYERS,
    ActionResult,
    CellState,
    ErrorCode,
    GameEndResult,
    GameStatus,
    Move,
    RewindResult,
    SkillType,
)
from .skills import SkillEngine, parse_skill, parse_steps
from .state import SkillUsageRecord, TurnState
from .win_detector import MoveLike, WinDetector

logger = logging.getLogger(__name__)

__all__ = ["GameEngine"]


def _error_code(error: ValidationError) -> ErrorCode:
    if isinstance(error, InsufficientResourcesError) and not isinstance(error, InsufficientHistoryError):
        return ErrorCode.INSUFFICIENT_RESOURCES
    return ErrorCode(error.code)


def _rejected(error: ValidationError, code: Optional[ErrorCode] = None) -> ActionResult:
    detail = error.context.get("resource") if isinstance(error, InsufficientResourcesError) else None
    return ActionResult(ok=False, error=code or _error_code(error), reason=error.message, detail=detail)


def _invariant_rejection(error: InvalidStateError) -> ActionResult:
    return ActionResult(ok=False, error=ErrorCode.INVARIANT_VIOLATION, reason=error.message, detail=error.invariant)


class GameEngine:
    """One game of 15x15 five-in-a-row with skills."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        game_id: str = "",
    ):
        self.config = config or EngineConfig()
        if rng is None:
            rng = random.Random(seed if seed is not None else self.config.seed)
        self.rng = rng
        self.game_id = game_id
        self.board = BoardStore(self.config.board_size)
        self.history = HistoryStore(self.config.history_capacity, self.config.board_size)
        self.usage = SkillUsageRecord()
        self.turn = TurnState()
        self.win_detector = WinDetector(self.config.win_length)
        self.skills = SkillEngine(self.board, self.history, self.usage, self.turn, self.rng, self.config)
        self.last_result: Optional[GameEndResult] = None
        self._record_initial()
        ACTIVE_GAMES.inc()

    def _record_initial(self) -> None:
        self.history.record(self.board, self.turn.current_player, self.usage, 0, action="start")

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def current_player(self) -> CellState:
        return self.turn.current_player

    @property
    def move_count(self) -> int:
        return self.turn.move_count

    @property
    def state_version(self) -> int:
        """Increments on every state change, including reset and rewind."""
        return self.turn.version

    @property
    def is_over(self) -> bool:
        return self.turn.status is GameStatus.FINISHED

    @property
    def winner(self) -> Optional[CellState]:
        return self.turn.winner

    def available_skills(self, player: CellState) -> List[SkillType]:
        return self.skills.available_skills(player)

    def usable_skills(self, player: CellState) -> List[SkillType]:
        """Unused skills whose preconditions currently hold."""
        usable = []
        pieces = self.board.piece_count()
        for skill in self.available_skills(player):
            if skill is SkillType.REWIND:
                if self.history.can_rewind(self.config.rewind_steps):
                    usable.append(skill)
            elif skill is SkillType.SCATTER:
                if pieces and len(self.board.empty_cells()) >= min(self.config.scatter_count, pieces):
                    usable.append(skill)
            elif pieces:
                usable.append(skill)
        return usable

    def get_state(self) -> Snapshot:
        """The live state as a read-only snapshot.

        Board, turn and skill usage come from the live game. Sequence index and
        action label come from the history tail.
        """
        tail = self.history.tail
        if tail is None:
            raise InvalidStateError("history is empty", invariant="history_nonempty")
        return Snapshot.capture(
            self.board,
            self.turn.current_player,
            self.usage,
            self.turn.move_count,
            tail.sequence_index,
            action=tail.action,
        )

    def recent_moves(self, count: int = 6) -> List[Move]:
        return self.history.recent_moves(count)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _player(self, player: Union[int, CellState]) -> CellState:
        try:
            resolved = CellState(int(player))
        except (TypeError, ValueError):
            resolved = CellState.EMPTY
        if resolved not in PLAYERS:
            raise NotPlayersTurnError(f"{player!r} is not a player", context={"player": repr(player)})
        return resolved

    def _require_turn(self, player: CellState) -> None:
        if self.is_over:
            raise GameOverError("the game is over", context={"winner": self.turn.winner})
        if player is not self.turn.current_player:
            raise NotPlayersTurnError(
                f"it is player {int(self.turn.current_player)}'s turn",
                context={"player": int(player), "current": int(self.turn.current_player)},
            )

    def apply_move(self, x: Any, y: Any, player: Union[int, CellState]) -> ActionResult:
        """Place a stone for ``player`` and report whether the game ended."""
        try:
            mover = self._player(player)
            self._require_turn(mover)
            self.board.place(x, y, mover)
            self.turn.move_count += 1
            self.turn.switch_turn()
            self.turn.bump()
            self.history.record(self.board, self.turn.current_player, self.usage, self.turn.move_count)
        except ValidationError as e:
            logger.debug("Rejected move (%r, %r) by %r: %s", x, y, player, e)
            return _rejected(e)
        except InvalidStateError as e:
            return self._contain(e, "apply_move")

        move = Move(x=int(x), y=int(y), player=mover)
        game_end = self.check_game_end(move)
        return ActionResult(ok=True, move=move, affected_cells=[move.position], game_end=game_end)

    def use_skill(
        self,
        skill: Any,
        player: Union[int, CellState],
        params: Optional[Mapping[str, Any]] = None,
    ) -> ActionResult:
        """Activate a skill for ``player``.

        ``params`` may carry ``targets`` (list of ``[x, y]`` for scatter and
        remove) and ``steps`` (rewind depth; defaults to the configured value).
        Skills do not pass the turn.
        """
        params = dict(params or {})
        try:
            resolved = parse_skill(skill)
            user = self._player(player)
            self._require_turn(user)
            outcome = self.skills.use(resolved, user, targets=params.get("targets"), steps=params.get("steps"))
        except InsufficientHistoryError as e:
            return _rejected(e, ErrorCode.INSUFFICIENT_RESOURCES)
        except ValidationError as e:
            logger.debug("Rejected skill %r by %r: %s", skill, player, e)
            return _rejected(e)
        except InvalidStateError as e:
            return self._contain(e, "use_skill")

        game_end = None
        if resolved is SkillType.SCATTER:
            game_end = self._scan_game_end()
        return ActionResult(
            ok=True,
            skill=resolved,
            affected_cells=outcome.affected,
            game_end=game_end,
        )

    def rewind(self, steps: Optional[int] = None, player: Optional[Union[int, CellState]] = None) -> RewindResult:
        """Step the game back ``steps`` snapshots.

        With ``player`` this is that player's rewind skill (turn-checked and
        spent on success). Without it, it is a controller-level undo that
        spends nothing.
        """
        try:
            steps = parse_steps(steps, self.config.rewind_steps)
            if player is not None:
                user = self._player(player)
                self._require_turn(user)
                outcome = self.skills.use(SkillType.REWIND, user, steps=steps)
                snapshot = outcome.restored
            else:
                snapshot = self.history.rewind(steps)
                self.skills.restore(snapshot)
                self.turn.bump()
        except ValidationError as e:
            return RewindResult(ok=False, error=_error_code(e), reason=e.message)
        except InvalidStateError as e:
            rejected = self._contain(e, "rewind")
            return RewindResult(ok=False, error=rejected.error, reason=rejected.reason)

        self.turn.status = GameStatus.ACTIVE
        self.turn.winner = None
        self.last_result = None
        return RewindResult(ok=True, snapshot=snapshot.to_view())

    def reset(self) -> None:
        """Start a fresh game in place; outstanding decisions become stale."""
        self.board.clear()
        self.history.clear()
        self.usage = SkillUsageRecord()
        version = self.turn.version
        self.turn = TurnState(version=version + 1)
        self.skills = SkillEngine(self.board, self.history, self.usage, self.turn, self.rng, self.config)
        self.last_result = None
        self._record_initial()
        logger.info("Game %s reset", self.game_id or "-")

    def close(self) -> None:
        ACTIVE_GAMES.dec()

    # ------------------------------------------------------------------
    # Game end
    # ------------------------------------------------------------------

    def check_game_end(self, last_move: MoveLike) -> GameEndResult:
        """Winner through ``last_move``, else draw on a full board, else none."""
        winner = self.win_detector.check_win(self.board, last_move)
        if winner is not None:
            line = self.win_detector.winning_line(self.board, last_move)
            return self._finish(GameEndResult(winner=winner, winning_line=line))
        if self.win_detector.is_draw(self.board):
            return self._finish(GameEndResult(draw=True))
        return GameEndResult()

    def _scan_game_end(self) -> GameEndResult:
        winner, line = self.win_detector.scan_for_winner(self.board)
        if winner is not None:
            return self._finish(GameEndResult(winner=winner, winning_line=line))
        if self.win_detector.is_draw(self.board):
            return self._finish(GameEndResult(draw=True))
        return GameEndResult()

    def _finish(self, result: GameEndResult) -> GameEndResult:
        if not self.is_over:
            self.turn.status = GameStatus.FINISHED
            self.turn.winner = result.winner
            self.turn.bump()
            record_game_outcome(result.winner, result.draw)
            if result.winner is not None:
                logger.info("Game %s won by player %d", self.game_id or "-", int(result.winner))
            else:
                logger.info("Game %s drawn", self.game_id or "-")
        self.last_result = result
        return result

    # ------------------------------------------------------------------
    # Invariant containment
    # ------------------------------------------------------------------

    def _contain(self, error: InvalidStateError, action: str) -> ActionResult:
        logger.error("Invariant violation during %s: %s", action, error, exc_info=True)
        record_invariant_violation(error.invariant)
        return _invariant_rejection(error)

    def summary(self) -> Dict[str, Any]:
        return {
            "gameId": self.game_id,
            "status": self.turn.status.value,
            "winner": int(self.turn.winner) if self.turn.winner is not None else None,
            "currentPlayer": int(self.turn.current_player),
            "moveCount": self.turn.move_count,
            "stateVersion": self.turn.version,
            "skillUsage": self.usage.to_dict(),
            "availableSkills": {
                str(int(p)): [s.value for s in self.available_skills(p)] for p in PLAYERS
            },
            "lastMove": self._last_move(),
        }

    def _last_move(self) -> Optional[Dict[str, int]]:
        moves = self.recent_moves(1)
        if not moves:
            return None
        return {"x": moves[-1].x, "y": moves[-1].y, "player": int(moves[-1].player)}
