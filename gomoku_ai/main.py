"""
Gomoku Skills Engine - FastAPI Application
Hosts in-memory game sessions and plays AI turns on request
"""

import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field

from . import __version__
from .ai.advisor import MoveAdvisor
from .ai.pipeline import DecisionPipeline
from .config import EngineConfig
from .core.logging_config import configure_third_party_loggers
from .errors import ConfigurationError
from .game_engine import GameEngine
from .models import Difficulty

# Configure logging
logging.basicConfig(
    level=os.getenv("GOMOKU_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
configure_third_party_loggers()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Gomoku Skills Engine",
    description="Five-in-a-row with scatter, remove and rewind skills, plus an AI opponent",
    version=__version__,
)

cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

MAX_GAMES = int(os.getenv("GOMOKU_MAX_GAMES", "256"))


@dataclass
class GameSession:
    engine: GameEngine
    pipeline: DecisionPipeline
    created_at: float
    last_access: float


_games_lock = threading.Lock()
games: Dict[str, GameSession] = {}


def base_config() -> EngineConfig:
    """Engine config from ``GOMOKU_*`` variables, or a YAML file named by GOMOKU_CONFIG_FILE."""
    path = os.getenv("GOMOKU_CONFIG_FILE")
    if path:
        return EngineConfig.from_yaml(path)
    return EngineConfig.from_env()


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------


class CreateGameRequest(BaseModel):
    """New-game options; omitted fields fall back to the service config"""
    difficulty: Optional[Difficulty] = None
    evaluator_variant: Optional[str] = Field(default=None, alias="evaluatorVariant")
    seed: Optional[int] = None

    class Config:
        populate_by_name = True


class MoveRequest(BaseModel):
    """Stone placement; coordinates are validated by the engine"""
    x: Any
    y: Any
    player: int


class SkillRequest(BaseModel):
    skill: str
    player: int
    targets: Optional[List[List[int]]] = None
    steps: Optional[int] = None


class RewindRequest(BaseModel):
    """Undo ``steps`` snapshots; with ``player`` it spends that player's rewind"""
    steps: Optional[int] = None
    player: Optional[int] = None


class AITurnRequest(BaseModel):
    player: Optional[int] = None


# -----------------------------------------------------------------------------
# Session helpers
# -----------------------------------------------------------------------------


def _get_session(game_id: str) -> GameSession:
    with _games_lock:
        session = games.get(game_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"game {game_id} not found")
        session.last_access = time.time()
        return session


def _evict_oldest() -> None:
    """Drop least recently used sessions beyond MAX_GAMES. Caller holds the lock."""
    while len(games) > MAX_GAMES:
        oldest = min(games, key=lambda gid: games[gid].last_access)
        games.pop(oldest).engine.close()
        logger.info("Evicted idle game %s", oldest)


def _state_body(session: GameSession) -> Dict[str, Any]:
    engine = session.engine
    body = engine.summary()
    body["snapshot"] = engine.get_state().to_view().model_dump(by_alias=True, mode="json")
    if engine.last_result is not None:
        body["gameEnd"] = engine.last_result.model_dump(by_alias=True, mode="json")
    return body


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@app.get("/")
async def root():
    """Service banner"""
    return {
        "service": "Gomoku Skills Engine",
        "status": "running",
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Health check for container orchestration"""
    return {"status": "healthy", "games": len(games)}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics in the text exposition format."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.post("/games")
async def create_game(request: Optional[CreateGameRequest] = None):
    """Start a new game and return its id and initial state."""
    request = request or CreateGameRequest()
    overrides: Dict[str, Any] = {}
    if request.difficulty is not None:
        overrides["difficulty"] = request.difficulty.value
    if request.evaluator_variant is not None:
        overrides["evaluator_variant"] = request.evaluator_variant
    if request.seed is not None:
        overrides["seed"] = request.seed
    try:
        config = base_config().with_overrides(**overrides)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict())

    game_id = uuid.uuid4().hex
    engine = GameEngine(config, game_id=game_id)
    pipeline = DecisionPipeline(engine, advisor=MoveAdvisor.from_config(config))
    now = time.time()
    session = GameSession(engine, pipeline, created_at=now, last_access=now)
    with _games_lock:
        games[game_id] = session
        _evict_oldest()
    logger.info("Created game %s (difficulty=%s, variant=%s)", game_id, config.difficulty, config.evaluator_variant)
    return {"gameId": game_id, "config": config.to_dict(), "state": _state_body(session)}


@app.get("/games/{game_id}/state")
async def get_state(game_id: str):
    return _state_body(_get_session(game_id))


@app.post("/games/{game_id}/move")
async def apply_move(game_id: str, request: MoveRequest):
    """Place a stone. Rejections come back as ``ok: false`` with an error code."""
    session = _get_session(game_id)
    result = session.engine.apply_move(request.x, request.y, request.player)
    return result.model_dump(by_alias=True, mode="json")


@app.post("/games/{game_id}/skill")
async def use_skill(game_id: str, request: SkillRequest):
    session = _get_session(game_id)
    params: Dict[str, Any] = {}
    if request.targets is not None:
        params["targets"] = [tuple(cell) for cell in request.targets]
    if request.steps is not None:
        params["steps"] = request.steps
    result = session.engine.use_skill(request.skill, request.player, params)
    return result.model_dump(by_alias=True, mode="json")


@app.post("/games/{game_id}/rewind")
async def rewind(game_id: str, request: Optional[RewindRequest] = None):
    request = request or RewindRequest()
    session = _get_session(game_id)
    result = session.engine.rewind(request.steps, player=request.player)
    return result.model_dump(by_alias=True, mode="json")


@app.post("/games/{game_id}/ai-turn")
async def ai_turn(game_id: str, request: Optional[AITurnRequest] = None):
    """Let the AI play one full turn for the side to move (or ``player``)."""
    request = request or AITurnRequest()
    session = _get_session(game_id)
    try:
        outcome = await session.pipeline.run_turn(request.player)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return outcome.to_dict()


@app.get("/games/{game_id}/history")
async def get_history(game_id: str, recent: int = 6):
    session = _get_session(game_id)
    history = session.engine.history
    return {
        "stats": history.stats(),
        "recentMoves": [m.model_dump(mode="json") for m in history.recent_moves(recent)],
        "snapshots": [s.to_view().model_dump(by_alias=True, mode="json") for s in history],
    }


@app.delete("/games/{game_id}")
async def delete_game(game_id: str):
    with _games_lock:
        session = games.pop(game_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail=f"game {game_id} not found")
    session.engine.close()
    logger.info("Deleted game %s", game_id)
    return {"status": "deleted", "gameId": game_id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
