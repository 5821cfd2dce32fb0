"""Gomoku with skills: a 15x15 five-in-a-row engine with scatter, remove and rewind."""

from gomoku_ai.config import EngineConfig
from gomoku_ai.game_engine import GameEngine
from gomoku_ai.models import CellState, SkillType

__version__ = "0.1.0"

__all__ = ["CellState", "EngineConfig", "GameEngine", "SkillType", "__version__"]
