"""Engine configuration.

A single frozen :class:`EngineConfig` holds every tunable of the engine.
It can be built from environment variables (``GOMOKU_*``), from a YAML
file, or from a plain mapping. Values are validated once on construction
so the rest of the engine can trust them.

Environment example::

    export GOMOKU_DIFFICULTY=hard
    export GOMOKU_REWIND_STEPS=2
    export GOMOKU_ADVISOR_URL=https://advisor.example/v1/chat
    export GOMOKU_USE_ADVISOR_FOR_MOVES=true
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .errors import ConfigurationError
from .models import Difficulty

logger = logging.getLogger(__name__)

ENV_PREFIX = "GOMOKU_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

EVALUATOR_VARIANTS = ("standard", "adaptive")


@dataclass(frozen=True)
class EngineConfig:
    """All engine tunables.

    Board geometry, skill parameters, the skill-use policy thresholds and the
    external advisor connection live together so a game session can be
    reproduced from one object.
    """

    board_size: int = 15
    win_length: int = 5
    history_capacity: int = 100

    scatter_count: int = 5
    remove_count: int = 3
    rewind_steps: int = 2

    # Skill-use policy
    early_game_threshold: int = 16
    skill_value_threshold: float = 0.4
    advisor_value_floor: float = 0.3
    opening_piece_limit: int = 5

    difficulty: str = Difficulty.NORMAL.value
    evaluator_variant: str = "standard"
    position_values_path: Optional[str] = None
    seed: Optional[int] = None

    # External advisor
    advisor_url: Optional[str] = None
    advisor_api_key: Optional[str] = None
    advisor_model: str = "qwen-plus"
    advisor_timeout_seconds: float = 5.0
    advisor_max_retries: int = 3
    advisor_backoff_seconds: float = 1.0
    use_advisor_for_moves: bool = False
    use_advisor_for_skills: bool = True

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.win_length < 3:
            raise ConfigurationError("win_length must be at least 3", config_key="win_length")
        if self.board_size < self.win_length:
            raise ConfigurationError(
                f"board_size {self.board_size} is smaller than win_length {self.win_length}",
                config_key="board_size",
            )
        if self.rewind_steps < 1:
            raise ConfigurationError("rewind_steps must be positive", config_key="rewind_steps")
        if self.history_capacity < self.rewind_steps + 1:
            raise ConfigurationError(
                "history_capacity must hold at least rewind_steps + 1 snapshots",
                config_key="history_capacity",
            )
        if self.scatter_count < 1 or self.remove_count < 1:
            raise ConfigurationError("skill target counts must be positive", config_key="scatter_count")
        if not 0.0 <= self.advisor_value_floor <= self.skill_value_threshold <= 1.0:
            raise ConfigurationError(
                "expected 0 <= advisor_value_floor <= skill_value_threshold <= 1",
                config_key="skill_value_threshold",
            )
        if self.difficulty not in {d.value for d in Difficulty}:
            raise ConfigurationError(f"unknown difficulty {self.difficulty!r}", config_key="difficulty")
        if self.evaluator_variant not in EVALUATOR_VARIANTS:
            raise ConfigurationError(
                f"unknown evaluator variant {self.evaluator_variant!r}",
                config_key="evaluator_variant",
            )
        if self.advisor_timeout_seconds <= 0:
            raise ConfigurationError("advisor timeout must be positive", config_key="advisor_timeout_seconds")
        if self.advisor_max_retries < 1:
            raise ConfigurationError("advisor_max_retries must be at least 1", config_key="advisor_max_retries")

    @property
    def advisor_enabled(self) -> bool:
        return bool(self.advisor_url)

    @property
    def center(self) -> int:
        return self.board_size // 2

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with the given fields replaced."""
        _check_keys(overrides)
        return replace(self, **overrides)

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        data = asdict(self)
        if redact and data.get("advisor_api_key"):
            data["advisor_api_key"] = "***"
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """Build from a mapping, coercing string values and rejecting unknown keys."""
        _check_keys(data)
        kwargs = {
            f.name: _coerce(f.name, str(f.type), data[f.name])
            for f in fields(cls)
            if f.name in data
        }
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
        """Build from ``GOMOKU_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None:
                data[f.name] = raw
        if data:
            logger.debug("Engine config overrides from environment: %s", sorted(data))
        return cls.from_mapping(data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineConfig":
        """Load from a YAML file whose top level is a mapping of field names."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except OSError as e:
            raise ConfigurationError(f"cannot read config file: {e}", context={"path": str(path)}) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML: {e}", context={"path": str(path)}) from e
        if not isinstance(data, dict):
            raise ConfigurationError("config file must contain a mapping", context={"path": str(path)})
        return cls.from_mapping(data)


def _check_keys(data: Mapping[str, Any]) -> None:
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(
            f"unknown configuration keys: {', '.join(unknown)}",
            config_key=unknown[0],
        )


def _coerce(name: str, type_name: str, value: Any) -> Any:
    optional = type_name.startswith("Optional[")
    base = type_name[len("Optional["):-1] if optional else type_name
    if value is None:
        if optional:
            return None
        raise ConfigurationError(f"{name} may not be null", config_key=name)
    if optional and isinstance(value, str) and value.strip().lower() in {"", "none", "null"}:
        return None
    try:
        if base == "bool":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE_VALUES:
                return True
            if text in _FALSE_VALUES:
                return False
            raise ValueError(f"not a boolean: {value!r}")
        if base == "int":
            if isinstance(value, bool):
                raise ValueError("booleans are not integers")
            return int(value)
        if base == "float":
            return float(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid value for {name}: {e}", config_key=name) from e
