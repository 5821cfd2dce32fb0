"""Unified logging configuration.

One place to configure loggers for the service, the CLI and tests so every
entry point produces the same record shape.

Usage:
    from gomoku_ai.core.logging_config import setup_logging, get_logger

    logger = setup_logging("gomoku_ai", level="DEBUG", format_style="compact")
    get_logger(__name__).info("ready")
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

__all__ = [
    "COMPACT_FORMAT",
    "DEFAULT_FORMAT",
    "DETAILED_FORMAT",
    "STRUCTURED_FORMAT",
    "LogContext",
    "configure_third_party_loggers",
    "get_logger",
    "setup_logging",
]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
COMPACT_FORMAT = "%(asctime)s %(levelname).1s %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(filename)s:%(lineno)d - %(funcName)s - %(message)s"
)
STRUCTURED_FORMAT = (
    '{"time": "%(asctime)s", "logger": "%(name)s", '
    '"level": "%(levelname)s", "message": "%(message)s"}'
)

_FORMATS = {
    "default": DEFAULT_FORMAT,
    "compact": COMPACT_FORMAT,
    "detailed": DETAILED_FORMAT,
    "structured": STRUCTURED_FORMAT,
}

NOISY_PACKAGES = (
    "urllib3",
    "asyncio",
    "aiohttp",
    "httpx",
    "httpcore",
    "uvicorn.access",
    "multipart",
)

# Marker attribute set on handlers installed by setup_logging.
_HANDLER_TAG = "_gomoku_handler"


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(
    name: str,
    level: Union[int, str] = logging.INFO,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    format_style: str = "default",
    propagate: bool = False,
) -> logging.Logger:
    """Configure and return the named logger.

    Calling this again for the same name updates the level but never stacks
    another handler of the same kind.

    Args:
        name: Logger name
        level: Level as int or name ("DEBUG", "INFO", ...)
        console: Attach a stderr handler
        log_file: Explicit log file path
        log_dir: Directory for ``<name>.log`` when no log_file is given
        format_style: One of default, compact, detailed, structured
        propagate: Whether records also reach ancestor loggers

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    logger.propagate = propagate

    formatter = logging.Formatter(_FORMATS.get(format_style, DEFAULT_FORMAT))
    installed = [h for h in logger.handlers if getattr(h, _HANDLER_TAG, False)]

    if console and not any(
        type(h) is logging.StreamHandler for h in installed
    ):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, True)
        logger.addHandler(handler)

    if log_file is None and log_dir is not None:
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"{name.replace('.', '_')}.log"

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        already = any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename) == path.resolve()
            for h in installed
        )
        if not already:
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            setattr(file_handler, _HANDLER_TAG, True)
            logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a module logger without attaching handlers."""
    return logging.getLogger(name)


def configure_third_party_loggers(
    quiet: bool = True,
    verbose_packages: Optional[Iterable[str]] = None,
) -> None:
    """Raise chatty dependency loggers to WARNING unless listed as verbose."""
    if not quiet:
        return
    keep = set(verbose_packages or ())
    for package in NOISY_PACKAGES:
        if package in keep:
            continue
        logging.getLogger(package).setLevel(logging.WARNING)


class LogContext:
    """Temporarily change a logger's level.

    Example:
        with LogContext(logger, logging.DEBUG):
            pipeline.run_turn(...)
    """

    def __init__(self, logger: logging.Logger, level: Union[int, str]):
        self.logger = logger
        self.level = _resolve_level(level)
        self._previous: Optional[int] = None

    def __enter__(self) -> logging.Logger:
        self._previous = self.logger.level
        self.logger.setLevel(self.level)
        return self.logger

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._previous is not None:
            self.logger.setLevel(self._previous)
