"""Tests for gomoku_ai/core/logging_config.py - Unified logging configuration."""

import logging

import pytest

from gomoku_ai.core.logging_config import (
    COMPACT_FORMAT,
    DEFAULT_FORMAT,
    DETAILED_FORMAT,
    NOISY_PACKAGES,
    STRUCTURED_FORMAT,
    LogContext,
    configure_third_party_loggers,
    get_logger,
    setup_logging,
)


class TestSetupLogging:
    """Test setup_logging function."""

    def test_returns_logger(self):
        logger = setup_logging("gomoku_test_1")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "gomoku_test_1"
        assert logger.level == logging.INFO

    def test_level_as_string(self):
        logger = setup_logging("gomoku_test_2", level="warning")
        assert logger.level == logging.WARNING

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logging("gomoku_test_3", level="LOUD")

    def test_repeated_setup_does_not_stack_handlers(self):
        logger = setup_logging("gomoku_test_4")
        count = len(logger.handlers)
        again = setup_logging("gomoku_test_4", level=logging.DEBUG)
        assert again is logger
        assert len(again.handlers) == count
        assert again.level == logging.DEBUG

    def test_console_disabled(self):
        logger = setup_logging("gomoku_test_5", console=False)
        assert not [h for h in logger.handlers if type(h) is logging.StreamHandler]

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "nested" / "engine.log"
        logger = setup_logging("gomoku_test_6", log_file=log_file, console=False)
        logger.info("placed a stone")
        for handler in logger.handlers:
            handler.flush()
        assert "placed a stone" in log_file.read_text(encoding="utf-8")
        setup_logging("gomoku_test_6", log_file=log_file, console=False)
        assert len([h for h in logger.handlers if isinstance(h, logging.FileHandler)]) == 1

    def test_log_dir(self, tmp_path):
        setup_logging("gomoku.test7", log_dir=tmp_path, console=False)
        assert (tmp_path / "gomoku_test7.log").exists()

    def test_propagate(self):
        assert setup_logging("gomoku_test_8").propagate is False
        assert setup_logging("gomoku_test_9", propagate=True).propagate is True

    @pytest.mark.parametrize(
        "style,fmt",
        [
            ("default", DEFAULT_FORMAT),
            ("compact", COMPACT_FORMAT),
            ("detailed", DETAILED_FORMAT),
            ("structured", STRUCTURED_FORMAT),
            ("nonexistent", DEFAULT_FORMAT),
        ],
    )
    def test_format_styles(self, style, fmt):
        logger = setup_logging(f"gomoku_format_{style}")
        assert logger.handlers[0].formatter._fmt == fmt


class TestGetLogger:
    def test_same_logger_for_same_name(self):
        assert get_logger("gomoku_get") is get_logger("gomoku_get")


class TestConfigureThirdPartyLoggers:
    def test_noisy_packages_quieted(self):
        configure_third_party_loggers()
        for package in NOISY_PACKAGES:
            assert logging.getLogger(package).level == logging.WARNING

    def test_verbose_packages_kept(self):
        logging.getLogger("httpx").setLevel(logging.DEBUG)
        configure_third_party_loggers(verbose_packages=["httpx"])
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_not_quiet_is_noop(self):
        logging.getLogger("aiohttp").setLevel(logging.DEBUG)
        configure_third_party_loggers(quiet=False)
        assert logging.getLogger("aiohttp").level == logging.DEBUG


class TestLogContext:
    def test_temporarily_changes_level(self):
        logger = get_logger("gomoku_context")
        logger.setLevel(logging.INFO)
        with LogContext(logger, "DEBUG") as inner:
            assert inner is logger
            assert logger.level == logging.DEBUG
        assert logger.level == logging.INFO

    def test_restores_after_exception(self):
        logger = get_logger("gomoku_context_2")
        logger.setLevel(logging.WARNING)
        with pytest.raises(RuntimeError):
            with LogContext(logger, logging.DEBUG):
                raise RuntimeError("boom")
        assert logger.level == logging.WARNING
