"""Tests for the stderr logging setup."""

import logging

import pytest

from mindcapsule._logging import (
    LOG_LEVEL_ENV,
    PACKAGE_LOGGER,
    configure_logging,
    level_from_env,
    set_quiet_mode,
)


@pytest.fixture
def package_logger():
    """The package logger with its handlers and level restored afterwards."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


class TestLevelFromEnv:
    def test_default(self, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        assert level_from_env() == logging.WARNING

    def test_named_level(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "debug")
        assert level_from_env() == logging.DEBUG

    def test_unknown_name(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")
        assert level_from_env() == logging.WARNING


class TestConfigure:
    def test_single_handler(self, package_logger, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "INFO")

        configure_logging()
        configure_logging()

        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.INFO
        assert package_logger.propagate is False

    def test_explicit_level_overrides(self, package_logger, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        configure_logging()
        configure_logging(logging.DEBUG)

        assert package_logger.level == logging.DEBUG
        assert package_logger.handlers[0].level == logging.DEBUG

    def test_quiet_mode_round_trip(self, package_logger, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "INFO")
        configure_logging()

        set_quiet_mode(True)
        assert package_logger.level == logging.ERROR

        set_quiet_mode(False)
        assert package_logger.level == logging.INFO
