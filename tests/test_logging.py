"""Tests for logging utilities."""

import logging
from io import StringIO

import pytest

from qpmanifold.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)


@pytest.fixture(autouse=True)
def _restore_level():
    yield
    configure_logging(level=logging.WARNING)


def test_get_logger_returns_logger():
    """Test that get_logger returns a namespaced logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "qpmanifold.test_module"


def test_get_logger_caching():
    """Test that get_logger caches loggers."""
    assert get_logger("test_module") is get_logger("test_module")


def test_get_logger_package_default():
    assert get_logger().name == "qpmanifold"
    assert get_logger("qpmanifold.solver").name == "qpmanifold.solver"


def test_set_log_level_string():
    """Test that set_log_level accepts string levels."""
    logger = get_logger("test_module")

    set_log_level("DEBUG")
    assert logger.level == logging.DEBUG

    set_log_level("ERROR")
    assert logger.level == logging.ERROR


def test_configure_logging_redirects_output():
    logger = get_logger("test_module")
    stream = StringIO()
    configure_logging(level=logging.DEBUG, stream=stream)

    logger.debug("Debug message")

    output = stream.getvalue()
    assert "Debug message" in output
    assert "[DEBUG] qpmanifold.test_module" in output


def test_logger_does_not_propagate():
    assert get_logger("test_module").propagate is False


def test_solver_debug_messages(solved):
    from qpmanifold import get_preset

    get_logger("qpmanifold.solver")
    stream = StringIO()
    configure_logging(level=logging.DEBUG, stream=stream)
    solved(get_preset("simple2D"))
    assert "qpmanifold.solver" in stream.getvalue()


def test_level_from_environment(monkeypatch):
    import qpmanifold.logging as qlog

    monkeypatch.setenv("QPMANIFOLD_LOG_LEVEL", "debug")
    assert qlog._level_from_env() == logging.DEBUG
    monkeypatch.setenv("QPMANIFOLD_LOG_LEVEL", "not-a-level")
    assert qlog._level_from_env() == logging.WARNING
