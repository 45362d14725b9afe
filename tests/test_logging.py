"""Tests for reviewwatch.logging (root, thoughts and HTTP loggers)."""

import logging

import pytest

from reviewwatch.config import LoggingConfig
from reviewwatch.logging import (
    DEFAULT_FORMAT,
    DEFAULT_THOUGHTS_FORMAT,
    LEVELS,
    THOUGHTS_LOGGER,
    ReviewWatchLogging,
    _resolve_level,
)


@pytest.fixture(autouse=True)
def restore_loggers():
    root = logging.getLogger()
    thoughts = logging.getLogger(THOUGHTS_LOGGER)
    saved = (list(root.handlers), root.level, list(thoughts.handlers), thoughts.propagate)
    yield
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    thoughts.handlers[:] = saved[2]
    thoughts.propagate = saved[3]
    logging.getLogger("urllib3").setLevel(logging.NOTSET)
    logging.getLogger("requests").setLevel(logging.NOTSET)


def _format(logger: logging.Logger) -> str:
    handler = logger.handlers[0]
    assert handler.formatter is not None
    return handler.formatter._fmt


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("DEBUG", logging.DEBUG),
        ("info", logging.INFO),
        (" warning\t", logging.WARNING),
        ("Error", logging.ERROR),
        ("TRACE", logging.INFO),
        ("", logging.INFO),
    ],
)
def test_resolve_level(name: str, expected: int) -> None:
    """Names are case- and whitespace-insensitive; unknown names mean INFO."""
    assert _resolve_level(name) == expected


def test_supported_levels() -> None:
    assert set(LEVELS) == {"DEBUG", "INFO", "WARNING", "ERROR"}


def test_setup_applies_level_and_format() -> None:
    """setup() replaces existing root handlers (force) with the configured format."""
    ReviewWatchLogging(LoggingConfig(level="DEBUG", format="%(levelname)s | %(message)s")).setup()
    assert logging.root.level == logging.DEBUG
    assert _format(logging.root) == "%(levelname)s | %(message)s"

    ReviewWatchLogging(LoggingConfig(level="ERROR", format="")).setup()
    assert logging.root.level == logging.ERROR
    assert _format(logging.root) == DEFAULT_FORMAT


def test_thoughts_have_own_handler() -> None:
    """Repeated setup keeps a single thoughts handler that does not propagate."""
    ReviewWatchLogging(LoggingConfig(thoughts_format="")).setup()
    ReviewWatchLogging(LoggingConfig(thoughts_format="> %(message)s")).setup()
    thoughts = logging.getLogger(THOUGHTS_LOGGER)
    assert len(thoughts.handlers) == 1
    assert not thoughts.propagate
    assert _format(thoughts) == "> %(message)s"
    assert DEFAULT_THOUGHTS_FORMAT == LoggingConfig().thoughts_format


def test_http_loggers_quiet_unless_debug() -> None:
    ReviewWatchLogging(LoggingConfig(level="INFO")).setup()
    assert logging.getLogger("urllib3").level == logging.WARNING
    ReviewWatchLogging(LoggingConfig(level="DEBUG")).setup()
    assert logging.getLogger("urllib3").level == logging.NOTSET
    ReviewWatchLogging(LoggingConfig(level="INFO", quiet_http=False)).setup()
    assert logging.getLogger("requests").level == logging.NOTSET


def test_module_loggers_inherit_root_level() -> None:
    ReviewWatchLogging(LoggingConfig(level="WARNING", format="%(message)s")).setup()
    log = logging.getLogger("reviewwatch.services.watcher")
    assert log.getEffectiveLevel() == logging.WARNING
    assert not log.isEnabledFor(logging.INFO)


def test_logging_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """LOGGING_* variables override defaults."""
    monkeypatch.setenv("LOGGING_LEVEL", "DEBUG")
    monkeypatch.setenv("LOGGING_FORMAT", "%(message)s")
    monkeypatch.setenv("LOGGING_QUIET_HTTP", "false")
    cfg = LoggingConfig()
    assert cfg.level == "DEBUG"
    assert cfg.format == "%(message)s"
    assert cfg.quiet_http is False
