"""Log setup for reviewwatch.

Two streams share stderr: the usual module loggers (``reviewwatch.<area>``)
with the configured format, and the agent's thoughts on
``reviewwatch.thoughts`` with a short format of their own so a long review
reads like a transcript. HTTP client chatter is held at WARNING unless
running at DEBUG.

Configure via config.yaml (logging.level, logging.format,
logging.thoughts_format) or env (LOGGING_LEVEL, LOGGING_FORMAT, ...).
"""

import logging
import sys

from reviewwatch.config import LoggingConfig

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_THOUGHTS_FORMAT = "%(asctime)s  %(message)s"

THOUGHTS_LOGGER = "reviewwatch.thoughts"
HTTP_LOGGERS = ("urllib3", "requests")


def _resolve_level(level: str) -> int:
    """Level constant for a name; unknown names mean INFO."""
    return LEVELS.get(level.upper().strip(), logging.INFO)


class ReviewWatchLogging:
    """Applies LoggingConfig to the root, thoughts and HTTP loggers."""

    def __init__(self, config: LoggingConfig) -> None:
        self._level = _resolve_level(config.level)
        self._format = config.format or DEFAULT_FORMAT
        self._thoughts_format = config.thoughts_format or DEFAULT_THOUGHTS_FORMAT
        self._quiet_http = config.quiet_http

    def setup(self) -> None:
        logging.basicConfig(level=self._level, format=self._format, force=True)

        thoughts = logging.getLogger(THOUGHTS_LOGGER)
        for handler in list(thoughts.handlers):
            thoughts.removeHandler(handler)
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(self._thoughts_format))
        thoughts.addHandler(handler)
        thoughts.propagate = False

        http_level = logging.WARNING if self._quiet_http and self._level > logging.DEBUG else logging.NOTSET
        for name in HTTP_LOGGERS:
            logging.getLogger(name).setLevel(http_level)
