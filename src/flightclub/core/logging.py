"""
Logging configuration.

All engine loggers live under "flightclub". Handlers installed here carry a
filter that masks bearer tokens, so a token that slips into a message is
never written out in full.
"""

import logging
import re
import sys
from pathlib import Path

from flightclub.security import REDACTED, redact_token

ROOT_LOGGER = "flightclub"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_BEARER = re.compile(r"(Bearer\s+)([^\s,;\"']+)", re.IGNORECASE)

# Chatty libraries that log every request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


class BearerTokenFilter(logging.Filter):
    """Rewrites `Bearer <token>` in log messages to a masked form."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = _BEARER.sub(self._mask, message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True

    @staticmethod
    def _mask(match: re.Match) -> str:
        token = match.group(2)
        if token == REDACTED or "..." in token:
            return match.group(0)
        return f"{match.group(1)}{redact_token(token)}"


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure the flightclub logger with console and optional file output."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    # Re-running setup replaces handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    token_filter = BearerTokenFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    console.addFilter(token_filter)
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(token_filter)
        logger.addHandler(file_handler)

    if level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
