"""Structured logging setup."""

import json
import logging
import sys
from typing import Optional

BASE_LOGGER = "studystreak"


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: log level (DEBUG, INFO, WARNING, ERROR)
        json_format: emit one JSON object per line (recommended in production)
    """
    logger = logging.getLogger(BASE_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # avoid duplicate handlers on reload
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper(), logging.INFO))

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module logger under the application namespace."""
    if name:
        return logging.getLogger(f"{BASE_LOGGER}.{name}")
    return logging.getLogger(BASE_LOGGER)


def log_duration(logger: logging.Logger, operation: str, duration_ms: float, **extra) -> None:
    """Log an operation's duration, at WARNING when it took longer than a second."""
    level = logging.WARNING if duration_ms > 1000 else logging.INFO
    details = " ".join(f"{k}={v}" for k, v in extra.items())
    logger.log(level, "%s took %.0fms %s", operation, duration_ms, details)
