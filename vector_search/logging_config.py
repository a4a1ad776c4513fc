import logging
import os
import sys

# Chatty third-party loggers kept at WARNING unless debugging
_QUIET_LOGGERS = ("httpx", "httpcore", "watchdog")


def setup_logging(level: int | None = None) -> None:
    """Configure structured logging for the application.

    The level defaults to VECTOR_SEARCH_LOG_LEVEL (e.g. "DEBUG"), else INFO.
    """
    if level is None:
        name = os.getenv("VECTOR_SEARCH_LOG_LEVEL", "INFO").upper()
        level = logging.getLevelNamesMapping().get(name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(handler)

    if level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger. Use as: logger = get_logger(__name__)."""
    return logging.getLogger(name)
