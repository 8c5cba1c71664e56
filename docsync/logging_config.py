import logging
import os
import sys

# Third-party loggers that are chatty at INFO (per-request and per-event lines).
_QUIET_LOGGERS = ("watchdog", "httpx", "httpcore", "fastembed")


def setup_logging(level: int | str | None = None) -> None:
    """Configure stdout logging once; level defaults to LOG_LEVEL or INFO."""
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
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
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger. Use as: logger = get_logger(__name__)."""
    return logging.getLogger(name)
