"""Logging setup for the Voice Clone service.

Everything goes to stdout in one format, including uvicorn's own loggers, so
the API log and the toolkit subprocess lines (logged by the process runner
with a `[stage]` prefix) interleave in a single stream.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that uvicorn configures on its own
SERVER_LOGGERS = ("uvicorn", "uvicorn.error")

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
    "uvicorn.access",
)


def setup_logging(level: str = "INFO", name: Optional[str] = None) -> logging.Logger:
    """
    Attach a stdout handler to the given logger (root by default).

    Args:
        level: Log level name; unknown names fall back to INFO
        name: Logger name, None for the root logger

    Returns:
        The configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.setLevel(log_level)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    if not logger.handlers:
        logger.addHandler(handler)

    if name is None:
        for server_logger in SERVER_LOGGERS:
            server = logging.getLogger(server_logger)
            server.handlers = []
            server.propagate = True

    return logger


def silence_noisy_loggers(level: int = logging.WARNING):
    """Raise the threshold of chatty third-party loggers."""
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)
