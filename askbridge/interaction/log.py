"""loguru setup for the askbridge process.

stdlib records (uvicorn, httpx, and the tool layer, which logs through
``logging``) are routed into loguru so the whole process shares one format.
An optional rotating file sink keeps a record of who answered what after
the terminal is gone.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Per-request and per-frame chatter from these loggers drowns the broker's own lines.
_QUIET_LOGGERS = ("uvicorn.access", "uvicorn.error.websockets", "websockets", "httpx", "httpcore")


class _InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the caller.
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, log_file: str | Path | None = None) -> None:
    """Make loguru the only sink, optionally also writing to *log_file*.

    Call once at startup, before uvicorn starts serving.
    """
    level = level.upper()

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, level=level, format=LOG_FORMAT, colorize=False, rotation="10 MB", retention=5)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialised (level={}, file={})", level, log_file or "-")
