# Logging setup for the authgate entry points.
# Created: 2026-10-19
#
# Console output goes through Rich; library code only ever calls
# logging.getLogger(__name__).

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Chatty third-party loggers kept at WARNING unless running at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "multipart", "uvicorn.access")


def setup_logging(level: str = "INFO", console: Console | None = None) -> RichHandler:
    """Route root logging through a ``RichHandler`` and return the handler."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=numeric <= logging.DEBUG,
        markup=False,
        log_time_format="[%X]",
    )
    logging.basicConfig(
        level=numeric,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    if numeric > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return handler
