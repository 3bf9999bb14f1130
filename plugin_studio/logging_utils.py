"""
Logging helpers for the Plugin Studio backend.

Verbosity comes from PLUGIN_STUDIO_LOG_LEVEL, either as a count or a level
name. Service loggers use a bracketed component prefix ("[LLMService] ...").
"""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "PLUGIN_STUDIO_LOG_LEVEL"

_LEVEL_NAMES = {"warning": 0, "info": 1, "debug": 2}

# Third-party loggers that stay at INFO or above even in debug mode
_CHATTY_LOGGERS = ("aiohttp", "asyncio", "sse_starlette")


def level_for(verbosity: int) -> int:
    """0 -> WARNING, 1 -> INFO, 2 and above -> DEBUG"""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int) -> int:
    """Configure the root logger and return the level chosen"""
    level = level_for(verbosity)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))
    return level


def verbosity_from_env() -> int:
    raw = os.environ.get(LOG_LEVEL_ENV, "1").strip()
    try:
        return int(raw)
    except ValueError:
        return _LEVEL_NAMES.get(raw.lower(), 1)
