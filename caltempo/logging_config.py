"""
Central logging configuration for caltempo.

Keeps caltempo's own loggers at the requested verbosity while quieting the
debug chatter of the calendar parsing libraries underneath.
"""

import logging
import os
from typing import Any, Optional

CALTEMPO_LOGGERS = (
    "caltempo",
    "caltempo.tz",
    "caltempo.transitions",
    "caltempo.vtimezone",
    "caltempo.recurrence",
    "caltempo.event",
    "caltempo.ical_calendar",
)

THIRD_PARTY_LEVELS: dict[str, int] = {
    "icalendar": logging.INFO,
    "dateutil": logging.WARNING,
}


def _env_debug() -> bool:
    return os.getenv("CALTEMPO_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for caltempo and its parsing libraries.

    Args:
        debug_mode: Whether to enable debug logging for caltempo modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        CALTEMPO_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        CALTEMPO_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv("CALTEMPO_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    else:
        final_debug = debug_mode or _env_debug()

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)
    logging.getLogger().setLevel(root_level)

    module_level = logging.DEBUG if final_debug else logging.INFO
    levels = dict(THIRD_PARTY_LEVELS)
    for name in CALTEMPO_LOGGERS:
        levels[name] = module_level

    for logger_name, level in levels.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured (debug=%s, root=%s)", final_debug, logging.getLevelName(root_level)
    )


def get_logging_status() -> dict[str, Any]:
    """Report the effective levels of the configured loggers."""
    names = ("root", *CALTEMPO_LOGGERS, *THIRD_PARTY_LEVELS)
    status: dict[str, Any] = {}
    for name in names:
        logger = logging.getLogger(None if name == "root" else name)
        status[name] = logging.getLevelName(logger.getEffectiveLevel())
    status["debug_env"] = _env_debug()
    return status
