"""caltempo - temporal semantics of RFC5545 calendar events.

Durations, date-times, timezones (including VTIMEZONE-defined ones),
recurring occurrences and alarm instants for calendar events.
"""

__version__ = "0.1.0"

from typing import Optional

from .alarm import AbsoluteTrigger, Alarm, AlarmGenerator, AlarmIter, EndTrigger, StartTrigger
from .duration import IcalDuration
from .exceptions import CalTempoError
from .ical_calendar import Calendar, Occurrence
from .ical_datetime import IcalDateTime, Property
from .recurrence import OccurrenceRule
from .timespan import TimeSpan
from .tz import CustomTz, LocalResult, Tz, TzOffset


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized console handler when the root logger has none, then
    applies ``level_name``. A truthy CALTEMPO_DEBUG environment variable
    ("1", "true", "yes", "on") forces DEBUG.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("CALTEMPO_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


__all__ = [
    "AbsoluteTrigger",
    "Alarm",
    "AlarmGenerator",
    "AlarmIter",
    "CalTempoError",
    "Calendar",
    "CustomTz",
    "EndTrigger",
    "IcalDateTime",
    "IcalDuration",
    "LocalResult",
    "Occurrence",
    "OccurrenceRule",
    "Property",
    "StartTrigger",
    "TimeSpan",
    "Tz",
    "TzOffset",
    "__version__",
]
