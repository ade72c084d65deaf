"""Shared fixtures for caltempo tests."""

from collections.abc import Generator
from types import SimpleNamespace
from typing import Any

import icalendar
import pytest

from caltempo.transitions import HORIZON, RecurringTransition, TransitionSet
from caltempo.tz import CustomTz

EASTERN_VTIMEZONE = """BEGIN:VTIMEZONE
TZID:Custom/Eastern
BEGIN:STANDARD
DTSTART:20071104T020000
RRULE:FREQ=YEARLY;BYMONTH=11;BYDAY=1SU
TZOFFSETFROM:-0400
TZOFFSETTO:-0500
TZNAME:EST
END:STANDARD
BEGIN:DAYLIGHT
DTSTART:20070311T020000
RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=2SU
TZOFFSETFROM:-0500
TZOFFSETTO:-0400
TZNAME:EDT
END:DAYLIGHT
END:VTIMEZONE"""


def wrap_calendar(body: str) -> str:
    """Wrap components in a VCALENDAR envelope with CRLF line endings."""
    text = f"BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//caltempo//tests//EN\n{body.strip()}\nEND:VCALENDAR\n"
    return text.replace("\n", "\r\n")


def parse_component(body: str, name: str) -> Any:
    """Parse ``body`` and return its first component called ``name``."""
    calendar = icalendar.Calendar.from_ical(wrap_calendar(body))
    return calendar.walk(name)[0]


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object used across tests.

    Fields mirror caltempo.config.TempoSettings:
      - default_timezone: zone for floating values
      - transition_horizon: cap for unrolled timezone transitions
      - lookahead_days: agenda window
      - max_occurrences: per-event cap for range queries
    """
    return SimpleNamespace(
        default_timezone="UTC",
        transition_horizon=HORIZON,
        lookahead_days=7,
        max_occurrences=50,
    )


@pytest.fixture
def parse_ical() -> Any:
    """Return a helper parsing calendar text into its first named component."""
    return parse_component


@pytest.fixture
def ics_text() -> Any:
    """Return a helper wrapping components into calendar text."""
    return wrap_calendar


@pytest.fixture
def eastern_vtimezone_text() -> str:
    """VTIMEZONE text for Custom/Eastern."""
    return EASTERN_VTIMEZONE


@pytest.fixture
def eastern_vtimezone() -> Any:
    """Parsed VTIMEZONE component for Custom/Eastern."""
    return parse_component(EASTERN_VTIMEZONE, "VTIMEZONE")


@pytest.fixture
def eastern_transitions() -> list[TransitionSet]:
    """US Eastern rules since 2007 as transition sets."""
    standard = TransitionSet(
        utc_offset_secs=-18000,
        dst_offset_secs=0,
        id="Custom/Eastern",
        name="EST",
        rule=RecurringTransition("DTSTART:20071104T020000\nRRULE:FREQ=YEARLY;BYMONTH=11;BYDAY=1SU"),
        offset_from_secs=-14400,
    )
    daylight = TransitionSet(
        utc_offset_secs=-18000,
        dst_offset_secs=3600,
        id="Custom/Eastern",
        name="EDT",
        rule=RecurringTransition("DTSTART:20070311T020000\nRRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=2SU"),
        offset_from_secs=-18000,
    )
    return [standard, daylight]


@pytest.fixture
def eastern_tz(eastern_transitions: list[TransitionSet]) -> CustomTz:
    """Custom zone alternating between EST and EDT."""
    return CustomTz("Custom/Eastern", eastern_transitions)


@pytest.fixture(autouse=True)
def reset_transition_cache() -> Generator[None, Any, None]:
    """Reset the global transition cache between tests.

    The cache is a process-wide singleton; a horizon set by one test must
    not leak into the next.
    """
    yield
    import caltempo.transitions

    caltempo.transitions._transition_cache = None


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure CALTEMPO_* environment variables do not leak into tests."""
    for name in (
        "CALTEMPO_DEBUG",
        "CALTEMPO_LOG_LEVEL",
        "CALTEMPO_DEFAULT_TIMEZONE",
        "CALTEMPO_TRANSITION_HORIZON",
        "CALTEMPO_LOOKAHEAD_DAYS",
        "CALTEMPO_MAX_OCCURRENCES",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
