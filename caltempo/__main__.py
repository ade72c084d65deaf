"""Command-line entry for caltempo.

Prints the occurrences (and optionally the alarms) of an .ics file for a
window of days starting today.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date, datetime, time, timedelta, tzinfo
from typing import NoReturn, Optional, Sequence

from . import _init_logging
from .config import load_settings
from .exceptions import CalTempoError
from .ical_calendar import Calendar
from .logging_config import configure_logging
from .timespan import TimeSpan
from .tz import Tz

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for caltempo CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="caltempo",
        description="caltempo - list calendar occurrences and alarms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m caltempo agenda work.ics                  # Next 7 days in the configured zone
  python -m caltempo agenda work.ics --days 30        # Next 30 days
  python -m caltempo agenda work.ics --tz Europe/Berlin --alarms
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="Settings file (YAML or JSON)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    agenda = subparsers.add_parser("agenda", help="List occurrences of an .ics file")
    agenda.add_argument("path", metavar="FILE", help="Calendar file to read")
    agenda.add_argument(
        "--days", type=int, metavar="N", help="Days to cover (default: lookahead_days setting)"
    )
    agenda.add_argument(
        "--from",
        dest="start",
        type=date.fromisoformat,
        metavar="YYYY-MM-DD",
        help="First day to cover (default: today)",
    )
    agenda.add_argument("--tz", metavar="ZONE", help="Zone to display times in")
    agenda.add_argument("--alarms", action="store_true", help="Also list alarms in the window")
    return parser


def format_span(span: TimeSpan, zone: tzinfo) -> str:
    """Render a span as a single agenda line prefix."""
    if span.is_allday:
        first = span.begin().date()
        last = (span.end() - timedelta(days=1)).date()
        if last > first:
            return f"{first:%Y-%m-%d} - {last:%Y-%m-%d}  all day"
        return f"{first:%Y-%m-%d}  all day"

    begin = span.begin().astimezone(zone)
    if span.is_instant:
        return f"{begin:%Y-%m-%d %H:%M}"
    end = span.end().astimezone(zone)
    if end.date() == begin.date():
        return f"{begin:%Y-%m-%d %H:%M} - {end:%H:%M}"
    return f"{begin:%Y-%m-%d %H:%M} - {end:%Y-%m-%d %H:%M}"


def run_agenda(args: argparse.Namespace) -> int:
    """Print the agenda described by ``args``; returns the exit code."""
    settings = load_settings(args.config)

    zone = Tz.from_str(args.tz) if args.tz else settings.resolve_timezone()
    first_day = args.start or datetime.now(zone).date()
    begin = datetime.combine(first_day, time(0, 0), tzinfo=zone)
    end = begin + timedelta(days=args.days or settings.lookahead_days)

    calendar = Calendar.from_path(args.path, settings=settings)
    occurrences = calendar.events_in(begin, end)
    for occurrence in occurrences:
        print(f"{format_span(occurrence.span, zone)}  {occurrence.title}")
    if not occurrences:
        print("No events.")

    if args.alarms:
        print()
        for alarm in calendar.alarms_in(begin, end):
            when = alarm.instant.astimezone(zone)
            print(f"{when:%Y-%m-%d %H:%M}  alarm  {alarm.description or alarm.event_uid}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """Run the caltempo CLI."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    _init_logging(os.environ.get("CALTEMPO_LOG_LEVEL"))
    configure_logging(debug_mode=args.debug)

    try:
        code = run_agenda(args)
    except (CalTempoError, ValueError) as exc:
        logger.error("%s", exc)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
