"""Time extents of calendar events.

A span is one of four shapes:

- ``Allday``: whole calendar days in a zone, end date exclusive
- ``TimePoints``: explicit begin and end instants
- ``Duration``: a begin instant plus a length
- ``Instant``: a zero-length point in time

All shapes answer ``begin()``, ``end()`` and ``duration()`` with
``end() - begin() == duration()``. Arithmetic is wall-clock arithmetic on
aware datetimes and is not bounds checked.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional

ONE_DAY = timedelta(days=1)


def _split_days(delta: timedelta) -> tuple[int, timedelta]:
    """Split ``delta`` into whole days (truncated toward zero) and a remainder."""
    days = int(delta / ONE_DAY)
    return days, delta - timedelta(days=days)


class TimeSpan:
    """Base class of the span shapes."""

    @staticmethod
    def from_start_and_end(begin: datetime, end: datetime) -> TimePoints:
        return TimePoints(begin, end)

    @staticmethod
    def from_start_and_duration(begin: datetime, length: timedelta) -> Duration:
        return Duration(begin, length)

    @staticmethod
    def from_start(begin: datetime) -> Instant:
        return Instant(begin)

    @staticmethod
    def allday(day: date, tz: tzinfo) -> Allday:
        return Allday(day, None, tz)

    @staticmethod
    def allday_until(begin: date, end: date, tz: tzinfo) -> Allday:
        """All-day span from ``begin`` up to the exclusive ``end`` date.

        Spans of a single day (or less) collapse to the single-day form.
        """
        if end <= begin + ONE_DAY:
            return Allday(begin, None, tz)
        return Allday(begin, end, tz)

    def begin(self) -> datetime:
        raise NotImplementedError

    def end(self) -> datetime:
        raise NotImplementedError

    def duration(self) -> timedelta:
        return self.end() - self.begin()

    def add_to_begin(self, delta: timedelta) -> TimeSpan:
        raise NotImplementedError

    def add_to_end(self, delta: timedelta) -> TimeSpan:
        raise NotImplementedError

    def with_tz(self, zone: tzinfo) -> TimeSpan:
        raise NotImplementedError

    def contains(self, moment: datetime) -> bool:
        return self.begin() <= moment < self.end()

    @property
    def is_allday(self) -> bool:
        return False

    @property
    def is_instant(self) -> bool:
        return False

    @property
    def timezone(self) -> Optional[tzinfo]:
        return self.begin().tzinfo


@dataclass(frozen=True)
class Allday(TimeSpan):
    """Whole days from ``start`` to the exclusive ``stop`` date.

    ``stop`` is None for a single day.
    """

    start: date
    stop: Optional[date]
    tz: tzinfo

    @property
    def last_day(self) -> date:
        return (self.stop or self.start + ONE_DAY) - ONE_DAY

    @property
    def days(self) -> int:
        return ((self.stop or self.start + ONE_DAY) - self.start).days

    def begin(self) -> datetime:
        return datetime.combine(self.start, time(0, 0), tzinfo=self.tz)

    def end(self) -> datetime:
        return datetime.combine(self.stop or self.start + ONE_DAY, time(0, 0), tzinfo=self.tz)

    def add_to_begin(self, delta: timedelta) -> TimeSpan:
        days, rest = _split_days(delta)
        if rest:
            # Sub-day moves need a precise begin edge
            return TimePoints(self.begin() + delta, self.end())
        stop = self.stop + timedelta(days=days) if self.stop else None
        return Allday(self.start + timedelta(days=days), stop, self.tz)

    def add_to_end(self, delta: timedelta) -> TimeSpan:
        days, _ = _split_days(delta)
        if not days:
            return self
        stop = (self.stop or self.start + ONE_DAY) + timedelta(days=days)
        return TimeSpan.allday_until(self.start, stop, self.tz)

    def with_tz(self, zone: tzinfo) -> Allday:
        return Allday(self.start, self.stop, zone)

    @property
    def is_allday(self) -> bool:
        return True

    @property
    def timezone(self) -> tzinfo:
        return self.tz


@dataclass(frozen=True)
class TimePoints(TimeSpan):
    start: datetime
    stop: datetime

    def begin(self) -> datetime:
        return self.start

    def end(self) -> datetime:
        return self.stop

    def add_to_begin(self, delta: timedelta) -> TimePoints:
        return TimePoints(self.start + delta, self.stop)

    def add_to_end(self, delta: timedelta) -> TimePoints:
        return TimePoints(self.start, self.stop + delta)

    def with_tz(self, zone: tzinfo) -> TimePoints:
        return TimePoints(self.start.astimezone(zone), self.stop.astimezone(zone))


@dataclass(frozen=True)
class Duration(TimeSpan):
    start: datetime
    length: timedelta

    def begin(self) -> datetime:
        return self.start

    def end(self) -> datetime:
        return self.start + self.length

    def duration(self) -> timedelta:
        return self.length

    def add_to_begin(self, delta: timedelta) -> Duration:
        return Duration(self.start + delta, self.length)

    def add_to_end(self, delta: timedelta) -> Duration:
        return Duration(self.start, self.length + delta)

    def with_tz(self, zone: tzinfo) -> Duration:
        return Duration(self.start.astimezone(zone), self.length)


@dataclass(frozen=True)
class Instant(TimeSpan):
    start: datetime

    def begin(self) -> datetime:
        return self.start

    def end(self) -> datetime:
        return self.start

    def duration(self) -> timedelta:
        return timedelta(0)

    def add_to_begin(self, delta: timedelta) -> Instant:
        return Instant(self.start + delta)

    def add_to_end(self, delta: timedelta) -> TimePoints:
        return TimePoints(self.start, self.start + delta)

    def with_tz(self, zone: tzinfo) -> Instant:
        return Instant(self.start.astimezone(zone))

    def contains(self, moment: datetime) -> bool:
        return moment == self.start

    @property
    def is_instant(self) -> bool:
        return True
