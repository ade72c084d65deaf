"""Codec for the RFC5545 duration grammar (``[+-]P[nW | nDTnHnMnS]``)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from .exceptions import DurationParseError

_DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P"
    r"(?:(?P<weeks>\d+)W"
    r"|(?:(?P<days>\d+)D)?"
    r"(?P<time>T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?)$"
)

_SECONDS_PER_DAY = 86400
_SECONDS_PER_WEEK = 7 * _SECONDS_PER_DAY


@dataclass(frozen=True, eq=False)
class IcalDuration:
    """A signed duration in either week form or day/time form.

    Two durations compare equal when their signed total lengths match, so
    ``P1W`` equals ``P7D``.
    """

    negative: bool = False
    weeks: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    @classmethod
    def parse(cls, text: str) -> IcalDuration:
        """Parse a duration value.

        Args:
            text: Duration text such as ``-PT15M`` or ``P1W``

        Returns:
            Parsed IcalDuration

        Raises:
            DurationParseError: If the text does not follow the duration grammar
        """
        value = text.strip().upper()
        match = _DURATION_RE.match(value)
        if not match:
            raise DurationParseError(f"Could not parse duration '{text}'", text)

        parts = match.groupdict()
        negative = parts["sign"] == "-"
        if parts["weeks"] is not None:
            duration = cls(negative=negative, weeks=int(parts["weeks"]))
        else:
            time_fields = (parts["hours"], parts["minutes"], parts["seconds"])
            if parts["time"] is not None and all(v is None for v in time_fields):
                raise DurationParseError(f"Duration '{text}' has an empty time part", text)
            if parts["days"] is None and parts["time"] is None:
                raise DurationParseError(f"Duration '{text}' has no components", text)

            duration = cls(
                negative=negative,
                days=int(parts["days"] or 0),
                hours=int(parts["hours"] or 0),
                minutes=int(parts["minutes"] or 0),
                seconds=int(parts["seconds"] or 0),
            )

        try:
            duration.to_timedelta()
        except OverflowError as e:
            raise DurationParseError(f"Duration '{text}' is out of range", text) from e
        return duration

    @classmethod
    def from_timedelta(cls, value: timedelta) -> IcalDuration:
        """Build the canonical duration for a timedelta.

        Whole multiples of seven days use the week form; anything else uses
        the day/time form. Sub-second precision is dropped.
        """
        negative = value < timedelta(0)
        magnitude = -value if negative else value
        total = magnitude.days * _SECONDS_PER_DAY + magnitude.seconds

        if total and total % _SECONDS_PER_WEEK == 0:
            return cls(negative=negative, weeks=total // _SECONDS_PER_WEEK)

        days, rest = divmod(total, _SECONDS_PER_DAY)
        hours, rest = divmod(rest, 3600)
        minutes, seconds = divmod(rest, 60)
        return cls(
            negative=negative, days=days, hours=hours, minutes=minutes, seconds=seconds
        )

    @classmethod
    def from_property(cls, prop: Any) -> IcalDuration:
        """Parse the value of a DURATION (or TRIGGER) property."""
        return cls.parse(prop.value)

    @property
    def total_seconds(self) -> int:
        total = (
            self.weeks * _SECONDS_PER_WEEK
            + self.days * _SECONDS_PER_DAY
            + self.hours * 3600
            + self.minutes * 60
            + self.seconds
        )
        return -total if self.negative else total

    @property
    def is_week_form(self) -> bool:
        return self.weeks != 0

    def to_timedelta(self) -> timedelta:
        return timedelta(seconds=self.total_seconds)

    def to_ical(self) -> str:
        """Format in canonical form; a zero duration formats as ``PT0S``."""
        canonical = IcalDuration.from_timedelta(self.to_timedelta())
        sign = "-" if canonical.negative else ""
        if canonical.weeks:
            return f"{sign}P{canonical.weeks}W"

        date_part = f"{canonical.days}D" if canonical.days else ""
        time_part = "".join(
            f"{amount}{unit}"
            for amount, unit in (
                (canonical.hours, "H"),
                (canonical.minutes, "M"),
                (canonical.seconds, "S"),
            )
            if amount
        )
        if not date_part and not time_part:
            return "PT0S"
        if time_part:
            time_part = "T" + time_part
        return f"{sign}P{date_part}{time_part}"

    def __str__(self) -> str:
        return self.to_ical()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, IcalDuration):
            return self.total_seconds == other.total_seconds
        if isinstance(other, timedelta):
            return self.to_timedelta() == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.total_seconds)

    def __neg__(self) -> IcalDuration:
        return IcalDuration.from_timedelta(-self.to_timedelta())


def parse_duration(text: str) -> timedelta:
    """Parse duration text straight into a timedelta."""
    return IcalDuration.parse(text).to_timedelta()


def format_duration(value: timedelta) -> str:
    """Format a timedelta as duration text."""
    return IcalDuration.from_timedelta(value).to_ical()
