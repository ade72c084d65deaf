"""Occurrence rules: a base span plus an optional recurrence rule."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterator, Optional, Sequence

from dateutil.rrule import rrulestr, rruleset

from .exceptions import RecurRuleParseError
from .timespan import Allday, TimeSpan

logger = logging.getLogger(__name__)

_UNTIL_RE = re.compile(r"UNTIL=(\d{8})(T\d{6})?(Z)?", re.IGNORECASE)
_LOCAL_FORMAT = "%Y%m%dT%H%M%S"

OccurrenceIter = Iterator[TimeSpan]


def _rule_lines(rule: str) -> list[str]:
    """Split rule text into content lines, prefixing bare rules with ``RRULE:``."""
    lines = []
    for raw in rule.splitlines():
        line = raw.strip()
        if not line:
            continue
        if ":" not in line:
            line = f"RRULE:{line}"
        lines.append(line)
    return lines


def _normalize_until(line: str, dtstart: datetime) -> str:
    """Make UNTIL match the awareness of ``dtstart``.

    An aware start needs a UTC UNTIL; a naive or date-only UNTIL is read in
    the start's zone. A naive start reads a UTC UNTIL as a wall-clock value.
    """

    def _replace(match: re.Match) -> str:
        day, clock, utc_marker = match.group(1), match.group(2), match.group(3)
        reading = datetime.strptime(day + (clock or "T000000"), _LOCAL_FORMAT)
        if dtstart.tzinfo is None:
            return f"UNTIL={reading.strftime(_LOCAL_FORMAT)}"
        if utc_marker:
            return match.group(0)
        if clock is None:
            # Date-only UNTIL includes the whole day
            reading = datetime.combine(reading.date(), dtstart.timetz().replace(tzinfo=None))
        utc = reading.replace(tzinfo=dtstart.tzinfo).astimezone(timezone.utc)
        return f"UNTIL={utc.strftime(_LOCAL_FORMAT)}Z"

    return _UNTIL_RE.sub(_replace, line)


def build_ruleset(
    rule: str,
    dtstart: datetime,
    rdates: Sequence[datetime] = (),
    exdates: Sequence[datetime] = (),
) -> rruleset:
    """Build a recurrence set from RRULE text and extra RDATE/EXDATE instants.

    Args:
        rule: One or more RRULE values (``FREQ=...``), optionally with
            ``RRULE:``/``EXRULE:``/``RDATE:``/``EXDATE:`` prefixes
        dtstart: First instant of the series
        rdates: Extra instants added to the series
        exdates: Instants removed from the series

    Returns:
        dateutil ``rruleset`` yielding instants in ascending order

    Raises:
        RecurRuleParseError: If the rule is rejected
    """
    lines = [_normalize_until(line, dtstart) for line in _rule_lines(rule)]
    if lines:
        try:
            rules = rrulestr("\n".join(lines), dtstart=dtstart, forceset=True)
        except (ValueError, TypeError) as e:
            raise RecurRuleParseError(f"Invalid recurrence rule '{rule}': {e}", rule) from e
    else:
        # RDATE-only series still start at DTSTART
        rules = rruleset()
        rules.rdate(dtstart)

    for instant in rdates:
        rules.rdate(instant)
    for instant in exdates:
        rules.exdate(instant)
    return rules


class OccurrenceRule:
    """When an event happens: once, or repeatedly from a base span."""

    @staticmethod
    def onetime(span: TimeSpan) -> Onetime:
        return Onetime(span)

    @staticmethod
    def recurring(
        span: TimeSpan,
        rule: str,
        rdates: Sequence[datetime] = (),
        exdates: Sequence[datetime] = (),
    ) -> Recurring:
        return Recurring(span, rule, tuple(rdates), tuple(exdates))

    @property
    def span(self) -> TimeSpan:
        raise NotImplementedError

    def first(self) -> TimeSpan:
        return self.span

    def last(self) -> Optional[TimeSpan]:
        raise NotImplementedError

    def duration(self) -> timedelta:
        return self.span.duration()

    def iter(self) -> OccurrenceIter:
        raise NotImplementedError

    def __iter__(self) -> OccurrenceIter:
        return self.iter()

    def as_range(self) -> tuple[datetime, Optional[datetime]]:
        """First begin and, for finite rules, last end."""
        last = self.last()
        return self.first().begin(), last.end() if last is not None else None

    def with_tz(self, zone: tzinfo) -> OccurrenceRule:
        raise NotImplementedError

    def with_recurring(
        self,
        rule: str,
        rdates: Sequence[datetime] = (),
        exdates: Sequence[datetime] = (),
    ) -> Recurring:
        return OccurrenceRule.recurring(self.first(), rule, rdates, exdates)

    @property
    def is_allday(self) -> bool:
        return self.span.is_allday

    @property
    def is_onetime(self) -> bool:
        return False

    @property
    def is_recurring(self) -> bool:
        return False

    @property
    def timezone(self) -> Optional[tzinfo]:
        return self.span.timezone


@dataclass(frozen=True)
class Onetime(OccurrenceRule):
    base: TimeSpan

    @property
    def span(self) -> TimeSpan:
        return self.base

    def last(self) -> TimeSpan:
        return self.base

    def iter(self) -> OccurrenceIter:
        yield self.base

    def with_tz(self, zone: tzinfo) -> Onetime:
        return Onetime(self.base.with_tz(zone))

    @property
    def is_onetime(self) -> bool:
        return True


@dataclass(frozen=True)
class Recurring(OccurrenceRule):
    """A base span repeated by a recurrence rule.

    Every occurrence has the base span's duration. The rule is validated
    when the value is built.
    """

    base: TimeSpan
    rule: str
    rdates: tuple[datetime, ...] = ()
    exdates: tuple[datetime, ...] = ()
    _ruleset: rruleset = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        ruleset = build_ruleset(self.rule, self.base.begin(), self.rdates, self.exdates)
        object.__setattr__(self, "_ruleset", ruleset)

    @property
    def span(self) -> TimeSpan:
        return self.base

    @property
    def ruleset(self) -> rruleset:
        return self._ruleset

    @property
    def is_finite(self) -> bool:
        """True when every RRULE in the rule text carries a COUNT."""
        rrules = [line for line in _rule_lines(self.rule) if line.upper().startswith("RRULE:")]
        return all("COUNT=" in line.upper() for line in rrules)

    def _occurrence(self, moment: datetime) -> TimeSpan:
        zone = self.base.timezone
        if isinstance(self.base, Allday):
            day: date = moment.date()
            return TimeSpan.allday_until(day, day + timedelta(days=self.base.days), self.base.tz)
        if self.base.is_instant:
            return TimeSpan.from_start(moment.astimezone(zone))
        return TimeSpan.from_start_and_duration(moment.astimezone(zone), self.base.duration())

    def iter(self) -> OccurrenceIter:
        for moment in self._ruleset:
            yield self._occurrence(moment)

    def last(self) -> Optional[TimeSpan]:
        if not self.is_finite:
            return None
        last_moment = None
        for moment in self._ruleset:
            last_moment = moment
        if last_moment is None:
            return None
        return self._occurrence(last_moment)

    def with_tz(self, zone: tzinfo) -> Recurring:
        return Recurring(
            self.base.with_tz(zone),
            self.rule,
            tuple(instant.astimezone(zone) for instant in self.rdates),
            tuple(instant.astimezone(zone) for instant in self.exdates),
        )

    @property
    def is_recurring(self) -> bool:
        return True

