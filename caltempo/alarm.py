"""Reminder instants derived from alarm triggers and occurrence rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterator, Optional

from .recurrence import OccurrenceRule
from .timespan import Instant, TimeSpan

if TYPE_CHECKING:
    from .event import Eventlike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartTrigger:
    """Fire relative to the beginning of each occurrence."""

    offset: timedelta


@dataclass(frozen=True)
class EndTrigger:
    """Fire relative to the end of each occurrence."""

    offset: timedelta


@dataclass(frozen=True)
class AbsoluteTrigger:
    """Fire at a fixed UTC instant."""

    instant: datetime


@dataclass(frozen=True, order=True)
class Alarm:
    """One reminder instant for one occurrence; alarms order by instant."""

    instant: datetime
    description: Optional[str] = field(default=None, compare=False)
    event_uid: str = field(default="", compare=False)
    span: Optional[TimeSpan] = field(default=None, compare=False)


@dataclass(frozen=True)
class AlarmGenerator:
    """A VALARM: a trigger, optionally repeated ``repeat`` times ``wait`` apart.

    ``repeat`` counts the total number of alarms per occurrence.
    """

    trigger: object
    event_uid: str
    repeat: Optional[int] = None
    wait: Optional[timedelta] = None
    description: Optional[str] = None

    @property
    def is_absolute(self) -> bool:
        return isinstance(self.trigger, AbsoluteTrigger)

    def _alarm(self, instant: datetime, occurrence: TimeSpan) -> Alarm:
        return Alarm(instant, self.description, self.event_uid, occurrence)

    def occurrence_alarms(self, occurrence: TimeSpan) -> list[Alarm]:
        """Alarms for a single occurrence, in firing order."""
        trigger = self.trigger
        if isinstance(trigger, StartTrigger):
            span = occurrence.add_to_begin(trigger.offset)
            moment = span.begin()
        elif isinstance(trigger, EndTrigger):
            span = occurrence.add_to_end(trigger.offset)
            moment = span.end()
        elif isinstance(trigger, AbsoluteTrigger):
            span = Instant(trigger.instant.astimezone(timezone.utc))
            moment = span.begin()
        else:
            raise TypeError(f"Unsupported alarm trigger {trigger!r}")

        alarms = [self._alarm(moment, occurrence)]
        if not self.wait or not self.repeat:
            return alarms

        for _ in range(1, self.repeat):
            if isinstance(trigger, EndTrigger):
                span = span.add_to_end(self.wait)
                alarms.append(self._alarm(span.end(), occurrence))
            else:
                span = span.add_to_begin(self.wait)
                alarms.append(self._alarm(span.begin(), occurrence))
        return alarms

    def alarms_for(self, rule: OccurrenceRule) -> AlarmIter:
        return AlarmIter(self, rule)

    def all_alarms(self, event: Eventlike) -> AlarmIter:
        return AlarmIter(self, event.occurrence_rule)


class AlarmIter:
    """Lazily walk the alarms of every occurrence of a rule.

    The alarms of the current occurrence are buffered and handed out from the
    back; the buffer is refilled from the next occurrence once it empties.

    An absolute trigger names one instant no matter how often the event
    recurs, so it fires once, for the first occurrence only, instead of being
    repeated for every occurrence of the rule.
    """

    def __init__(self, generator: AlarmGenerator, rule: OccurrenceRule):
        self.generator = generator
        self._occurrences = rule.iter()
        self._pending: list[Alarm] = []
        self._refill()

    def _refill(self) -> None:
        occurrence = next(self._occurrences, None)
        if occurrence is None:
            self._pending = []
            return
        self._pending = self.generator.occurrence_alarms(occurrence)
        if self.generator.is_absolute:
            self._occurrences = iter(())

    def __iter__(self) -> Iterator[Alarm]:
        return self

    def __next__(self) -> Alarm:
        if not self._pending:
            raise StopIteration
        alarm = self._pending.pop()
        if not self._pending:
            self._refill()
        return alarm
