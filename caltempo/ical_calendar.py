"""Calendar loading and range queries.

``Calendar.from_ical`` turns calendar text into custom zones and events.
Malformed zones and events are logged and skipped so the rest of the
calendar still loads. ``events_in`` and ``alarms_in`` answer range queries
with owned result items.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence, Union

import icalendar

from .alarm import Alarm
from .event import Eventlike, IcalEvent, ical_property
from .exceptions import CalendarParseError, CalTempoError
from .ical_datetime import IcalDateTime
from .recurrence import Recurring
from .timespan import TimeSpan
from .transitions import get_transition_cache
from .tz import Tz
from .vtimezone import custom_tz_from_vtimezone

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 1000


@dataclass(frozen=True)
class Occurrence:
    """One materialized occurrence of an event."""

    span: TimeSpan
    event_uid: str
    title: str

    @property
    def begin(self) -> datetime:
        return self.span.begin()

    @property
    def end(self) -> datetime:
        return self.span.end()


def _overlaps(span: TimeSpan, begin: datetime, end: datetime) -> bool:
    return span.begin() < end and (span.end() > begin or span.begin() >= begin)


class Calendar:
    """A set of events and the custom zones they were defined with."""

    def __init__(
        self,
        events: Sequence[Eventlike],
        timezones: Optional[dict[str, tzinfo]] = None,
        name: Optional[str] = None,
        settings: Any = None,
    ):
        self.events = list(events)
        self.timezones = dict(timezones or {})
        self.name = name
        self.max_occurrences = getattr(settings, "max_occurrences", DEFAULT_MAX_OCCURRENCES)

    @classmethod
    def from_ical(
        cls, content: Union[str, bytes], name: Optional[str] = None, settings: Any = None
    ) -> Calendar:
        """Load a calendar from RFC5545 text.

        Args:
            content: Calendar text
            name: Optional display name
            settings: Optional settings; ``default_timezone`` is used for
                floating values when the calendar embeds no VTIMEZONE, and
                ``transition_horizon`` caps the shared transition cache when
                this is the first load of the process

        Returns:
            Calendar with every event that could be loaded

        Raises:
            CalendarParseError: If the text is not a calendar at all
        """
        try:
            parsed = icalendar.Calendar.from_ical(content)
        except ValueError as e:
            raise CalendarParseError(f"Could not parse calendar: {e}") from e

        get_transition_cache(settings)

        timezones: dict[str, tzinfo] = {}
        for component in parsed.walk("VTIMEZONE"):
            try:
                zone = custom_tz_from_vtimezone(component)
            except CalTempoError as e:
                logger.warning("Skipping timezone definition: %s", e.message)
                continue
            timezones[zone.id] = zone

        if timezones:
            default_tz = next(iter(timezones.values()))
        else:
            default_tz = Tz.from_str(getattr(settings, "default_timezone", None) or "UTC")

        masters: list[IcalEvent] = []
        overrides: dict[str, list[datetime]] = {}
        for component in parsed.walk("VEVENT"):
            try:
                event = IcalEvent.from_component(component, timezones, default_tz)
            except CalTempoError as e:
                logger.warning("Skipping event %s: %s", component.get("UID"), e.message)
                continue

            recurrence_id = ical_property(component, "RECURRENCE-ID")
            if recurrence_id is not None:
                try:
                    moment = IcalDateTime.from_property(recurrence_id, timezones)
                except CalTempoError as e:
                    logger.warning("Ignoring RECURRENCE-ID of %s: %s", event.uid, e.message)
                else:
                    overrides.setdefault(event.uid, []).append(moment.as_datetime(event.tz))
            masters.append(event)

        events = [cls._apply_overrides(event, overrides) for event in masters]
        logger.info(
            "Loaded %d events and %d timezones%s",
            len(events),
            len(timezones),
            f" from {name}" if name else "",
        )
        return cls(events, timezones, name=name, settings=settings)

    @classmethod
    def from_path(cls, path: Union[str, Path], settings: Any = None) -> Calendar:
        p = Path(path)
        logger.debug("Reading calendar from %s", p)
        try:
            content = p.read_bytes()
        except OSError as e:
            raise CalendarParseError(f"Could not read calendar '{p}': {e}") from e
        return cls.from_ical(content, name=p.name, settings=settings)

    @staticmethod
    def _apply_overrides(event: IcalEvent, overrides: dict[str, list[datetime]]) -> IcalEvent:
        """Drop occurrences of a recurring event that have their own VEVENT."""
        rule = event.occurrence_rule
        moments = overrides.get(event.uid)
        if not moments or not isinstance(rule, Recurring):
            return event
        exdates = rule.exdates + tuple(moment.astimezone(event.tz) for moment in moments)
        return dataclasses.replace(
            event, occurrence_rule=rule.with_recurring(rule.rule, rule.rdates, exdates)
        )

    def __iter__(self) -> Iterator[Eventlike]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)

    def events_in(self, begin: datetime, end: datetime) -> list[Occurrence]:
        """Occurrences overlapping ``[begin, end)``, ordered by begin.

        At most ``max_occurrences`` occurrences are collected per event.
        """
        found: list[Occurrence] = []
        for event in self.events:
            matched = 0
            for span in event.occurrence_rule.iter():
                if span.begin() >= end:
                    break
                if not _overlaps(span, begin, end):
                    continue
                found.append(Occurrence(span, event.uid, event.title))
                matched += 1
                if matched >= self.max_occurrences:
                    logger.debug("Occurrence limit reached for event %s", event.uid)
                    break
        found.sort(key=lambda occurrence: occurrence.begin)
        return found

    def alarms_in(self, begin: datetime, end: datetime) -> list[Alarm]:
        """Alarms firing in ``[begin, end)``, ordered by instant."""
        found: list[Alarm] = []
        for event in self.events:
            for generator in event.alarms:
                matched = 0
                for span in event.occurrence_rule.iter():
                    alarms = generator.occurrence_alarms(span)
                    hits = [alarm for alarm in alarms if begin <= alarm.instant < end]
                    found.extend(hits)
                    matched += len(hits)
                    if generator.is_absolute or matched >= self.max_occurrences:
                        break
                    if span.begin() >= end and min(alarm.instant for alarm in alarms) >= end:
                        break
        found.sort()
        return found
