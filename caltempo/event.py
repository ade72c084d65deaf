"""Event assembly from parsed VEVENT and VALARM components.

Components come from the ``icalendar`` library; only the raw text and
parameters of the temporal properties are used, decoded by caltempo's own
codecs.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from .alarm import AbsoluteTrigger, AlarmGenerator, AlarmIter, EndTrigger, StartTrigger
from .duration import IcalDuration
from .exceptions import (
    CalTempoError,
    DateParseError,
    EventParseError,
    MissingKeyError,
    TimeParseError,
)
from .ical_datetime import Date, IcalDateTime, Local, Property, Utc
from .recurrence import OccurrenceRule
from .timespan import TimeSpan
from .tz import Tz

logger = logging.getLogger(__name__)

ALARM_ACTIONS = ("DISPLAY", "AUDIO", "EMAIL")


@runtime_checkable
class Eventlike(Protocol):
    """Capabilities the occurrence and alarm engines need from an event."""

    @property
    def uid(self) -> str:
        """Stable identifier of the event."""
        ...

    @property
    def title(self) -> str:
        """Short human readable summary."""
        ...

    @property
    def description(self) -> Optional[str]:
        ...

    @property
    def occurrence_rule(self) -> OccurrenceRule:
        """When the event happens."""
        ...

    @property
    def alarms(self) -> tuple[AlarmGenerator, ...]:
        ...

    @property
    def tz(self) -> tzinfo:
        """Zone the event's occurrences are expressed in."""
        ...


def ical_property(component: Any, name: str) -> Optional[Property]:
    """Return the raw text form of a single-valued property, if present."""
    value = component.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0]
    return _to_property(name, value)


def ical_properties(component: Any, name: str) -> list[Property]:
    """Return the raw text forms of a possibly repeated property."""
    value = component.get(name)
    if value is None:
        return []
    values = value if isinstance(value, list) else [value]
    return [_to_property(name, item) for item in values]


def _to_property(name: str, value: Any) -> Property:
    params = {str(key).upper(): str(param) for key, param in getattr(value, "params", {}).items()}
    if hasattr(value, "to_ical"):
        raw = value.to_ical()
        text = raw.decode() if isinstance(raw, bytes) else str(raw)
    else:
        text = str(value)
    return Property(name, params, text)


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def _parse_trigger(prop: Property) -> object:
    if (prop.param("VALUE") or "").upper() == "DATE-TIME":
        value = IcalDateTime.from_property(prop)
        if not isinstance(value, Utc):
            raise TimeParseError(
                f"Absolute alarm trigger '{prop.value}' must be given in UTC", prop.value
            )
        return AbsoluteTrigger(value.value)

    offset = IcalDuration.parse(prop.value).to_timedelta()
    related = (prop.param("RELATED") or "START").upper()
    if related == "END":
        return EndTrigger(offset)
    if related == "START":
        return StartTrigger(offset)
    raise EventParseError(f"Unknown alarm trigger relation '{related}'", related)


def alarm_generator_from_component(component: Any, event_uid: str) -> AlarmGenerator:
    """Build an alarm generator from a VALARM component.

    Raises:
        EventParseError: If ACTION or TRIGGER is missing or invalid, or REPEAT
            is given without DURATION
    """
    action = (_text(component, "ACTION") or "").upper()
    if action not in ALARM_ACTIONS:
        raise EventParseError(f"Alarm action '{action}' is not supported", action)

    trigger_prop = ical_property(component, "TRIGGER")
    if trigger_prop is None:
        raise MissingKeyError("Alarm has no TRIGGER")
    trigger = _parse_trigger(trigger_prop)

    repeat_text = _text(component, "REPEAT")
    duration_prop = ical_property(component, "DURATION")
    if repeat_text is not None and duration_prop is None:
        raise EventParseError("REPEAT needs a DURATION between alarms")

    repeat = None
    wait = None
    if repeat_text is not None:
        try:
            repeat = int(repeat_text)
        except ValueError as e:
            raise EventParseError(f"Alarm REPEAT '{repeat_text}' is not a number", repeat_text) from e
    if duration_prop is not None:
        wait = IcalDuration.from_property(duration_prop).to_timedelta()

    return AlarmGenerator(
        trigger=trigger,
        event_uid=event_uid,
        repeat=repeat,
        wait=wait,
        description=_text(component, "DESCRIPTION"),
    )


def _instants(props: list[Property], zone: tzinfo, zones: Any, allday: bool) -> list[datetime]:
    instants = []
    for prop in props:
        for text in prop.value.split(","):
            # PERIOD values start at their first element
            text = text.split("/", 1)[0]
            decoded = IcalDateTime.from_str(text, tzid=prop.param("TZID"), tz=zones)
            moment = decoded.as_datetime(zone)
            if allday:
                moment = datetime.combine(moment.date(), datetime.min.time(), tzinfo=zone)
            instants.append(moment.astimezone(zone))
    return instants


@dataclass(frozen=True)
class IcalEvent:
    """An event loaded from a VEVENT component."""

    uid: str
    title: str
    occurrence_rule: OccurrenceRule
    tz: tzinfo
    description: Optional[str] = None
    location: Optional[str] = None
    alarms: tuple[AlarmGenerator, ...] = ()

    @classmethod
    def from_component(
        cls,
        component: Any,
        timezones: Optional[Mapping[str, tzinfo]] = None,
        default_tz: Optional[tzinfo] = None,
    ) -> IcalEvent:
        """Build an event from a VEVENT component.

        Args:
            component: icalendar ``Event`` component
            timezones: Custom zones of the calendar by TZID
            default_tz: Zone for floating and date values; UTC when omitted

        Returns:
            IcalEvent with its occurrence rule and alarm generators

        Raises:
            MissingKeyError: If DTSTART is missing
            DateParseError: If DTEND is a date but DTSTART is not
            CalTempoError: If any temporal property is malformed
        """
        uid = _text(component, "UID") or str(uuid.uuid4())
        zones = dict(timezones or {})
        fallback = default_tz or Tz.utc()

        dtstart_prop = ical_property(component, "DTSTART")
        if dtstart_prop is None:
            raise MissingKeyError(f"Event '{uid}': No DTSTART found")

        start = IcalDateTime.from_property(dtstart_prop, zones)
        zone = start.zone if isinstance(start, Local) and start.zone is not None else fallback

        span = cls._base_span(component, uid, start, zone, zones)
        rule: OccurrenceRule = OccurrenceRule.onetime(span)

        rrules = [prop.value for prop in ical_properties(component, "RRULE")]
        rdates = _instants(ical_properties(component, "RDATE"), zone, zones, span.is_allday)
        exdates = _instants(ical_properties(component, "EXDATE"), zone, zones, span.is_allday)
        if rrules or rdates:
            rule = OccurrenceRule.recurring(span, "\n".join(rrules), rdates, exdates)

        alarms = []
        for sub in component.walk("VALARM"):
            try:
                alarms.append(alarm_generator_from_component(sub, uid))
            except CalTempoError as e:
                logger.warning("Skipping alarm of event %s: %s", uid, e.message)

        return cls(
            uid=uid,
            title=_text(component, "SUMMARY") or "",
            occurrence_rule=rule,
            tz=zone,
            description=_text(component, "DESCRIPTION"),
            location=_text(component, "LOCATION"),
            alarms=tuple(alarms),
        )

    @staticmethod
    def _base_span(
        component: Any, uid: str, start: IcalDateTime, zone: tzinfo, zones: Mapping[str, tzinfo]
    ) -> TimeSpan:
        dtend_prop = ical_property(component, "DTEND")
        duration_prop = ical_property(component, "DURATION")

        if dtend_prop is not None:
            end = IcalDateTime.from_property(dtend_prop, zones)
            if isinstance(end, Date):
                if not isinstance(start, Date):
                    raise DateParseError(
                        f"Event '{uid}': DTEND must also be of type 'DATE' if DTSTART is",
                        dtend_prop.value,
                    )
                return TimeSpan.allday_until(start.value, end.value, zone)
            return TimeSpan.from_start_and_end(start.as_datetime(zone), end.as_datetime(zone))

        if duration_prop is not None:
            length = IcalDuration.from_property(duration_prop).to_timedelta()
            if isinstance(start, Date):
                if length % timedelta(days=1) == timedelta(0):
                    return TimeSpan.allday_until(start.value, start.value + length, zone)
            return TimeSpan.from_start_and_duration(start.as_datetime(zone), length)

        if isinstance(start, Date):
            return TimeSpan.allday(start.value, zone)
        return TimeSpan.from_start(start.as_datetime(zone))

    def all_alarms(self) -> list[AlarmIter]:
        return [generator.all_alarms(self) for generator in self.alarms]

    @property
    def span(self) -> TimeSpan:
        return self.occurrence_rule.first()

    def __str__(self) -> str:
        return f"{self.title} ({self.uid})"

