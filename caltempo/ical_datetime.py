"""Codec for RFC5545 DATE and DATE-TIME values.

A value is one of four forms:

- ``Date``: ``YYYYMMDD`` (``VALUE=DATE``)
- ``Floating``: ``YYYYMMDDTHHMMSS`` without zone, read in the consumer's zone
- ``Utc``: ``YYYYMMDDTHHMMSSZ``
- ``Local``: ``YYYYMMDDTHHMMSS`` with a ``TZID`` parameter
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone, tzinfo
from typing import Mapping, NamedTuple, Optional, Union

from .duration import IcalDuration
from .exceptions import DateParseError, TimeParseError, TimezoneError
from .timespan import Allday, Duration, Instant, TimePoints, TimeSpan
from .tz import Tz

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y%m%d"
LOCAL_FORMAT = "%Y%m%dT%H%M%S"

_DATE_RE = re.compile(r"^\d{8}$")
_DATETIME_RE = re.compile(r"^\d{8}T\d{6}Z?$")
_UTC_IDS = frozenset({"UTC", "Etc/UTC", "GMT", "Etc/GMT", "Z"})

ZoneLookup = Union[tzinfo, Mapping[str, tzinfo], None]


class Property(NamedTuple):
    """A raw content line: name, parameters and value text."""

    name: str
    params: dict
    value: str

    def param(self, key: str) -> Optional[str]:
        value = self.params.get(key.upper())
        if value is None:
            return None
        return str(value).strip('"')


def _zone_id(zone: Optional[tzinfo]) -> Optional[str]:
    if zone is None:
        return None
    for attr in ("id", "key"):
        value = getattr(zone, attr, None)
        if value:
            return str(value)
    return None


def _resolve_tzid(tzid: str, zones: ZoneLookup) -> Optional[tzinfo]:
    """Resolve a TZID against the supplied zones, then by name."""
    if isinstance(zones, Mapping):
        zone = zones.get(tzid)
        if zone is not None:
            return zone
    elif zones is not None and _zone_id(zones) == tzid:
        return zones

    try:
        return Tz.from_str(tzid)
    except TimezoneError:
        logger.warning("Unknown TZID %r; reading value as floating time", tzid)
        return None


class IcalDateTime:
    """Base class of the four value forms."""

    @classmethod
    def from_property(cls, prop: Property, tz: ZoneLookup = None) -> IcalDateTime:
        """Decode a DTSTART/DTEND-like property.

        Args:
            prop: Raw property
            tz: Zone (or mapping of TZID to zone) used to resolve ``TZID``
                before falling back to named zones

        Returns:
            Decoded value

        Raises:
            DateParseError: If a date value is malformed
            TimeParseError: If a date-time value is malformed
        """
        value_type = (prop.param("VALUE") or "").upper()
        if value_type == "DATE":
            return Date(_parse_date(prop.value))
        return cls.from_str(prop.value, tzid=prop.param("TZID"), tz=tz)

    @classmethod
    def from_str(
        cls, text: str, tzid: Optional[str] = None, tz: ZoneLookup = None
    ) -> IcalDateTime:
        """Decode bare value text, trying date, local and UTC forms in turn."""
        value = text.strip()
        if _DATE_RE.match(value):
            return Date(_parse_date(value))

        if not _DATETIME_RE.match(value):
            raise TimeParseError(f"Could not parse date-time '{text}'", text)

        if not value.endswith("Z"):
            reading = _parse_local(value)
            if tzid:
                zone = _resolve_tzid(tzid, tz)
                if zone is not None:
                    return Local(reading.replace(tzinfo=zone))
            return Floating(reading)

        return Utc(_parse_local(value[:-1]).replace(tzinfo=timezone.utc))

    @staticmethod
    def from_datetime(value: Union[date, datetime]) -> IcalDateTime:
        """Classify a Python date or datetime."""
        if not isinstance(value, datetime):
            return Date(value)
        if value.tzinfo is None:
            return Floating(value)
        if value.tzinfo is timezone.utc or _zone_id(value.tzinfo) in _UTC_IDS:
            return Utc(value.astimezone(timezone.utc))
        return Local(value)

    def as_datetime(self, zone: tzinfo) -> datetime:
        raise NotImplementedError

    def as_date(self, zone: tzinfo) -> date:
        return self.as_datetime(zone).date()

    def to_property(self, name: str) -> Property:
        raise NotImplementedError

    def to_ical(self) -> str:
        return self.to_property("X").value


@dataclass(frozen=True)
class Date(IcalDateTime):
    value: date

    def as_datetime(self, zone: tzinfo) -> datetime:
        return datetime.combine(self.value, time(0, 0), tzinfo=zone)

    def as_date(self, zone: tzinfo) -> date:
        return self.value

    def to_property(self, name: str) -> Property:
        return Property(name, {"VALUE": "DATE"}, self.value.strftime(DATE_FORMAT))


@dataclass(frozen=True)
class Floating(IcalDateTime):
    value: datetime

    def as_datetime(self, zone: tzinfo) -> datetime:
        return self.value.replace(tzinfo=zone)

    def to_property(self, name: str) -> Property:
        return Property(name, {}, self.value.strftime(LOCAL_FORMAT))


@dataclass(frozen=True)
class Utc(IcalDateTime):
    value: datetime

    def as_datetime(self, zone: tzinfo) -> datetime:
        return self.value.astimezone(zone)

    def to_property(self, name: str) -> Property:
        utc = self.value.astimezone(timezone.utc)
        return Property(name, {}, utc.strftime(LOCAL_FORMAT) + "Z")


@dataclass(frozen=True)
class Local(IcalDateTime):
    value: datetime
    tzid: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.tzid is None:
            object.__setattr__(self, "tzid", _zone_id(self.value.tzinfo))

    @property
    def zone(self) -> Optional[tzinfo]:
        return self.value.tzinfo

    def as_datetime(self, zone: tzinfo) -> datetime:
        return self.value.astimezone(zone)

    def to_property(self, name: str) -> Property:
        params = {"TZID": self.tzid} if self.tzid else {}
        return Property(name, params, self.value.strftime(LOCAL_FORMAT))


def _parse_date(text: str) -> date:
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as e:
        raise DateParseError(f"Could not parse date '{text}'", text) from e


def _parse_local(text: str) -> datetime:
    try:
        return datetime.strptime(text, LOCAL_FORMAT)
    except ValueError as e:
        raise TimeParseError(f"Could not parse date-time '{text}'", text) from e


def timespan_to_properties(span: TimeSpan) -> list[Property]:
    """Render DTSTART plus DTEND or DURATION for a span."""
    if isinstance(span, Allday):
        props = [Date(span.start).to_property("DTSTART")]
        if span.stop is not None:
            props.append(Date(span.stop).to_property("DTEND"))
        return props

    dtstart = IcalDateTime.from_datetime(span.begin()).to_property("DTSTART")
    if isinstance(span, TimePoints):
        return [dtstart, IcalDateTime.from_datetime(span.end()).to_property("DTEND")]
    if isinstance(span, Duration):
        return [dtstart, Property("DURATION", {}, IcalDuration.from_timedelta(span.length).to_ical())]
    if isinstance(span, Instant):
        return [dtstart]
    raise TypeError(f"Unsupported span {span!r}")

