"""Timezone resolution for calendar values.

Three kinds of zone are supported, all usable directly as ``tzinfo``:

- ``LocalTz``: the host's local zone (dateutil ``tzlocal``)
- ``IanaTz``: a zone from the IANA database (``zoneinfo``)
- ``CustomTz``: a zone defined by transition sets, usually built from a
  VTIMEZONE block embedded in a calendar file

Each zone answers two questions: which offset applies at a UTC instant, and
which offsets a local wall-clock reading may carry (one, two during a
repeated hour, none during a skipped hour).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import ClassVar, Iterable, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import tz as dateutil_tz

from .exceptions import TimezoneError
from .transitions import TransitionSet, get_transition_cache

logger = logging.getLogger(__name__)

LOCAL_ID = "Localtime"

# Windows timezone names to IANA identifier mapping
# Common Windows timezones used in ICS files from Outlook/Exchange
WINDOWS_TZ_MAP: dict[str, str] = {
    # US Timezones
    "Pacific Standard Time": "America/Los_Angeles",
    "Mountain Standard Time": "America/Denver",
    "Central Standard Time": "America/Chicago",
    "Eastern Standard Time": "America/New_York",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "US Mountain Standard Time": "America/Phoenix",
    "Atlantic Standard Time": "America/Halifax",
    "Newfoundland Standard Time": "America/St_Johns",
    # Europe
    "GMT Standard Time": "Europe/London",
    "Greenwich Standard Time": "Atlantic/Reykjavik",
    "W. Europe Standard Time": "Europe/Berlin",
    "Romance Standard Time": "Europe/Paris",
    "Central Europe Standard Time": "Europe/Budapest",
    "Central European Standard Time": "Europe/Warsaw",
    "E. Europe Standard Time": "Europe/Chisinau",
    "FLE Standard Time": "Europe/Helsinki",
    "GTB Standard Time": "Europe/Bucharest",
    "Russian Standard Time": "Europe/Moscow",
    # Asia
    "China Standard Time": "Asia/Shanghai",
    "Tokyo Standard Time": "Asia/Tokyo",
    "Korea Standard Time": "Asia/Seoul",
    "Singapore Standard Time": "Asia/Singapore",
    "India Standard Time": "Asia/Kolkata",
    "SE Asia Standard Time": "Asia/Bangkok",
    "Arabian Standard Time": "Asia/Dubai",
    "Israel Standard Time": "Asia/Jerusalem",
    # Australia & Pacific
    "AUS Eastern Standard Time": "Australia/Sydney",
    "AUS Central Standard Time": "Australia/Darwin",
    "E. Australia Standard Time": "Australia/Brisbane",
    "W. Australia Standard Time": "Australia/Perth",
    "New Zealand Standard Time": "Pacific/Auckland",
    # South America & Africa
    "E. South America Standard Time": "America/Sao_Paulo",
    "Argentina Standard Time": "America/Argentina/Buenos_Aires",
    "South Africa Standard Time": "Africa/Johannesburg",
    "Egypt Standard Time": "Africa/Cairo",
    # UTC
    "UTC": "UTC",
    "Coordinated Universal Time": "UTC",
}


@dataclass(frozen=True)
class TzOffset:
    """Offset in force at one instant of a zone."""

    utc_offset_secs: int
    dst_offset_secs: int
    id: str
    name: Optional[str] = None

    @property
    def total_secs(self) -> int:
        return self.utc_offset_secs + self.dst_offset_secs

    @property
    def total(self) -> timedelta:
        return timedelta(seconds=self.total_secs)

    @property
    def dst(self) -> timedelta:
        return timedelta(seconds=self.dst_offset_secs)

    def __str__(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class LocalResult:
    """Offsets a local wall-clock reading may carry, earliest instant first."""

    offsets: tuple[TzOffset, ...] = ()

    @property
    def is_single(self) -> bool:
        return len(self.offsets) == 1

    @property
    def is_ambiguous(self) -> bool:
        return len(self.offsets) > 1

    @property
    def is_none(self) -> bool:
        return not self.offsets

    def single(self) -> Optional[TzOffset]:
        return self.offsets[0] if self.is_single else None

    def earliest(self) -> Optional[TzOffset]:
        return self.offsets[0] if self.offsets else None

    def latest(self) -> Optional[TzOffset]:
        return self.offsets[-1] if self.offsets else None


class Tz(tzinfo):
    """Base class of all caltempo zones."""

    id: str

    def offset_from_utc_datetime(self, utc: datetime) -> TzOffset:
        raise NotImplementedError

    def offset_from_local_datetime(self, local: datetime) -> LocalResult:
        raise NotImplementedError

    def offset_from_utc_date(self, utc: date) -> TzOffset:
        """Offset in force at noon UTC of ``utc``."""
        return self.offset_from_utc_datetime(datetime.combine(utc, time(12, 0, 0)))

    def offset_from_local_date(self, local: date) -> LocalResult:
        """Offset of a whole local day, sampled at its first and last second.

        A single offset at either end wins; otherwise the earlier offset of
        an ambiguous reading is used.
        """
        earliest = self.offset_from_local_datetime(datetime.combine(local, time(0, 0, 0)))
        latest = self.offset_from_local_datetime(datetime.combine(local, time(23, 59, 59)))
        for result in (earliest, latest):
            if result.is_single:
                return result
        for result in (earliest, latest):
            if result.is_ambiguous:
                return LocalResult(result.offsets[:1])
        return LocalResult()

    def localize(self, local: datetime, fold: int = 0) -> datetime:
        """Attach this zone to a naive wall-clock reading."""
        return local.replace(tzinfo=self, fold=fold)

    @staticmethod
    def from_str(name: str) -> Tz:
        """Resolve a zone name.

        ``local``/``localtime`` select the host zone; IANA identifiers and the
        common Windows names emitted by Outlook/Exchange are accepted too.

        Raises:
            TimezoneError: If the name cannot be resolved
        """
        key = name.strip().strip('"')
        if key.lower() in ("local", "localtime"):
            return _local_zone()

        try:
            return _iana_zone(key)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            pass

        iana = WINDOWS_TZ_MAP.get(key)
        if iana:
            logger.debug("Mapped Windows timezone %s to %s", key, iana)
            return _iana_zone(iana)

        raise TimezoneError(f"Timezone '{name}' not recognized", name)

    @staticmethod
    def utc() -> Tz:
        return _iana_zone("UTC")

    @staticmethod
    def local() -> Tz:
        return _local_zone()

    def __str__(self) -> str:
        return self.id

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tz):
            return NotImplemented
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))


class _ZoneBackedTz(Tz):
    """Zone delegating offset arithmetic to another ``tzinfo``."""

    def __init__(self, id: str, zone: tzinfo):
        self.id = id
        self._zone = zone

    def utcoffset(self, dt: Optional[datetime]) -> Optional[timedelta]:
        return self._zone.utcoffset(dt)

    def dst(self, dt: Optional[datetime]) -> Optional[timedelta]:
        return self._zone.dst(dt)

    def tzname(self, dt: Optional[datetime]) -> Optional[str]:
        return self._zone.tzname(dt)

    def fromutc(self, dt: datetime) -> datetime:
        if not isinstance(dt, datetime):
            raise TypeError("fromutc() requires a datetime argument")
        if dt.tzinfo is not self:
            raise ValueError("dt.tzinfo is not self")
        local = self._zone.fromutc(dt.replace(tzinfo=self._zone))
        return local.replace(tzinfo=self)

    def _offset_of(self, aware: datetime) -> TzOffset:
        total = aware.utcoffset() or timedelta(0)
        dst = aware.dst() or timedelta(0)
        return TzOffset(
            utc_offset_secs=int((total - dst).total_seconds()),
            dst_offset_secs=int(dst.total_seconds()),
            id=self.id,
            name=aware.tzname(),
        )

    def offset_from_utc_datetime(self, utc: datetime) -> TzOffset:
        aware = utc.replace(tzinfo=timezone.utc).astimezone(self._zone)
        return self._offset_of(aware)

    def offset_from_local_datetime(self, local: datetime) -> LocalResult:
        aware = local.replace(tzinfo=self._zone, fold=0)
        if not dateutil_tz.datetime_exists(aware):
            return LocalResult()
        if dateutil_tz.datetime_ambiguous(aware):
            return LocalResult(
                (self._offset_of(aware), self._offset_of(aware.replace(fold=1)))
            )
        return LocalResult((self._offset_of(aware),))


class LocalTz(_ZoneBackedTz):
    """The host's local zone."""

    def __init__(self) -> None:
        super().__init__(LOCAL_ID, dateutil_tz.tzlocal())

    def __reduce__(self):
        return (_local_zone, ())


class IanaTz(_ZoneBackedTz):
    """A zone from the IANA timezone database."""

    def __init__(self, key: str):
        super().__init__(key, ZoneInfo(key))

    def __reduce__(self):
        return (_iana_zone, (self.id,))


@lru_cache(maxsize=None)
def _iana_zone(key: str) -> IanaTz:
    return IanaTz(key)


@lru_cache(maxsize=1)
def _local_zone() -> LocalTz:
    return LocalTz()


class CustomTz(Tz):
    """Zone defined by a list of transition sets.

    For a UTC instant, the set whose latest transition is the most recent one
    at or before the instant supplies the offset. Before the first transition
    the offset in force is the one the earliest transition starts from.
    """

    MAX_CANDIDATES: ClassVar[int] = 2

    def __init__(self, id: str, transitions: Sequence[TransitionSet]):
        if not transitions:
            raise TimezoneError(f"Custom timezone '{id}' has no transitions", id)
        self.id = id
        self.transitions = tuple(transitions)

    @classmethod
    def from_transitions(cls, transitions: Iterable[TransitionSet]) -> CustomTz:
        """Build a zone named after the first transition set."""
        sets = list(transitions)
        if not sets:
            raise TimezoneError("Custom timezone has no transitions")
        return cls(sets[0].id, sets)

    def _offset(self, transition: TransitionSet) -> TzOffset:
        return TzOffset(
            utc_offset_secs=transition.utc_offset_secs,
            dst_offset_secs=transition.dst_offset_secs,
            id=transition.id,
            name=transition.name,
        )

    def _initial_offset(self) -> TzOffset:
        cache = get_transition_cache()
        starts = []
        for ts in self.transitions:
            first = ts.first_instant(cache)
            if first is not None:
                starts.append((first, ts))
        if not starts:
            return self._offset(self.transitions[0])

        _, earliest = min(starts, key=lambda item: item[0])
        before = earliest.before_secs
        for ts in self.transitions:
            if ts.total_secs == before:
                return self._offset(ts)
        return TzOffset(utc_offset_secs=before, dst_offset_secs=0, id=self.id)

    def _candidate_offsets(self) -> list[int]:
        totals = [ts.total_secs for ts in self.transitions]
        totals.append(self._initial_offset().total_secs)
        return list(dict.fromkeys(totals))

    def offset_from_utc_datetime(self, utc: datetime) -> TzOffset:
        cache = get_transition_cache()
        latest: Optional[datetime] = None
        active: Optional[TransitionSet] = None
        for ts in self.transitions:
            instant = ts.latest_before(utc, cache)
            if instant is not None and (latest is None or instant > latest):
                latest, active = instant, ts
        if active is None:
            return self._initial_offset()
        return self._offset(active)

    def offset_from_local_datetime(self, local: datetime) -> LocalResult:
        matches: list[tuple[datetime, TzOffset]] = []
        for total in self._candidate_offsets():
            utc = local - timedelta(seconds=total)
            offset = self.offset_from_utc_datetime(utc)
            if offset.total_secs == total:
                matches.append((utc, offset))
        matches.sort(key=lambda match: match[0])
        if len(matches) > self.MAX_CANDIDATES:
            matches = [matches[0], matches[-1]]
        return LocalResult(tuple(offset for _, offset in matches))

    def _resolve(self, dt: datetime) -> TzOffset:
        local = dt.replace(tzinfo=None, fold=0)
        result = self.offset_from_local_datetime(local)
        if result.offsets:
            return result.offsets[-1] if dt.fold else result.offsets[0]

        # Skipped reading: fold=0 keeps the offset from before the transition
        totals = self._candidate_offsets()
        shift = min(totals) if dt.fold else max(totals)
        return self.offset_from_utc_datetime(local - timedelta(seconds=shift))

    def utcoffset(self, dt: Optional[datetime]) -> Optional[timedelta]:
        if dt is None:
            return None
        return self._resolve(dt).total

    def dst(self, dt: Optional[datetime]) -> Optional[timedelta]:
        if dt is None:
            return None
        return self._resolve(dt).dst

    def tzname(self, dt: Optional[datetime]) -> Optional[str]:
        if dt is None:
            return self.id
        return str(self._resolve(dt))

    def fromutc(self, dt: datetime) -> datetime:
        if not isinstance(dt, datetime):
            raise TypeError("fromutc() requires a datetime argument")
        if dt.tzinfo is not self:
            raise ValueError("dt.tzinfo is not self")
        utc = dt.replace(tzinfo=None)
        offset = self.offset_from_utc_datetime(utc)
        local = utc + offset.total
        result = self.offset_from_local_datetime(local)
        fold = int(result.is_ambiguous and result.offsets[0].total_secs != offset.total_secs)
        return local.replace(tzinfo=self, fold=fold)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CustomTz):
            return NotImplemented
        return self.id == other.id and self.transitions == other.transitions

    def __hash__(self) -> int:
        return hash((self.id, self.transitions))
