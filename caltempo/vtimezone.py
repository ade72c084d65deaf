"""Build custom timezones from VTIMEZONE components and POSIX TZ strings.

Every STANDARD/DAYLIGHT block becomes one ``TransitionSet``. Blocks with an
RRULE or RDATE become recurring transitions; the unrolled instants are kept
in the shared transition cache.

Rule synthesis is best effort: a zone that alternates a single STANDARD and
a single DAYLIGHT block without any rule gets a yearly day-of-week rule
derived from each block's DTSTART. POSIX ``Jn``/``n`` day rules are mapped to
the weekday ordinal of that day in 1970 and may drift by a few days in other
years.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

from dateutil.rrule import rrulestr

from .exceptions import TimezoneError
from .transitions import RecurringTransition, SingleTransition, TransitionSet
from .tz import CustomTz

logger = logging.getLogger(__name__)

_WEEKDAYS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
_UNTIL_UTC_RE = re.compile(r"UNTIL=(\d{8}T\d{6})Z", re.IGNORECASE)
_LOCAL_FORMAT = "%Y%m%dT%H%M%S"

_POSIX_NAME = r"[A-Za-z]{3,}|<[^>]+>"
_POSIX_OFFSET = r"[+-]?\d{1,3}(?::\d{2}){0,2}"
_POSIX_RE = re.compile(
    rf"^(?P<std>{_POSIX_NAME})(?P<stdoff>{_POSIX_OFFSET})"
    rf"(?:(?P<dst>{_POSIX_NAME})(?P<dstoff>{_POSIX_OFFSET})?"
    rf"(?:,(?P<start>[^,/]+)(?:/(?P<starttime>{_POSIX_OFFSET}))?"
    rf",(?P<end>[^,/]+)(?:/(?P<endtime>{_POSIX_OFFSET}))?)?)?$"
)
_POSIX_MONTH_RULE = re.compile(r"^M(\d{1,2})\.([1-5])\.([0-6])$")
_POSIX_DEFAULT_RULES = ("M3.2.0", "M11.1.0")
_POSIX_DEFAULT_TIME = timedelta(hours=2)


def yearly_weekday_rule(moment: date) -> str:
    """Describe ``moment`` as a yearly ``BYMONTH``/``BYDAY`` rule.

    Days in the last week of their month become ``-1`` (last weekday of the
    month); the rest count weeks from the start of the month.
    """
    days_in_month = calendar.monthrange(moment.year, moment.month)[1]
    if moment.day + 7 > days_in_month:
        ordinal = -1
    else:
        ordinal = (moment.day - 1) // 7 + 1
    weekday = _WEEKDAYS[moment.weekday()]
    return f"FREQ=YEARLY;BYMONTH={moment.month};BYDAY={ordinal}{weekday}"


def _localize_until(rule: str, offset_secs: int) -> str:
    """Rewrite UTC ``UNTIL`` values as wall-clock readings on the given offset."""

    def _replace(match: re.Match) -> str:
        utc = datetime.strptime(match.group(1), _LOCAL_FORMAT)
        local = utc + timedelta(seconds=offset_secs)
        return f"UNTIL={local.strftime(_LOCAL_FORMAT)}"

    return _UNTIL_UTC_RE.sub(_replace, rule)


def _naive(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    raise TimezoneError(f"Unsupported transition start '{value}'", str(value))


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _offset_secs(block: Any, key: str, tzid: str) -> int:
    value = block.get(key)
    if value is None:
        raise TimezoneError(f"Timezone '{tzid}': {block.name} block is missing {key}", tzid)
    return int(value.td.total_seconds())


def _rrule_texts(block: Any) -> list[str]:
    texts = []
    for recur in _as_list(block.get("RRULE")):
        raw = recur.to_ical()
        texts.append(raw.decode() if isinstance(raw, bytes) else str(raw))
    return texts


def _rdates(block: Any) -> list[datetime]:
    dates = []
    for entry in _as_list(block.get("RDATE")):
        for item in getattr(entry, "dts", [entry]):
            value = getattr(item, "dt", item)
            if isinstance(value, tuple):
                # PERIOD values start at their first element
                value = value[0]
            dates.append(_naive(value))
    return dates


def _rule_text(
    dtstart: datetime, rrules: list[str], rdates: list[datetime], offset_from: int
) -> str:
    lines = [f"DTSTART:{dtstart.strftime(_LOCAL_FORMAT)}"]
    lines.extend(f"RRULE:{_localize_until(rule, offset_from)}" for rule in rrules)
    if rdates:
        lines.append("RDATE:" + ",".join(dt.strftime(_LOCAL_FORMAT) for dt in rdates))
    return "\n".join(lines)


def custom_tz_from_vtimezone(component: Any) -> CustomTz:
    """Build a custom zone from a parsed VTIMEZONE component.

    Args:
        component: icalendar ``Timezone`` component

    Returns:
        CustomTz named after the component's TZID

    Raises:
        TimezoneError: If TZID is missing, a block lacks DTSTART or its
            offsets, or the zone has no STANDARD/DAYLIGHT blocks
    """
    tzid_value = component.get("TZID")
    if not tzid_value:
        raise TimezoneError("VTIMEZONE is missing TZID")
    tzid = str(tzid_value)

    blocks = [sub for sub in component.subcomponents if sub.name in ("STANDARD", "DAYLIGHT")]
    if not blocks:
        raise TimezoneError(f"Timezone '{tzid}' has no STANDARD or DAYLIGHT blocks", tzid)

    has_rules = any(block.get("RRULE") or block.get("RDATE") for block in blocks)
    kinds = [block.name for block in blocks]
    synthesize = (
        not has_rules and kinds.count("STANDARD") == 1 and kinds.count("DAYLIGHT") == 1
    )
    if synthesize:
        logger.debug("Timezone %s has no transition rules; synthesizing yearly rules", tzid)

    transitions = []
    for block in blocks:
        raw_start = block.get("DTSTART")
        if raw_start is None:
            raise TimezoneError(f"Timezone '{tzid}': {block.name} block is missing DTSTART", tzid)
        dtstart = _naive(raw_start.dt)
        offset_from = _offset_secs(block, "TZOFFSETFROM", tzid)
        offset_to = _offset_secs(block, "TZOFFSETTO", tzid)

        rrules = _rrule_texts(block)
        rdates = _rdates(block)
        if synthesize:
            rrules = [yearly_weekday_rule(dtstart.date())]

        if rrules or rdates:
            rule: Any = RecurringTransition(_rule_text(dtstart, rrules, rdates, offset_from))
        else:
            rule = SingleTransition(dtstart)

        name = block.get("TZNAME")
        if block.name == "DAYLIGHT":
            utc_offset, dst_offset = offset_from, offset_to - offset_from
        else:
            utc_offset, dst_offset = offset_to, 0

        transitions.append(
            TransitionSet(
                utc_offset_secs=utc_offset,
                dst_offset_secs=dst_offset,
                id=tzid,
                name=str(name) if name else None,
                rule=rule,
                offset_from_secs=offset_from,
            )
        )

    logger.debug("Built custom timezone %s from %d transition sets", tzid, len(transitions))
    return CustomTz(tzid, transitions)


def _posix_seconds(text: str) -> int:
    sign = -1 if text.startswith("-") else 1
    parts = [int(part) for part in text.lstrip("+-").split(":")]
    parts += [0] * (3 - len(parts))
    hours, minutes, seconds = parts
    return sign * (hours * 3600 + minutes * 60 + seconds)


def _posix_rule(day_rule: str, at: Optional[str]) -> str:
    """Turn one POSIX ``start``/``end`` field into recurring rule text."""
    moment = _POSIX_DEFAULT_TIME if at is None else timedelta(seconds=_posix_seconds(at))
    # Times past midnight keep the rule's day
    clock = (datetime.min + (moment % timedelta(days=1))).time()

    match = _POSIX_MONTH_RULE.match(day_rule)
    if match:
        month, week, weekday = (int(group) for group in match.groups())
        ordinal = -1 if week == 5 else week
        byday = f"{ordinal}{_WEEKDAYS[(weekday - 1) % 7]}"
        rule = f"FREQ=YEARLY;BYMONTH={month};BYDAY={byday}"
    elif day_rule.startswith("J") and day_rule[1:].isdigit():
        rule = yearly_weekday_rule(date(1970, 1, 1) + timedelta(days=int(day_rule[1:]) - 1))
    elif day_rule.isdigit():
        rule = yearly_weekday_rule(date(1970, 1, 1) + timedelta(days=int(day_rule)))
    else:
        raise TimezoneError(f"Unsupported POSIX transition rule '{day_rule}'", day_rule)

    # DTSTART counts as an onset, so it must be the first real one
    dtstart = rrulestr(rule, dtstart=datetime.combine(date(1970, 1, 1), clock))[0]
    return f"DTSTART:{dtstart.strftime(_LOCAL_FORMAT)}\nRRULE:{rule}"


def custom_tz_from_posix(tz_string: str, tzid: Optional[str] = None) -> CustomTz:
    """Build a custom zone from a POSIX TZ string such as ``EST5EDT,M3.2.0,M11.1.0``.

    Args:
        tz_string: POSIX TZ string
        tzid: Identifier for the zone; defaults to the TZ string itself

    Raises:
        TimezoneError: If the string cannot be parsed
    """
    match = _POSIX_RE.match(tz_string.strip())
    if not match:
        raise TimezoneError(f"Could not parse POSIX timezone '{tz_string}'", tz_string)

    parts = match.groupdict()
    zone_id = tzid or tz_string.strip()
    std_name = parts["std"].strip("<>")
    # POSIX offsets count hours west of Greenwich
    std_secs = -_posix_seconds(parts["stdoff"])

    if parts["dst"] is None:
        standard = TransitionSet(
            utc_offset_secs=std_secs,
            dst_offset_secs=0,
            id=zone_id,
            name=std_name,
            rule=SingleTransition(datetime(1970, 1, 1)),
            offset_from_secs=std_secs,
        )
        return CustomTz(zone_id, [standard])

    dst_name = parts["dst"].strip("<>")
    if parts["dstoff"]:
        dst_secs = -_posix_seconds(parts["dstoff"])
    else:
        dst_secs = std_secs + 3600

    start_rule, end_rule = _POSIX_DEFAULT_RULES
    if parts["start"]:
        start_rule, end_rule = parts["start"], parts["end"]

    daylight = TransitionSet(
        utc_offset_secs=std_secs,
        dst_offset_secs=dst_secs - std_secs,
        id=zone_id,
        name=dst_name,
        rule=RecurringTransition(_posix_rule(start_rule, parts["starttime"])),
        offset_from_secs=std_secs,
    )
    standard = TransitionSet(
        utc_offset_secs=std_secs,
        dst_offset_secs=0,
        id=zone_id,
        name=std_name,
        rule=RecurringTransition(_posix_rule(end_rule, parts["endtime"])),
        offset_from_secs=dst_secs,
    )
    return CustomTz(zone_id, [standard, daylight])
