"""Timezone transition sets and the shared cache of unrolled transition rules.

A custom timezone is described by a handful of transition sets, one per
STANDARD/DAYLIGHT block. A set either changes the offset once, or recurs by
an RRULE/RDATE description. Recurring descriptions are unrolled once into a
sorted tuple of local wall-clock instants, capped at ``HORIZON``, and kept in
a process-wide append-only cache keyed by the canonical rule text.
"""

from __future__ import annotations

import logging
import threading
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from itertools import takewhile
from typing import Any, Optional, Union

from dateutil.rrule import rrulestr

from .exceptions import RecurRuleParseError

logger = logging.getLogger(__name__)

# Recurring transitions are never unrolled past this instant.
HORIZON = datetime(2038, 1, 1)


@dataclass(frozen=True)
class SingleTransition:
    """A one-off transition at a local wall-clock instant."""

    instant: datetime

    def instants(self, cache: TransitionCache) -> tuple[datetime, ...]:
        return (self.instant,)


@dataclass(frozen=True)
class RecurringTransition:
    """A recurring transition described by ``DTSTART``/``RRULE``/``RDATE`` lines."""

    rule: str

    def instants(self, cache: TransitionCache) -> tuple[datetime, ...]:
        return cache.unroll(self.rule)


TransitionRule = Union[SingleTransition, RecurringTransition]


@dataclass(frozen=True)
class TransitionSet:
    """One offset regime of a custom timezone and the instants it starts at.

    Attributes:
        utc_offset_secs: Standard offset from UTC in seconds
        dst_offset_secs: Additional daylight saving offset in seconds
        id: Timezone identifier the set belongs to
        name: Abbreviation shown for the regime (e.g. ``CEST``)
        rule: When the regime begins, as local wall-clock readings
        offset_from_secs: Total offset in force just before each transition;
            the local readings of ``rule`` are on this clock
    """

    utc_offset_secs: int
    dst_offset_secs: int
    id: str
    rule: TransitionRule
    name: Optional[str] = None
    offset_from_secs: Optional[int] = None

    @property
    def total_secs(self) -> int:
        return self.utc_offset_secs + self.dst_offset_secs

    @property
    def before_secs(self) -> int:
        return self.total_secs if self.offset_from_secs is None else self.offset_from_secs

    @property
    def is_dst(self) -> bool:
        return self.dst_offset_secs != 0

    def utc_instants(self, cache: TransitionCache) -> list[datetime]:
        shift = timedelta(seconds=self.before_secs)
        return [instant - shift for instant in self.rule.instants(cache)]

    def first_instant(self, cache: TransitionCache) -> Optional[datetime]:
        """Return the UTC instant of the earliest transition, if any."""
        instants = self.rule.instants(cache)
        if not instants:
            return None
        return instants[0] - timedelta(seconds=self.before_secs)

    def latest_before(self, utc: datetime, cache: TransitionCache) -> Optional[datetime]:
        """Return the UTC instant of the latest transition at or before ``utc``.

        Args:
            utc: Naive UTC instant to look up
            cache: Cache holding unrolled recurring rules

        Returns:
            Naive UTC instant of the transition, or None if the set has not
            started yet at ``utc``
        """
        shift = timedelta(seconds=self.before_secs)
        instants = self.rule.instants(cache)
        idx = bisect_right(instants, utc + shift)
        if idx == 0:
            return None
        return instants[idx - 1] - shift


class TransitionCache:
    """Append-only store of unrolled recurring transition rules.

    Unrolled tuples live in an arena list; an index maps the canonical rule
    text to the arena slot. Entries are never evicted. Two threads racing on
    the same uncached rule may both unroll it; the first stored slot wins and
    the other result is discarded.
    """

    def __init__(self, horizon: datetime = HORIZON):
        self.horizon = horizon
        self._arena: list[tuple[datetime, ...]] = []
        self._index: dict[str, int] = {}
        self._lock = threading.Lock()

    def unroll(self, rule: str) -> tuple[datetime, ...]:
        """Return the sorted local instants of ``rule`` before the horizon.

        Raises:
            RecurRuleParseError: If the rule text is rejected by the rule evaluator
        """
        slot = self._index.get(rule)
        if slot is not None:
            return self._arena[slot]

        instants = self._expand(rule)
        with self._lock:
            slot = self._index.get(rule)
            if slot is None:
                self._arena.append(instants)
                slot = len(self._arena) - 1
                self._index[rule] = slot
        return self._arena[slot]

    def _expand(self, rule: str) -> tuple[datetime, ...]:
        try:
            # compatible mode counts DTSTART as the first onset
            occurrences = rrulestr(rule, compatible=True)
        except (ValueError, TypeError) as e:
            raise RecurRuleParseError(f"Invalid transition rule '{rule}': {e}", rule) from e

        horizon = self.horizon
        instants = tuple(sorted(takewhile(lambda dt: dt < horizon, occurrences)))
        logger.debug("Unrolled transition rule into %d instants", len(instants))
        return instants

    def __contains__(self, rule: object) -> bool:
        return rule in self._index

    def __len__(self) -> int:
        return len(self._arena)

    def stats(self) -> dict[str, Any]:
        return {
            "rules": len(self._arena),
            "instants": sum(len(entry) for entry in self._arena),
            "horizon": self.horizon.isoformat(),
        }


# Global cache instance
_transition_cache: Optional[TransitionCache] = None


def get_transition_cache(settings: Any = None) -> TransitionCache:
    """Get or create the global transition cache.

    Args:
        settings: Optional settings object; ``transition_horizon`` is read
            from it when the cache is first created

    Returns:
        Shared TransitionCache instance
    """
    global _transition_cache  # noqa: PLW0603
    if _transition_cache is None:
        horizon = getattr(settings, "transition_horizon", None) or HORIZON
        _transition_cache = TransitionCache(horizon=horizon)
        logger.debug("Created transition cache with horizon %s", horizon)
    return _transition_cache
