"""Unit tests for caltempo.transitions."""

import threading
from datetime import datetime
from types import SimpleNamespace

import pytest

from caltempo.exceptions import RecurRuleParseError
from caltempo.transitions import (
    HORIZON,
    RecurringTransition,
    SingleTransition,
    TransitionCache,
    TransitionSet,
    get_transition_cache,
)

pytestmark = pytest.mark.unit

SPRING_RULE = "DTSTART:20070311T020000\nRRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=2SU"


class TestTransitionCache:
    """Tests for unrolling and memoizing transition rules."""

    def test_unroll_includes_dtstart_and_stops_at_horizon(self):
        cache = TransitionCache()

        instants = cache.unroll(SPRING_RULE)

        assert instants[0] == datetime(2007, 3, 11, 2, 0)
        assert instants[-1] == datetime(2037, 3, 8, 2, 0)
        assert len(instants) == 31
        assert all(instant < HORIZON for instant in instants)
        assert list(instants) == sorted(instants)

    def test_unroll_when_repeated_then_returns_cached_tuple(self):
        cache = TransitionCache()

        first = cache.unroll(SPRING_RULE)
        second = cache.unroll(SPRING_RULE)

        assert first is second
        assert len(cache) == 1
        assert SPRING_RULE in cache

    def test_unroll_respects_custom_horizon(self):
        cache = TransitionCache(horizon=datetime(2010, 1, 1))

        instants = cache.unroll(SPRING_RULE)

        assert [instant.year for instant in instants] == [2007, 2008, 2009]

    def test_unroll_when_rule_invalid_then_raises(self):
        cache = TransitionCache()

        with pytest.raises(RecurRuleParseError):
            cache.unroll("DTSTART:20070311T020000\nRRULE:FREQ=SOMETIMES")

        assert len(cache) == 0

    def test_unroll_merges_rdates(self):
        cache = TransitionCache()
        rule = "DTSTART:20000402T020000\nRDATE:20010401T020000,20020407T020000"

        instants = cache.unroll(rule)

        assert instants == (
            datetime(2000, 4, 2, 2),
            datetime(2001, 4, 1, 2),
            datetime(2002, 4, 7, 2),
        )

    def test_stats_counts_rules_and_instants(self):
        cache = TransitionCache()
        cache.unroll(SPRING_RULE)

        stats = cache.stats()

        assert stats["rules"] == 1
        assert stats["instants"] == 31
        assert stats["horizon"] == "2038-01-01T00:00:00"

    def test_concurrent_first_unroll_stores_rule_once(self):
        cache = TransitionCache()
        start = threading.Barrier(8)
        results = []

        def worker():
            start.wait()
            results.append(cache.unroll(SPRING_RULE))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert len(results[0]) == 31


class TestGetTransitionCache:
    """Tests for the shared cache instance."""

    def test_returns_same_instance(self):
        assert get_transition_cache() is get_transition_cache()

    def test_horizon_read_from_settings_on_creation(self):
        settings = SimpleNamespace(transition_horizon=datetime(2030, 1, 1))

        cache = get_transition_cache(settings)

        assert cache.horizon == datetime(2030, 1, 1)

    def test_later_settings_do_not_replace_cache(self):
        cache = get_transition_cache()

        again = get_transition_cache(SimpleNamespace(transition_horizon=datetime(2030, 1, 1)))

        assert again is cache
        assert again.horizon == HORIZON


class TestTransitionSet:
    """Tests for looking up transitions of one set."""

    def _daylight(self):
        return TransitionSet(
            utc_offset_secs=-18000,
            dst_offset_secs=3600,
            id="Custom/Eastern",
            name="EDT",
            rule=RecurringTransition(SPRING_RULE),
            offset_from_secs=-18000,
        )

    def test_totals(self):
        ts = self._daylight()

        assert ts.total_secs == -14400
        assert ts.before_secs == -18000
        assert ts.is_dst is True

    def test_before_secs_defaults_to_total(self):
        ts = TransitionSet(
            utc_offset_secs=3600, dst_offset_secs=0, id="X", rule=SingleTransition(datetime(2000, 1, 1))
        )

        assert ts.before_secs == 3600

    def test_latest_before_when_at_transition_then_returns_it(self):
        ts = self._daylight()

        latest = ts.latest_before(datetime(2024, 3, 10, 7, 0), TransitionCache())

        assert latest == datetime(2024, 3, 10, 7, 0)

    def test_latest_before_when_just_before_then_returns_previous_year(self):
        ts = self._daylight()

        latest = ts.latest_before(datetime(2024, 3, 10, 6, 59), TransitionCache())

        assert latest == datetime(2023, 3, 12, 7, 0)

    def test_latest_before_when_before_first_then_none(self):
        ts = self._daylight()

        assert ts.latest_before(datetime(2000, 1, 1), TransitionCache()) is None

    def test_first_instant_is_utc(self):
        ts = self._daylight()

        assert ts.first_instant(TransitionCache()) == datetime(2007, 3, 11, 7, 0)

    def test_single_transition_has_one_instant(self):
        ts = TransitionSet(
            utc_offset_secs=0,
            dst_offset_secs=0,
            id="X",
            rule=SingleTransition(datetime(2011, 3, 27, 2)),
            offset_from_secs=10800,
        )

        assert ts.utc_instants(TransitionCache()) == [datetime(2011, 3, 26, 23)]
