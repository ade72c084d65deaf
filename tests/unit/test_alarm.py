"""Unit tests for caltempo.alarm."""

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from caltempo.alarm import (
    AbsoluteTrigger,
    Alarm,
    AlarmGenerator,
    AlarmIter,
    EndTrigger,
    StartTrigger,
)
from caltempo.recurrence import OccurrenceRule
from caltempo.timespan import Allday, Duration, Instant, TimePoints

pytestmark = pytest.mark.unit

UTC = timezone.utc


def at(hour, minute=0, day=15):
    return datetime(2024, 1, day, hour, minute, tzinfo=UTC)


@pytest.fixture
def meeting():
    """One-hour meeting at 10:00 UTC."""
    return TimePoints(at(10), at(11))


class TestOccurrenceAlarms:
    """Tests for the alarms of a single occurrence."""

    def test_start_trigger_before_start(self, meeting):
        generator = AlarmGenerator(StartTrigger(timedelta(minutes=-15)), "evt-1")

        alarms = generator.occurrence_alarms(meeting)

        assert [alarm.instant for alarm in alarms] == [at(9, 45)]
        assert alarms[0].event_uid == "evt-1"
        assert alarms[0].span == meeting

    def test_end_trigger_after_end(self, meeting):
        generator = AlarmGenerator(EndTrigger(timedelta(minutes=5)), "evt-1")

        alarms = generator.occurrence_alarms(meeting)

        assert [alarm.instant for alarm in alarms] == [at(11, 5)]

    def test_repeat_counts_total_alarms(self, meeting):
        generator = AlarmGenerator(
            StartTrigger(timedelta(0)), "evt-1", repeat=3, wait=timedelta(minutes=5)
        )

        alarms = generator.occurrence_alarms(meeting)

        assert [alarm.instant for alarm in alarms] == [at(10), at(10, 5), at(10, 10)]

    def test_repeat_after_end_trigger_counts_from_end(self, meeting):
        generator = AlarmGenerator(
            EndTrigger(timedelta(0)), "evt-1", repeat=2, wait=timedelta(minutes=10)
        )

        alarms = generator.occurrence_alarms(meeting)

        assert [alarm.instant for alarm in alarms] == [at(11), at(11, 10)]

    def test_repeat_without_wait_gives_single_alarm(self, meeting):
        generator = AlarmGenerator(StartTrigger(timedelta(0)), "evt-1", repeat=3)

        assert len(generator.occurrence_alarms(meeting)) == 1

    def test_start_trigger_on_allday_moves_into_previous_day(self):
        span = Allday(date(2024, 1, 15), None, UTC)
        generator = AlarmGenerator(StartTrigger(timedelta(minutes=-15)), "evt-1")

        alarms = generator.occurrence_alarms(span)

        assert alarms[0].instant == datetime(2024, 1, 14, 23, 45, tzinfo=UTC)

    def test_end_trigger_on_allday_ignores_sub_day_offset(self):
        span = Allday(date(2024, 1, 15), None, UTC)
        generator = AlarmGenerator(EndTrigger(timedelta(minutes=-15)), "evt-1")

        alarms = generator.occurrence_alarms(span)

        assert alarms[0].instant == datetime(2024, 1, 16, tzinfo=UTC)

    def test_start_trigger_on_duration_span(self):
        span = Duration(at(10), timedelta(minutes=30))
        generator = AlarmGenerator(StartTrigger(timedelta(minutes=-5)), "evt-1")

        assert generator.occurrence_alarms(span)[0].instant == at(9, 55)

    def test_absolute_trigger_ignores_occurrence(self, meeting):
        generator = AlarmGenerator(AbsoluteTrigger(at(8)), "evt-1")

        alarms = generator.occurrence_alarms(meeting)

        assert generator.is_absolute is True
        assert [alarm.instant for alarm in alarms] == [at(8)]

    def test_unknown_trigger_raises(self, meeting):
        generator = AlarmGenerator("soon", "evt-1")

        with pytest.raises(TypeError):
            generator.occurrence_alarms(meeting)


class TestAlarmIter:
    """Tests for walking alarms across occurrences."""

    def test_walks_every_occurrence(self):
        rule = OccurrenceRule.recurring(TimePoints(at(10), at(11)), "FREQ=DAILY;COUNT=3")
        generator = AlarmGenerator(StartTrigger(timedelta(minutes=-15)), "evt-1")

        instants = [alarm.instant for alarm in AlarmIter(generator, rule)]

        assert instants == [at(9, 45, day=15), at(9, 45, day=16), at(9, 45, day=17)]

    def test_repeats_of_one_occurrence_come_last_first(self):
        rule = OccurrenceRule.recurring(TimePoints(at(10), at(11)), "FREQ=DAILY;COUNT=2")
        generator = AlarmGenerator(
            StartTrigger(timedelta(0)), "evt-1", repeat=2, wait=timedelta(minutes=5)
        )

        instants = [alarm.instant for alarm in generator.alarms_for(rule)]

        assert instants == [
            at(10, 5, day=15),
            at(10, 0, day=15),
            at(10, 5, day=16),
            at(10, 0, day=16),
        ]

    def test_absolute_trigger_fires_once_for_recurring_rule(self):
        rule = OccurrenceRule.recurring(TimePoints(at(10), at(11)), "FREQ=DAILY")
        generator = AlarmGenerator(AbsoluteTrigger(at(8)), "evt-1")

        assert [alarm.instant for alarm in AlarmIter(generator, rule)] == [at(8)]

    def test_unbounded_rule_is_lazy(self):
        rule = OccurrenceRule.recurring(Instant(at(10)), "FREQ=DAILY")
        alarms = AlarmIter(AlarmGenerator(StartTrigger(timedelta(0)), "evt-1"), rule)

        assert next(alarms).instant == at(10)
        assert next(alarms).instant == at(10, day=16)

    def test_all_alarms_reads_event_rule(self):
        event = SimpleNamespace(occurrence_rule=OccurrenceRule.onetime(TimePoints(at(10), at(11))))
        generator = AlarmGenerator(StartTrigger(timedelta(hours=-1)), "evt-1")

        assert [alarm.instant for alarm in generator.all_alarms(event)] == [at(9)]


class TestAlarm:
    """Tests for alarm values."""

    def test_alarms_order_by_instant(self):
        early = Alarm(at(9), description="z")
        late = Alarm(at(10), description="a")

        assert sorted([late, early]) == [early, late]

    def test_equality_ignores_details(self):
        assert Alarm(at(9), description="x", event_uid="a") == Alarm(at(9), event_uid="b")
