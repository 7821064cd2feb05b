"""Tests for next run time calculation."""

import time
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
import sys
from pathlib import Path

from croniter import croniter

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import settings
from models import ScheduleDescriptor
from scheduler import (
    InvalidScheduleError,
    LocalClock,
    evaluate_schedule,
    get_next_run,
    get_next_runs,
    is_due,
    next_in_list,
    next_run_time,
    parse_cron_expression,
)


def schedule(expression: str, **kwargs) -> ScheduleDescriptor:
    return ScheduleDescriptor.from_expression(expression, **kwargs)


def sample_times(count: int = 150):
    """Start times spread over minutes, hours, weekdays and month ends."""
    start = datetime(2023, 11, 28, 22, 47)
    return [start + timedelta(hours=7 * i, minutes=13 * i) for i in range(count)]


class TestNextInList:

    def test_first_value_at_or_above(self):
        assert next_in_list(5, [1, 5, 9]) == 5
        assert next_in_list(6, [1, 5, 9]) == 9

    def test_wraps_to_first(self):
        assert next_in_list(10, [1, 5, 9]) == 1

    def test_empty_list_gives_zero(self):
        assert next_in_list(3, []) == 0


class TestParseCronExpression:
    """Test parsing cron expression for next run time."""

    def test_parse_cron_expression(self):
        base_time = datetime(2024, 1, 1, 12, 0, 0)

        # Every minute
        next_time = parse_cron_expression("* * * * *", base_time)
        assert next_time == datetime(2024, 1, 1, 12, 1, 0)

        # Every hour at minute 0
        next_time = parse_cron_expression("0 * * * *", base_time)
        assert next_time == datetime(2024, 1, 1, 13, 0, 0)

        # Daily at midnight
        next_time = parse_cron_expression("0 0 * * *", base_time)
        assert next_time == datetime(2024, 1, 2, 0, 0, 0)

    def test_invalid_expression(self):
        assert parse_cron_expression("invalid", datetime(2024, 1, 1)) is None
        assert parse_cron_expression("60 * * * *", datetime(2024, 1, 1)) is None


class TestGetNextRun:
    """Test the next run calculation."""

    def test_strictly_after_current_minute(self):
        now = datetime(2024, 1, 1, 12, 0, 45)
        assert get_next_run(schedule("* * * * *"), now) == datetime(2024, 1, 1, 12, 1)

    def test_later_hour_starts_at_first_minute(self):
        now = datetime(2024, 1, 1, 12, 30)
        assert get_next_run(schedule("* 15 * * *"), now) == datetime(2024, 1, 1, 15, 0)

    def test_minute_wraps_into_next_hour(self):
        now = datetime(2024, 1, 1, 12, 59)
        assert get_next_run(schedule("* * * * *"), now) == datetime(2024, 1, 1, 13, 0)

    def test_hour_wraps_into_next_day(self):
        now = datetime(2024, 1, 1, 23, 59)
        assert get_next_run(schedule("* * * * *"), now) == datetime(2024, 1, 2, 0, 0)

    def test_day_wraps_into_next_year(self):
        now = datetime(2024, 12, 31, 23, 59)
        assert get_next_run(schedule("* * * * *"), now) == datetime(2025, 1, 1, 0, 0)

    def test_day_of_week_only(self):
        # 2024-01-03 is a Wednesday
        now = datetime(2024, 1, 3, 10, 0)
        assert get_next_run(schedule("0 0 * * 1"), now) == datetime(2024, 1, 8, 0, 0)

    def test_day_of_week_seven_is_sunday(self):
        now = datetime(2024, 1, 3, 10, 0)
        assert get_next_run(schedule("0 0 * * 7"), now) == datetime(2024, 1, 7, 0, 0)
        assert get_next_run(schedule("0 0 * * 0"), now) == datetime(2024, 1, 7, 0, 0)

    def test_monday_only_always_lands_on_monday(self):
        descriptor = schedule("30 6 * * 1")
        for now in sample_times():
            next_run = get_next_run(descriptor, now)
            assert next_run.weekday() == 0
            assert now < next_run <= now + timedelta(days=7)

    def test_day_of_month_only(self):
        now = datetime(2024, 2, 20, 12, 0)
        assert get_next_run(schedule("30 9 15 * *"), now) == datetime(2024, 3, 15, 9, 30)

    def test_fifteenth_only_always_lands_on_fifteenth(self):
        descriptor = schedule("0 0 15 * *")
        for now in sample_times():
            next_run = get_next_run(descriptor, now)
            assert next_run.day == 15
            assert next_run > now

    def test_both_day_fields_soonest_wins(self):
        descriptor = schedule("0 0 1 * 1")
        # Tuesday 2nd: the Monday after comes before the 1st of February
        assert get_next_run(descriptor, datetime(2024, 1, 2, 10, 0)) == datetime(2024, 1, 8, 0, 0)
        # Tuesday 30th: the 1st of February (a Thursday) comes first
        assert get_next_run(descriptor, datetime(2024, 1, 30, 10, 0)) == datetime(2024, 2, 1, 0, 0)

    def test_day_31_skips_short_months(self):
        descriptor = schedule("0 0 31 * *")
        assert get_next_run(descriptor, datetime(2024, 4, 10, 12, 0)) == datetime(2024, 5, 31, 0, 0)
        assert get_next_run(descriptor, datetime(2024, 1, 31, 12, 0)) == datetime(2024, 3, 31, 0, 0)

    def test_month_wraps_into_next_year(self):
        now = datetime(2024, 12, 15, 10, 0)
        assert get_next_run(schedule("0 0 1 1 *"), now) == datetime(2025, 1, 1, 0, 0)
        assert get_next_run(schedule("* * * 1 *"), now) == datetime(2025, 1, 1, 0, 0)

    def test_leap_day(self):
        now = datetime(2024, 3, 1, 0, 0)
        assert get_next_run(schedule("0 0 29 2 *"), now) == datetime(2028, 2, 29, 0, 0)

    def test_keeps_timezone(self):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        next_run = get_next_run(schedule("0 * * * *"), now)
        assert next_run == datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)
        assert next_run.tzinfo is timezone.utc

    def test_next_run_time_is_epoch_seconds(self):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        expected = int(datetime(2024, 1, 2, 0, 0, tzinfo=timezone.utc).timestamp())
        assert next_run_time(schedule("0 0 * * *"), now) == expected

    def test_always_in_the_future(self):
        expressions = ["*/7 * * * *", "0 3 * * 2,4", "15 22 1,15 * *", "0 0 10 3,9 5", "59 23 31 12 *"]
        for expression in expressions:
            descriptor = schedule(expression)
            for now in sample_times(60):
                assert get_next_run(descriptor, now) > now.replace(second=0)

    def test_defaults_to_clock(self):
        before = LocalClock().now()
        next_run = get_next_run(schedule("* * * * *"))
        assert next_run > before
        assert next_run - before <= timedelta(minutes=2)

    @pytest.mark.parametrize("expression", [
        "* * * * *",
        "*/15 * * * *",
        "0 */2 * * *",
        "30 9 * * 1-5",
        "0 0 1 * *",
        "0 0 1,15 * 1",
        "5 4 * * 0",
        "0 12 31 * *",
        "0 0 29 2 *",
        "15 10 * 6-8 *",
        "0-30/10 8-17 * * *",
    ])
    @pytest.mark.parametrize("base", [
        datetime(2024, 1, 1, 12, 0),
        datetime(2024, 2, 28, 23, 59),
        datetime(2024, 12, 31, 23, 59),
        datetime(2023, 4, 30, 8, 15),
        datetime(2025, 6, 15, 0, 0),
    ])
    def test_agrees_with_croniter(self, expression, base):
        expected = croniter(expression, base).get_next(datetime)
        assert get_next_run(schedule(expression), base) == expected


class TestDegenerateSchedules:
    """Schedules with a field matching nothing still produce a time."""

    def test_empty_minutes(self):
        now = datetime(2024, 1, 10, 12, 0)
        assert get_next_run(schedule("70 * * * *"), now) == datetime(2024, 1, 10, 13, 0)

    def test_empty_months_roll_back(self):
        # Month 0 of 2025 is December 2024
        now = datetime(2024, 1, 10, 12, 0)
        assert get_next_run(schedule("0 0 1 13 *"), now) == datetime(2024, 12, 1, 0, 0)

    def test_empty_minutes_as_timestamp(self):
        now = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
        assert isinstance(next_run_time(schedule("x * * * *"), now), int)

    def test_strict_raises(self):
        with pytest.raises(InvalidScheduleError) as excinfo:
            get_next_run(schedule("70 * * 13 *"), datetime(2024, 1, 10, 12, 0), strict=True)
        assert excinfo.value.fields == ["minute", "month"]

    def test_impossible_date(self):
        descriptor = schedule("0 0 31 2 *")
        now = datetime(2024, 1, 10, 12, 0)
        assert isinstance(get_next_run(descriptor, now, max_years=2), datetime)
        with pytest.raises(InvalidScheduleError):
            get_next_run(descriptor, now, strict=True, max_years=2)


class TestEvaluateSchedule:

    def test_days_use_current_month(self):
        evaluation = evaluate_schedule(schedule("0 0 31 * *"), datetime(2024, 4, 10))
        assert evaluation.days == []
        assert evaluation.is_degenerate is False

    def test_empty_fields(self):
        evaluation = evaluate_schedule(schedule("* 25 * * abc"), datetime(2024, 4, 10))
        assert evaluation.empty_fields == ["hour", "day_of_week"]
        assert evaluation.is_degenerate is True

    def test_valid_values(self):
        evaluation = evaluate_schedule(schedule("*/20 9-11 * 1,7 *"), datetime(2024, 2, 1))
        assert evaluation.minutes == [0, 20, 40]
        assert evaluation.hours == [9, 10, 11]
        assert evaluation.days == list(range(1, 30))
        assert evaluation.months == [1, 7]
        assert evaluation.days_of_week == list(range(8))


class TestNextRuns:

    def test_get_next_runs(self):
        runs = get_next_runs(schedule("0 */6 * * *"), 4, datetime(2024, 1, 1, 0, 0))
        assert runs == [
            datetime(2024, 1, 1, 6, 0),
            datetime(2024, 1, 1, 12, 0),
            datetime(2024, 1, 1, 18, 0),
            datetime(2024, 1, 2, 0, 0),
        ]


class TestIsDue:

    def _last_run(self, *args) -> int:
        return int(datetime(*args, tzinfo=timezone.utc).timestamp())

    def test_not_due_before_next_run(self):
        descriptor = schedule("0 * * * *", last_run_time=self._last_run(2024, 1, 1, 10, 0))
        assert is_due(descriptor, datetime(2024, 1, 1, 10, 30, tzinfo=timezone.utc)) is False

    def test_due_at_next_run(self):
        descriptor = schedule("0 * * * *", last_run_time=self._last_run(2024, 1, 1, 10, 0))
        assert is_due(descriptor, datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)) is True

    def test_never_run_is_due(self):
        assert is_due(schedule("0 0 1 1 *"), datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)) is True

    def test_disabled_never_due(self):
        descriptor = schedule("* * * * *", disabled=True)
        assert is_due(descriptor, datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)) is False

    def test_degenerate_never_due(self):
        assert is_due(schedule("70 * * * *"), datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)) is False


@pytest.fixture
def process_timezone(monkeypatch):
    """Switch the process timezone (TZ) for the duration of a test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    def use(name: str):
        monkeypatch.setenv("TZ", name)
        time.tzset()

    yield use
    monkeypatch.undo()
    time.tzset()


class TestNaiveTimes:
    """Naive times are read in the configured zone, never the process zone."""

    def test_next_run_time_ignores_process_timezone(self, process_timezone):
        results = []
        with patch.object(settings, "scheduler_timezone", "UTC"):
            for name in ("UTC", "America/New_York"):
                process_timezone(name)
                results.append(next_run_time(schedule("0 0 * * *"), datetime(2024, 1, 1, 12, 0)))
        assert results == [1704153600, 1704153600]

    def test_next_run_time_uses_configured_timezone(self, process_timezone):
        process_timezone("UTC")
        with patch.object(settings, "scheduler_timezone", "America/New_York"):
            # Midnight in New York is 05:00 UTC in January
            assert next_run_time(schedule("0 0 * * *"), datetime(2024, 1, 1, 12, 0)) == 1704171600

    def test_is_due_ignores_process_timezone(self, process_timezone):
        # Last run 2024-01-01 10:00 UTC
        descriptor = schedule("0 * * * *", last_run_time=1704103200)
        with patch.object(settings, "scheduler_timezone", "UTC"):
            for name in ("UTC", "America/New_York"):
                process_timezone(name)
                assert is_due(descriptor, datetime(2024, 1, 1, 10, 30)) is False
                assert is_due(descriptor, datetime(2024, 1, 1, 11, 0)) is True

    def test_localize_keeps_aware_times(self):
        clock = LocalClock("America/New_York")
        aware = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert clock.localize(aware) is aware
        assert clock.localize(datetime(2024, 1, 1, 12, 0)).tzinfo is clock.timezone
