"""Next run time calculation for cron schedules."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Dict, List, Optional
import logging

from config import settings
from .clock import LocalClock
from .cron_parser import FIELD_BOUNDS, FIELD_NAMES, InvalidScheduleError, eval_cron_field, validate_cron

logger = logging.getLogger(__name__)


def next_in_list(current: int, values: List[int]) -> int:
    """Return the first value in the sorted list that is >= current.

    When no value is large enough the first value is returned (the caller
    detects the wrap by comparing against ``current``). An empty list gives 0.
    """
    for value in values:
        if value >= current:
            return value
    if values:
        return values[0]
    return 0


@dataclass
class ScheduleEvaluation:
    """Valid values of each field of one schedule at one point in time."""
    minutes: List[int]
    hours: List[int]
    days: List[int]  # against the length of the current month
    months: List[int]
    days_of_week: List[int]
    day_field: str = "*"
    day_of_week_field: str = "*"
    empty_fields: List[str] = field(default_factory=list)

    @property
    def is_degenerate(self) -> bool:
        """True when some field can never match, so no real run time exists."""
        return bool(self.empty_fields)


def evaluate_schedule(descriptor, now: datetime) -> ScheduleEvaluation:
    """Evaluate the five fields of a schedule descriptor.

    Args:
        descriptor: Object exposing ``fields()`` in minute, hour, day, month,
            day of week order (a ``ScheduleDescriptor``)
        now: Local time the schedule is evaluated at

    Returns:
        ScheduleEvaluation with the valid values and any empty fields
    """
    parts = descriptor.fields()
    widest = [eval_cron_field(part, low, high) for part, (low, high) in zip(parts, FIELD_BOUNDS)]
    minutes, hours, _, months, days_of_week = widest

    days = eval_cron_field(parts[2], FIELD_BOUNDS[2][0], LocalClock.days_in_month(now.year, now.month))

    return ScheduleEvaluation(
        minutes=minutes,
        hours=hours,
        days=days,
        months=months,
        days_of_week=days_of_week,
        day_field=parts[2].strip(),
        day_of_week_field=parts[4].strip(),
        empty_fields=[name for name, values in zip(FIELD_NAMES, widest) if not values],
    )


def _reconcile(evaluation: ScheduleEvaluation, by_month: int, by_week: int) -> int:
    # If either day field is * use the other one, otherwise the soonest wins
    # (see man 5 crontab).
    if evaluation.day_of_week_field == "*":
        return by_month
    if evaluation.day_field == "*":
        return by_week
    return min(by_month, by_week)


def _compose(year: int, month: int, day: int, hour: int, minute: int, tz: Optional[tzinfo]) -> datetime:
    """Build a datetime, rolling out-of-range parts over like mktime does."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=tz) + timedelta(days=day - 1, hours=hour, minutes=minute)


def _single_pass(evaluation: ScheduleEvaluation, now: datetime) -> datetime:
    """One pass over the fields from minute up to year.

    Every field is resolved exactly once. The result is only trustworthy when
    all fields are non-empty and the chosen month agrees with the chosen day;
    otherwise it is still a deterministic timestamp.
    """
    year = now.year
    month = now.month
    day = now.day
    hour = now.hour
    minute = now.minute + 1
    weekday = LocalClock.cron_weekday(now)
    days_in_month = LocalClock.days_in_month(now.year, now.month)

    next_minute = next_in_list(minute, evaluation.minutes)
    if next_minute < minute:
        hour += 1
    next_hour = next_in_list(hour, evaluation.hours)
    if next_hour < hour:
        day += 1
        weekday += 1

    next_day = next_in_list(day, evaluation.days)
    by_month = next_day - day
    if next_day < day:
        by_month += days_in_month

    next_weekday = next_in_list(weekday, evaluation.days_of_week)
    by_week = next_weekday - weekday
    if next_weekday < weekday:
        by_week += 7

    day += _reconcile(evaluation, by_month, by_week)
    if day > days_in_month:
        month += 1
        day -= days_in_month

    next_month = next_in_list(month, evaluation.months)
    if next_month < month:
        year += 1

    return _compose(year, next_month, day, next_hour, next_minute, now.tzinfo)


def _search(evaluation: ScheduleEvaluation, now: datetime, max_years: int) -> Optional[datetime]:
    """Walk forward from now until a time matches every field.

    Same steps as the single pass, repeated after each move to a later day
    or month, so the day fields are always checked against the month the
    candidate is actually in.
    """
    minutes = evaluation.minutes
    hours = evaluation.hours
    months = evaluation.months
    days_of_week = sorted({value % 7 for value in evaluation.days_of_week})
    days_by_length: Dict[int, List[int]] = {}

    year, month, day = now.year, now.month, now.day
    hour, minute = now.hour, now.minute + 1
    last_year = now.year + max_years

    while year <= last_year:
        if month not in months:
            next_month = next_in_list(month, months)
            if next_month < month:
                year += 1
            month, day, hour, minute = next_month, 1, 0, 0
            continue

        days_in_month = LocalClock.days_in_month(year, month)
        if day > days_in_month:
            day -= days_in_month
            month += 1
            if month > 12:
                month = 1
                year += 1
            hour = minute = 0
            continue

        if days_in_month not in days_by_length:
            days_by_length[days_in_month] = eval_cron_field(evaluation.day_field, 1, days_in_month)
        valid_days = days_by_length[days_in_month]

        if valid_days:
            next_day = next_in_list(day, valid_days)
            by_month = next_day - day
            if next_day < day:
                by_month += days_in_month
        else:
            # e.g. day 31 in a 30 day month
            by_month = days_in_month - day + 1

        weekday = LocalClock.cron_weekday(datetime(year, month, day))
        next_weekday = next_in_list(weekday, days_of_week)
        by_week = next_weekday - weekday
        if next_weekday < weekday:
            by_week += 7

        increment = _reconcile(evaluation, by_month, by_week)
        if increment:
            day += increment
            hour = minute = 0
            continue

        next_minute = next_in_list(minute, minutes)
        if next_minute < minute:
            hour += 1
        next_hour = next_in_list(hour, hours)
        if next_hour < hour:
            day += 1
            hour = minute = 0
            continue
        if next_hour > hour:
            next_minute = minutes[0]

        return datetime(year, month, day, next_hour, next_minute, tzinfo=now.tzinfo)

    return None


def get_next_run(
    descriptor,
    now: Optional[datetime] = None,
    strict: bool = False,
    max_years: Optional[int] = None,
) -> datetime:
    """Calculate when a schedule should next run.

    The result is always strictly after the minute of ``now`` and carries the
    same tzinfo. Schedules with a field that matches nothing do not raise:
    they produce a deterministic but meaningless time unless ``strict`` is
    set.

    Args:
        descriptor: ScheduleDescriptor to evaluate
        now: Local time to calculate from (default: LocalClock().now())
        strict: Raise InvalidScheduleError instead of returning a meaningless time
        max_years: Search horizon (default: settings.search_max_years)

    Returns:
        Next run datetime
    """
    if now is None:
        now = LocalClock().now()
    if max_years is None:
        max_years = settings.search_max_years

    evaluation = evaluate_schedule(descriptor, now)
    if evaluation.is_degenerate:
        if strict:
            raise InvalidScheduleError(evaluation.empty_fields, descriptor.expression)
        logger.warning(
            f"Schedule '{descriptor.expression}' has fields matching nothing "
            f"({', '.join(evaluation.empty_fields)}), next run time is not meaningful"
        )
        return _single_pass(evaluation, now)

    next_run = _search(evaluation, now, max_years)
    if next_run is None:
        if strict:
            raise InvalidScheduleError(["day", "month"], descriptor.expression)
        logger.warning(
            f"Schedule '{descriptor.expression}' has no run time within {max_years} years of {now.isoformat()}"
        )
        return _single_pass(evaluation, now)

    logger.debug(f"Next run for '{descriptor.expression}' after {now.isoformat()}: {next_run.isoformat()}")
    return next_run


def next_run_time(
    descriptor,
    now: Optional[datetime] = None,
    strict: bool = False,
    max_years: Optional[int] = None,
) -> int:
    """Next run of a schedule as epoch seconds. See get_next_run.

    A naive ``now`` is read in settings.scheduler_timezone, never in the
    process timezone.
    """
    if now is not None:
        now = LocalClock().localize(now)
    return int(get_next_run(descriptor, now, strict=strict, max_years=max_years).timestamp())


def get_next_runs(descriptor, count: int, now: Optional[datetime] = None) -> List[datetime]:
    """Get the next ``count`` run times."""
    runs = []
    current = now if now is not None else LocalClock().now()
    for _ in range(count):
        current = get_next_run(descriptor, current)
        runs.append(current)
    return runs


def is_due(descriptor, now: Optional[datetime] = None) -> bool:
    """Check whether a run has come due since the descriptor last ran.

    Disabled schedules and schedules that can never match are never due.
    """
    if descriptor.get_disabled():
        return False
    clock = LocalClock()
    now = clock.now() if now is None else clock.localize(now)

    last_run = datetime.fromtimestamp(descriptor.get_last_run_time(), tz=now.tzinfo)
    try:
        next_run = get_next_run(descriptor, last_run, strict=True)
    except InvalidScheduleError as e:
        logger.warning(f"Not running schedule: {e}")
        return False
    return next_run <= now


def parse_cron_expression(expression: str, base_time: Optional[datetime] = None) -> Optional[datetime]:
    """Parse cron expression and get next execution time.

    Args:
        expression: Cron expression string
        base_time: Base time for calculation (default: now)

    Returns:
        Next execution datetime or None if invalid
    """
    if not validate_cron(expression):
        return None

    # Imported here to avoid circular import
    from models import ScheduleDescriptor

    descriptor = ScheduleDescriptor.from_expression(expression)
    return get_next_run(descriptor, base_time)
