"""Schedule descriptor model."""

import random
from enum import Enum
from typing import Any, Dict, List, Optional

from config import settings
from scheduler.clock import LocalClock
from scheduler.cron_parser import FIELD_BOUNDS, FIELD_NAMES, eval_cron_field


class CronField(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    DAY_OF_WEEK = "day_of_week"


FIELD_RANGES = {CronField(name): bounds for name, bounds in zip(FIELD_NAMES, FIELD_BOUNDS)}

# Random placeholder draws for day of week skip 7, it is Sunday again.
_RANDOM_RANGES = {
    CronField.MINUTE: (0, 59),
    CronField.HOUR: (0, 23),
    CronField.DAY_OF_WEEK: (0, 6),
}


class ScheduleDescriptor:
    """The five cron fields of a task plus its run bookkeeping.

    Field values are always strings. Setting minute, hour or day of week to
    the random placeholder ("R" by default) draws one concrete value from
    ``rng`` at assignment time, so a task keeps the same jittered slot until
    its schedule is set again.
    """

    def __init__(
        self,
        minute: str = "*",
        hour: str = "*",
        day: str = "*",
        month: str = "*",
        day_of_week: str = "*",
        last_run_time: int = 0,
        customised: bool = False,
        overridden: bool = False,
        disabled: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.rng = rng or random.Random()
        self._minute = "*"
        self._hour = "*"
        self._day = "*"
        self._month = "*"
        self._day_of_week = "*"

        self.set_minute(minute)
        self.set_hour(hour)
        self.set_day(day)
        self.set_month(month)
        self.set_day_of_week(day_of_week)
        self.set_last_run_time(last_run_time)
        self.set_customised(customised)
        self.set_overridden(overridden)
        self.set_disabled(disabled)

    @classmethod
    def from_expression(cls, expression: str, **kwargs) -> "ScheduleDescriptor":
        """Build a descriptor from a "minute hour day month day_of_week" string."""
        parts = str(expression).split()
        if len(parts) != len(FIELD_NAMES):
            raise ValueError(
                f"Cron expression '{expression}' must have {len(FIELD_NAMES)} fields, got {len(parts)}"
            )
        return cls(*parts, **kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **kwargs) -> "ScheduleDescriptor":
        keys = (*FIELD_NAMES, "last_run_time", "customised", "overridden", "disabled")
        values = {key: data[key] for key in keys if key in data}
        values.update(kwargs)
        return cls(**values)

    @property
    def expression(self) -> str:
        return " ".join(self.fields())

    def fields(self) -> List[str]:
        """Field strings in expression order."""
        return [self._minute, self._hour, self._day, self._month, self._day_of_week]

    def _expand(self, field: CronField, value: Any, expand_random: bool) -> str:
        if value is None:
            raise TypeError(f"Schedule field '{field.value}' must not be None")
        value = str(value)
        if expand_random and value == settings.random_placeholder:
            low, high = _RANDOM_RANGES[field]
            value = str(self.rng.randint(low, high))
        return value

    # Minute

    def set_minute(self, minute: Any, expand_random: bool = True) -> None:
        """Set the minute field.

        Args:
            minute: Field expression, or the random placeholder
            expand_random: If False the placeholder is stored as is
        """
        self._minute = self._expand(CronField.MINUTE, minute, expand_random)

    def get_minute(self) -> str:
        return self._minute

    def is_minute_valid(self) -> bool:
        return bool(self.get_valid_minutes())

    def get_valid_minutes(self) -> List[int]:
        return eval_cron_field(self._minute, *FIELD_RANGES[CronField.MINUTE])

    # Hour

    def set_hour(self, hour: Any, expand_random: bool = True) -> None:
        self._hour = self._expand(CronField.HOUR, hour, expand_random)

    def get_hour(self) -> str:
        return self._hour

    def is_hour_valid(self) -> bool:
        return bool(self.get_valid_hours())

    def get_valid_hours(self) -> List[int]:
        return eval_cron_field(self._hour, *FIELD_RANGES[CronField.HOUR])

    # Day of month

    def set_day(self, day: Any) -> None:
        self._day = self._expand(CronField.DAY, day, False)

    def get_day(self) -> str:
        return self._day

    def is_day_valid(self, days_in_month: Optional[int] = None) -> bool:
        """Check the day field against the current month unless a length is given."""
        return bool(self.get_valid_days(days_in_month))

    def get_valid_days(self, days_in_month: Optional[int] = None) -> List[int]:
        if days_in_month is None:
            today = LocalClock().now()
            days_in_month = LocalClock.days_in_month(today.year, today.month)
        return eval_cron_field(self._day, FIELD_RANGES[CronField.DAY][0], days_in_month)

    # Month

    def set_month(self, month: Any) -> None:
        self._month = self._expand(CronField.MONTH, month, False)

    def get_month(self) -> str:
        return self._month

    def is_month_valid(self) -> bool:
        return bool(self.get_valid_months())

    def get_valid_months(self) -> List[int]:
        return eval_cron_field(self._month, *FIELD_RANGES[CronField.MONTH])

    # Day of week

    def set_day_of_week(self, day_of_week: Any, expand_random: bool = True) -> None:
        self._day_of_week = self._expand(CronField.DAY_OF_WEEK, day_of_week, expand_random)

    def get_day_of_week(self) -> str:
        return self._day_of_week

    def is_day_of_week_valid(self) -> bool:
        return bool(self.get_valid_days_of_week())

    def get_valid_days_of_week(self) -> List[int]:
        return eval_cron_field(self._day_of_week, *FIELD_RANGES[CronField.DAY_OF_WEEK])

    def is_valid(self, days_in_month: Optional[int] = None) -> bool:
        """Check that every field matches at least one value."""
        return (
            self.is_minute_valid()
            and self.is_hour_valid()
            and self.is_day_valid(days_in_month)
            and self.is_month_valid()
            and self.is_day_of_week_valid()
        )

    # Bookkeeping

    def get_last_run_time(self) -> int:
        return self._last_run_time

    def set_last_run_time(self, last_run_time: int) -> None:
        self._last_run_time = int(last_run_time)

    def is_customised(self) -> bool:
        """Has this schedule been changed from its default?"""
        return self._customised

    def set_customised(self, customised: bool) -> None:
        self._customised = bool(customised)

    def is_overridden(self) -> bool:
        """Are the values set through configuration?"""
        return self._overridden

    def set_overridden(self, overridden: bool) -> None:
        self._overridden = bool(overridden)

    def get_disabled(self) -> bool:
        return self._disabled

    def set_disabled(self, disabled: bool) -> None:
        self._disabled = bool(disabled)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minute": self._minute,
            "hour": self._hour,
            "day": self._day,
            "month": self._month,
            "day_of_week": self._day_of_week,
            "last_run_time": self._last_run_time,
            "customised": self._customised,
            "overridden": self._overridden,
            "disabled": self._disabled,
        }

    def __repr__(self) -> str:
        return f"<ScheduleDescriptor '{self.expression}' disabled={self._disabled}>"
