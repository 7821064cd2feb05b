"""Local calendar clock used to anchor next-run calculations."""

import calendar
from datetime import date, datetime, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import settings


class LocalClock:
    """Reads "now" in one resolved timezone.

    The calculator never looks at the process timezone itself; callers pass
    ``clock.now()`` (or any datetime they already hold) in explicitly.
    """

    def __init__(self, timezone: Optional[Union[str, tzinfo]] = None):
        timezone = timezone or settings.scheduler_timezone
        self.timezone = ZoneInfo(timezone) if isinstance(timezone, str) else timezone

    def now(self) -> datetime:
        return datetime.now(self.timezone).replace(microsecond=0)

    def localize(self, value: datetime) -> datetime:
        """Read a naive datetime as wall time in this clock's zone."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.timezone)
        return value

    @staticmethod
    def days_in_month(year: int, month: int) -> int:
        return calendar.monthrange(year, month)[1]

    @staticmethod
    def cron_weekday(value: Union[date, datetime]) -> int:
        """Day of week with Sunday as 0, as cron counts it."""
        return value.isoweekday() % 7
