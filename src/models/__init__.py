"""Schedule models for crontick."""

from .schedule import CronField, FIELD_RANGES, ScheduleDescriptor

__all__ = [
    "CronField",
    "FIELD_RANGES",
    "ScheduleDescriptor",
]
