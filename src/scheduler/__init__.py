"""Cron schedule evaluation."""

from .clock import LocalClock
from .core import (
    ScheduleEvaluation,
    evaluate_schedule,
    get_next_run,
    get_next_runs,
    is_due,
    next_in_list,
    next_run_time,
    parse_cron_expression,
)
from .cron_parser import (
    InvalidScheduleError,
    eval_cron_field,
    get_cron_description,
    is_field_valid,
    validate_cron,
)

__all__ = [
    "LocalClock",
    "ScheduleEvaluation",
    "evaluate_schedule",
    "get_next_run",
    "get_next_runs",
    "is_due",
    "next_in_list",
    "next_run_time",
    "parse_cron_expression",
    "InvalidScheduleError",
    "eval_cron_field",
    "get_cron_description",
    "is_field_valid",
    "validate_cron",
]
