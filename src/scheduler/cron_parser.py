"""Cron field parsing and validation."""

import logging
import re
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

# Anything else in a field (letters, spaces, stray punctuation) is skipped.
_TOKEN_RE = re.compile(r"[0-9]+|\*|,|/|-")

FIELD_NAMES = ("minute", "hour", "day", "month", "day_of_week")

# Widest range of each field, in expression order. Day is narrowed to the
# length of the month being evaluated by the calculator.
FIELD_BOUNDS = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 7))


class InvalidScheduleError(ValueError):
    """Raised on request when a schedule has fields that match nothing."""

    def __init__(self, fields: Sequence[str], expression: str = ""):
        self.fields = list(fields)
        self.expression = expression
        super().__init__(
            f"Schedule '{expression}' has fields matching no value: {', '.join(self.fields)}"
        )


def eval_cron_field(expression: str, min_value: int, max_value: int) -> List[int]:
    """Take a cron field definition and return the valid numbers within min-max.

    Format of a field:

        <fieldlist> := <range>(/<step>)(,<fieldlist>)
        <step>      := int
        <range>     := <any>|<int>|<min-max>
        <any>       := *
        <min-max>   := int-int

    The parser is tolerant: unknown characters are ignored and a field that
    cannot be read simply matches nothing. Steps are positional, ``1-10/3``
    keeps items 0, 3, 6, ... of the sub-range, i.e. ``[1, 4, 7, 10]``.

    Args:
        expression: Field expression (e.g. "*/15", "1-5", "1,3,5")
        min_value: Smallest allowed value
        max_value: Largest allowed value

    Returns:
        Sorted list of distinct matching values, empty if nothing matches
    """
    field = str(expression).strip()

    # Each item is the sub-range produced by one list entry. Positions removed
    # by a step are kept as None so later steps still see the same indexes.
    items: List[List[Optional[int]]] = []
    start: Optional[int] = None
    in_range = False
    in_step = False

    for token in _TOKEN_RE.findall(field):
        if token == "*":
            items.append(list(range(min_value, max_value + 1)))
            start = None
        elif token == ",":
            start = None
            in_range = in_step = False
        elif token == "/":
            in_step = True
        elif token == "-":
            in_range = start is not None
        else:
            value = int(token)
            if in_step:
                if items:
                    items[-1] = _apply_step(items[-1], value)
                in_step = in_range = False
                start = None
            elif in_range:
                # An empty range when start > value: fails closed.
                items[-1] = list(range(start, value + 1))
                in_range = False
                start = None
            else:
                items.append([value])
                start = value

    result = set()
    for item in items:
        for value in item:
            if value is not None and min_value <= value <= max_value:
                result.add(value)

    values = sorted(result)
    logger.debug(f"Evaluated cron field '{field}' in [{min_value}, {max_value}]: {values}")
    return values


def _apply_step(item: List[Optional[int]], step: int) -> List[Optional[int]]:
    if step <= 0:
        return []
    return [value if index % step == 0 else None for index, value in enumerate(item)]


def is_field_valid(expression: str, min_value: int, max_value: int) -> bool:
    """A field is valid when it matches at least one value in its range."""
    return bool(eval_cron_field(expression, min_value, max_value))


def split_expression(expression: str) -> List[str]:
    """Split a five-field cron expression into its fields."""
    return str(expression).split()


def validate_cron(expression: str) -> bool:
    """Validate a cron expression.

    Args:
        expression: Cron expression string (e.g., "0 */2 * * *")

    Returns:
        True if valid, False otherwise
    """
    parts = split_expression(expression)
    if len(parts) != len(FIELD_NAMES):
        logger.error(
            f"Invalid cron expression '{expression}': expected {len(FIELD_NAMES)} fields, got {len(parts)}"
        )
        return False

    for name, part, (low, high) in zip(FIELD_NAMES, parts, FIELD_BOUNDS):
        if not is_field_valid(part, low, high):
            logger.error(f"Invalid cron expression '{expression}': {name} field '{part}' matches nothing")
            return False
    return True


_MONTH_NAMES = ["", "Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
_DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _format_values(values: List[int], names: Optional[Sequence[str]] = None) -> str:
    """Join values, collapsing runs of three or more into "first-last"."""
    label = (lambda value: names[value]) if names else str
    parts = []
    start = previous = values[0]
    for value in values[1:] + [None]:
        if value is not None and value == previous + 1:
            previous = value
            continue
        if previous - start >= 2:
            parts.append(f"{label(start)}-{label(previous)}")
        else:
            parts.extend(label(item) for item in range(start, previous + 1))
        if value is not None:
            start = previous = value
    return ", ".join(parts)


def _step_of(values: List[int], low: int, high: int) -> Optional[int]:
    """Interval of values spread evenly over the whole range from low, if any."""
    if len(values) < 3 or values[0] != low:
        return None
    step = values[1] - values[0]
    if step > 1 and values == list(range(low, high + 1, step)):
        return step
    return None


def _describe_unit(values: List[int], low: int, high: int, unit: str) -> str:
    if values == list(range(low, high + 1)):
        return f"every {unit}"
    step = _step_of(values, low, high)
    if step:
        return f"every {step} {unit}s"
    return f"at {unit} {_format_values(values)}"


def get_cron_description(expression: str) -> str:
    """Get human-readable description of cron expression.

    Built from the values each field evaluates to, so "*/15", "0,15,30,45"
    and "0-59/15" read the same.

    Args:
        expression: Cron expression string

    Returns:
        Human-readable description, or the expression itself when a field
        matches nothing
    """
    parts = split_expression(expression)
    if len(parts) != len(FIELD_NAMES):
        return str(expression)

    fields = [eval_cron_field(part, low, high) for part, (low, high) in zip(parts, FIELD_BOUNDS)]
    if not all(fields):
        return str(expression)

    minutes, hours, days, months, weekdays = fields
    weekdays = sorted({value % 7 for value in weekdays})

    desc_parts = []
    if len(minutes) == 1 and len(hours) == 1:
        desc_parts.append(f"at {hours[0]:02d}:{minutes[0]:02d}")
    else:
        desc_parts.append(_describe_unit(minutes, *FIELD_BOUNDS[0], "minute"))
        if hours != list(range(FIELD_BOUNDS[1][0], FIELD_BOUNDS[1][1] + 1)):
            desc_parts.append(_describe_unit(hours, *FIELD_BOUNDS[1], "hour"))

    day_text = None
    if days != list(range(FIELD_BOUNDS[2][0], FIELD_BOUNDS[2][1] + 1)):
        day_text = f"on day {_format_values(days)}"
    weekday_text = None
    if len(weekdays) < 7:
        weekday_text = f"on {_format_values(weekdays, _DAY_NAMES)}"
    if day_text and weekday_text:
        desc_parts.append(f"{day_text} or {weekday_text}")
    elif day_text or weekday_text:
        desc_parts.append(day_text or weekday_text)

    if months != list(range(FIELD_BOUNDS[3][0], FIELD_BOUNDS[3][1] + 1)):
        desc_parts.append(f"in {_format_values(months, _MONTH_NAMES)}")

    text = ", ".join(desc_parts)
    return text[0].upper() + text[1:]
