from __future__ import annotations

import random
from datetime import date

from dateutil.relativedelta import relativedelta

from .models import RecurrencePattern
from .scheduling import is_weekend

MAX_INSTANCES = 1000
MAX_INTERVAL = 365
# ids are stored in a 32-bit signed INTEGER column
MAX_TASK_ID = 2_147_483_647


def parse_pattern(pattern: RecurrencePattern | str | None) -> RecurrencePattern | None:
    if pattern is None or isinstance(pattern, RecurrencePattern):
        return pattern
    return RecurrencePattern(pattern.strip().lower())


def validate_recurrence(
    start_date: date,
    pattern: RecurrencePattern | str | None,
    interval: int | None = 1,
    end_date: date | None = None,
    end_count: int | None = None,
) -> list[str]:
    """Returns the list of problems with a recurrence rule (empty when valid)."""
    errors: list[str] = []

    if not pattern:
        errors.append("Recurrence pattern is required.")
    else:
        try:
            parse_pattern(pattern)
        except ValueError:
            errors.append(f"Unknown recurrence pattern '{pattern}'.")

    if interval is None or not 1 <= interval <= MAX_INTERVAL:
        errors.append(f"Recurrence interval must be between 1 and {MAX_INTERVAL}.")

    if end_date is None and end_count is None:
        errors.append("Either an end date or an occurrence count is required.")
    elif end_date is not None and end_count is not None:
        errors.append("Specify either an end date or an occurrence count, not both.")

    if end_count is not None and not 1 <= end_count <= MAX_INSTANCES:
        errors.append(f"Occurrence count must be between 1 and {MAX_INSTANCES}.")

    if end_date is not None and end_date <= start_date:
        errors.append("End date must be after the start date.")

    return errors


def _delta(pattern: RecurrencePattern, steps: int) -> relativedelta:
    if pattern == RecurrencePattern.DAILY:
        return relativedelta(days=steps)
    if pattern == RecurrencePattern.WEEKLY:
        return relativedelta(weeks=steps)
    if pattern == RecurrencePattern.MONTHLY:
        return relativedelta(months=steps)
    return relativedelta(years=steps)


def next_occurrence(day: date, pattern: RecurrencePattern | str, interval: int = 1) -> date:
    """Jan 31 + 1 month -> Feb 28/29: month and year steps clamp to the month end."""
    return day + _delta(parse_pattern(pattern), interval)


def expand_dates(
    start: date,
    pattern: RecurrencePattern | str,
    interval: int = 1,
    end_date: date | None = None,
    end_count: int | None = None,
) -> list[date]:
    """
    Occurrence dates of a rule, starting with `start` itself.

    Weekend occurrences are dropped, they are neither moved nor counted, so
    a count of 5 on a daily rule yields five weekdays. Offsets are computed
    from `start` every time so monthly rules starting on the 31st do not
    drift to the 28th after February.
    """
    pattern = parse_pattern(pattern)
    limit = min(end_count, MAX_INSTANCES) if end_count else MAX_INSTANCES
    max_iterations = limit * 3

    dates: list[date] = []
    step = 0
    while len(dates) < limit and step < max_iterations:
        current = start + _delta(pattern, interval * step)
        if end_date is not None and current > end_date:
            break
        if not is_weekend(current):
            dates.append(current)
        step += 1
    return dates


def generate_recurring_task_id() -> int:
    return random.randint(1, MAX_TASK_ID)
