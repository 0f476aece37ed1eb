"""
Time arithmetic and slot checks for appointments.

Everything here is pure: callers pass the appointments already booked on a
day (ORM rows or `BookedSlot` values built from API payloads) and get back
plain values. The API, the use cases and the booking flow all share it.

Times are "HH:MM" strings, dates are `datetime.date`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

from .config import LUNCH_END, LUNCH_START, SLOT_STEP_MINUTES, WORK_DAY_END, WORK_DAY_START
from .errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

# date.weekday(): Monday=0 .. Sunday=6
SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True)
class BookedSlot:
    """An existing appointment as seen by the slot checks."""
    id: int | None
    date: date
    start_time: str
    duration_minutes: int
    status: str = "scheduled"
    title: str = ""

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "BookedSlot":
        return cls(
            id=item.get("id"),
            date=date.fromisoformat(item["date"]),
            start_time=item["startTime"],
            duration_minutes=int(item["durationMinutes"]),
            status=item.get("status") or "scheduled",
            title=item.get("title") or "",
        )


@dataclass(frozen=True)
class WorkHoursCompliance:
    is_within_work_hours: bool
    is_overtime: bool
    violation: str | None = None


@dataclass
class TimeSlot:
    time: str
    available: bool
    conflicts: list[Any] = field(default_factory=list)
    reason: str | None = None


# =========================
# Time arithmetic
# =========================
def time_to_minutes(value: str) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    m = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not m:
        raise ValidationError(f"Invalid time '{value}': expected HH:MM.")
    return int(m.group(1)) * 60 + int(m.group(2))


def minutes_to_time(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def calculate_end_time(start_time: str, duration_minutes: int) -> str:
    """End time of a slot; wraps past midnight (23:30 + 60 -> 00:30)."""
    return minutes_to_time(time_to_minutes(start_time) + duration_minutes)


def slot_bounds(start_time: str, duration_minutes: int) -> tuple[int, int]:
    """
    Half-open [start, end) in minutes. The end is not wrapped, so a slot
    ending at midnight ends at 1440.
    """
    start = time_to_minutes(start_time)
    return start, start + duration_minutes


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    # touching intervals (10:00-11:00 and 11:00-12:00) do not overlap
    return a_start < b_end and a_end > b_start


# =========================
# Days
# =========================
def is_weekend(day: date) -> bool:
    return day.weekday() in (SATURDAY, SUNDAY)


def day_type(day: date) -> str:
    if day.weekday() == SATURDAY:
        return "Saturday"
    if day.weekday() == SUNDAY:
        return "Sunday"
    return "weekday"


def next_business_day(day: date) -> date:
    nxt = day + timedelta(days=1)
    while is_weekend(nxt):
        nxt += timedelta(days=1)
    return nxt


def move_to_next_business_day(day: date) -> tuple[date, bool]:
    if not is_weekend(day):
        return day, False
    return next_business_day(day), True


# =========================
# Conflicts
# =========================
def _status_value(item: Any) -> str:
    status = getattr(item, "status", None)
    return getattr(status, "value", status) or "scheduled"


def find_conflicts(
    day: date,
    start_time: str,
    duration_minutes: int,
    existing: Iterable[Any],
    exclude_id: int | None = None,
) -> list[Any]:
    """
    Appointments booked on `day` that overlap the requested slot.
    Cancelled appointments and `exclude_id` (the one being edited) are ignored.
    """
    new_start, new_end = slot_bounds(start_time, duration_minutes)
    conflicts = []
    for item in existing:
        if item.date != day:
            continue
        if exclude_id is not None and item.id == exclude_id:
            continue
        if _status_value(item) == "cancelled":
            continue
        start, end = slot_bounds(item.start_time, item.duration_minutes)
        if overlaps(new_start, new_end, start, end):
            conflicts.append(item)
    return conflicts


def overlaps_lunch_break(start_time: str, duration_minutes: int) -> bool:
    start, end = slot_bounds(start_time, duration_minutes)
    return overlaps(start, end, time_to_minutes(LUNCH_START), time_to_minutes(LUNCH_END))


def classify_work_hours(day: date, start_time: str, duration_minutes: int) -> WorkHoursCompliance:
    """
    Within work hours = weekday slot fully inside the morning or the afternoon
    block. Weekends and slots starting after the end of the day are overtime.
    """
    start, end = slot_bounds(start_time, duration_minutes)

    if is_weekend(day):
        violation = "weekend_saturday" if day.weekday() == SATURDAY else "weekend_sunday"
        return WorkHoursCompliance(False, True, violation)

    if start >= time_to_minutes(WORK_DAY_END):
        return WorkHoursCompliance(False, True, "after_hours")

    morning = time_to_minutes(WORK_DAY_START) <= start and end <= time_to_minutes(LUNCH_START)
    afternoon = time_to_minutes(LUNCH_END) <= start and end <= time_to_minutes(WORK_DAY_END)
    if morning or afternoon:
        return WorkHoursCompliance(True, False, None)

    if overlaps_lunch_break(start_time, duration_minutes):
        return WorkHoursCompliance(False, False, "lunch_break")
    return WorkHoursCompliance(False, False, "outside_hours")


# =========================
# Availability (time picker)
# =========================
def build_time_slots(
    day: date,
    duration_minutes: int,
    existing: Sequence[Any],
    working_start: str = WORK_DAY_START,
    working_end: str = WORK_DAY_END,
    step: int = SLOT_STEP_MINUTES,
    exclude_id: int | None = None,
) -> list[TimeSlot]:
    """One candidate start every `step` minutes in [working_start, working_end)."""
    if duration_minutes <= 0:
        raise ValidationError("Duration must be positive.")
    if step <= 0:
        raise ValidationError("Slot step must be positive.")

    slots: list[TimeSlot] = []
    for minutes in range(time_to_minutes(working_start), time_to_minutes(working_end), step):
        t = minutes_to_time(minutes)
        conflicts = find_conflicts(day, t, duration_minutes, existing, exclude_id=exclude_id)
        slots.append(
            TimeSlot(
                time=t,
                available=not conflicts,
                conflicts=conflicts,
                reason=f"Conflicts with {len(conflicts)} appointment(s)" if conflicts else None,
            )
        )
    return slots


def next_available_slot(slots: Sequence[TimeSlot], after: str | None = None) -> str | None:
    threshold = time_to_minutes(after) if after else -1
    for slot in slots:
        if slot.available and time_to_minutes(slot.time) > threshold:
            return slot.time
    return None


def suggest_times(slots: Sequence[TimeSlot], requested: str, count: int = 3) -> list[str]:
    """Available starts closest to `requested`; ties keep chronological order."""
    target = time_to_minutes(requested)
    available = [s for s in slots if s.available]
    available.sort(key=lambda s: abs(time_to_minutes(s.time) - target))
    return [s.time for s in available[:count]]
