from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import and_, delete, select

from .config import LUNCH_END, LUNCH_START, POMODORO_MINUTES
from .db import create_tables, db_session
from .errors import ConflictError, NotFoundError, ValidationError, WeekendConfirmationNeeded
from .models import Appointment, AppointmentStatus, Project, TimerState
from .recurrence import expand_dates, generate_recurring_task_id, parse_pattern, validate_recurrence
from .scheduling import (
    calculate_end_time,
    classify_work_hours,
    day_type,
    find_conflicts,
    is_weekend,
    overlaps_lunch_break,
    slot_bounds,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

# columns a caller may set directly on an appointment
APPOINTMENT_FIELDS = (
    "title",
    "description",
    "date",
    "start_time",
    "duration_minutes",
    "project_id",
    "company_id",
    "assigned_user_id",
    "phase_id",
    "priority",
    "category",
    "notes",
    "location",
    "meeting_url",
    "sla_minutes",
    "status",
    "is_pomodoro",
)

# the date of each occurrence belongs to the rule, not to the series edit
SERIES_FIELDS = tuple(f for f in APPOINTMENT_FIELDS if f not in ("date", "is_pomodoro"))

NOT_NULL_FIELDS = frozenset({"title", "date", "start_time", "duration_minutes", "status", "is_pomodoro"})

MAX_TIMER_SESSION_MINUTES = 24 * 60


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Creates the tables if they do not exist."""
    create_tables()


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class TimerStatus:
    appointment_id: int
    timer_state: TimerState
    accumulated_minutes: int
    current_session_minutes: int
    total_minutes: int
    timer_started_at: datetime | None


def _values(data: dict[str, Any], fields: tuple[str, ...] = APPOINTMENT_FIELDS) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k in fields}


def _validate_slot_shape(start_time: str, duration_minutes: int | None) -> None:
    time_to_minutes(start_time)
    if duration_minutes is None or duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes.")


def _apply_compliance(a: Appointment) -> None:
    c = classify_work_hours(a.date, a.start_time, a.duration_minutes)
    a.is_within_work_hours = c.is_within_work_hours
    a.is_overtime = c.is_overtime
    a.work_schedule_violation = c.violation


def _get_or_404(s, appointment_id: int) -> Appointment:
    a = s.get(Appointment, appointment_id)
    if not a:
        raise NotFoundError(f"Appointment {appointment_id} not found.")
    return a


def _booked_on(s, day: date) -> list[Appointment]:
    q = select(Appointment).where(
        and_(Appointment.date == day, Appointment.is_recurring_template.is_(False))
    )
    return list(s.scalars(q))


def _check_slot(
    s,
    day: date,
    start_time: str,
    duration_minutes: int,
    allow_overlap: bool,
    allow_weekend_override: bool,
    exclude_id: int | None = None,
) -> None:
    """
    Checks in a fixed order: weekend, lunch break, overlap.
    Each one has its own bypass flag.
    """
    if is_weekend(day) and not allow_weekend_override:
        logger.info("Weekend slot %s %s needs confirmation", day, start_time)
        raise WeekendConfirmationNeeded(
            f"{day.isoformat()} is a {day_type(day)}. Confirm to schedule on a weekend.",
            day_type(day),
        )

    if allow_overlap:
        return

    if overlaps_lunch_break(start_time, duration_minutes):
        logger.warning("Slot %s %s (%s min) overlaps the lunch break", day, start_time, duration_minutes)
        raise ValidationError(f"The slot overlaps the lunch break ({LUNCH_START}-{LUNCH_END}).")

    conflicts = find_conflicts(day, start_time, duration_minutes, _booked_on(s, day), exclude_id=exclude_id)
    if conflicts:
        end_time = calculate_end_time(start_time, duration_minutes)
        logger.warning("Slot %s %s-%s conflicts with %s", day, start_time, end_time, [c.id for c in conflicts])
        raise ConflictError(
            f"The slot {start_time}-{end_time} overlaps {len(conflicts)} existing appointment(s).",
            [c.id for c in conflicts],
        )


def _recompute_project_time(s, project_id: int | None) -> None:
    """
    Time spent on a project = tracked minutes of its appointments. Completed
    appointments that were never timed count for their planned duration.
    """
    if project_id is None:
        return
    project = s.get(Project, project_id)
    if not project:
        return

    s.flush()
    q = select(Appointment).where(
        and_(
            Appointment.project_id == project_id,
            Appointment.is_pomodoro.is_(False),
            Appointment.is_recurring_template.is_(False),
        )
    )
    total = 0
    for a in s.scalars(q):
        if a.actual_time_minutes:
            total += a.actual_time_minutes
        elif a.status == AppointmentStatus.COMPLETED:
            total += a.duration_minutes
    project.actual_minutes = total


# =========================
# Queries
# =========================
def get_appointment(appointment_id: int) -> Appointment:
    with db_session() as s:
        return _get_or_404(s, appointment_id)


def list_appointments() -> list[Appointment]:
    with db_session() as s:
        q = select(Appointment).order_by(Appointment.date.asc(), Appointment.start_time.asc())
        return list(s.scalars(q))


def appointments_on(day: date) -> list[Appointment]:
    with db_session() as s:
        q = (
            select(Appointment)
            .where(and_(Appointment.date == day, Appointment.is_recurring_template.is_(False)))
            .order_by(Appointment.start_time.asc())
        )
        return list(s.scalars(q))


def appointments_between(start: date, end: date) -> list[Appointment]:
    if end < start:
        raise ValidationError("End date must not be before the start date.")
    with db_session() as s:
        q = (
            select(Appointment)
            .where(
                and_(
                    Appointment.date >= start,
                    Appointment.date <= end,
                    Appointment.is_recurring_template.is_(False),
                )
            )
            .order_by(Appointment.date.asc(), Appointment.start_time.asc())
        )
        return list(s.scalars(q))


def appointments_for_project(project_id: int) -> list[Appointment]:
    with db_session() as s:
        q = (
            select(Appointment)
            .where(Appointment.project_id == project_id)
            .order_by(Appointment.date.asc(), Appointment.start_time.asc())
        )
        return list(s.scalars(q))


def appointments_for_user(user_id: int) -> list[Appointment]:
    with db_session() as s:
        q = (
            select(Appointment)
            .where(Appointment.assigned_user_id == user_id)
            .order_by(Appointment.date.asc(), Appointment.start_time.asc())
        )
        return list(s.scalars(q))


# =========================
# Appointments (use case core)
# =========================
def create_appointment(data: dict[str, Any]) -> Appointment:
    """
    Use case: schedule an appointment.
    - weekend days need `allow_weekend_override` (422 otherwise)
    - the lunch break and overlapping appointments need `allow_overlap`
    - Pomodoro breaks are never checked for overlaps
    - end time and work-hours compliance are derived and stored
    """
    data = dict(data)
    allow_overlap = bool(data.pop("allow_overlap", False))
    allow_weekend_override = bool(data.pop("allow_weekend_override", False))

    day: date = data["date"]
    start_time: str = data["start_time"]
    duration = data.get("duration_minutes")
    _validate_slot_shape(start_time, duration)
    if not (data.get("title") or "").strip():
        raise ValidationError("Title is required.")

    with db_session() as s:
        if data.get("is_pomodoro"):
            if is_weekend(day) and not allow_weekend_override:
                raise WeekendConfirmationNeeded(
                    f"{day.isoformat()} is a {day_type(day)}. Confirm to schedule on a weekend.",
                    day_type(day),
                )
        else:
            _check_slot(s, day, start_time, duration, allow_overlap, allow_weekend_override)

        a = Appointment(
            **_values(data),
            end_time=calculate_end_time(start_time, duration),
            allow_overlap=allow_overlap,
        )
        a.status = AppointmentStatus.SCHEDULED
        _apply_compliance(a)
        s.add(a)
        s.flush()

        logger.info("Appointment %s scheduled on %s %s-%s", a.id, a.date, a.start_time, a.end_time)
        return a


def _move_pomodoro(s, old_date: date, old_end_time: str, a: Appointment) -> None:
    """The break that followed the old slot follows the new one."""
    q = (
        select(Appointment)
        .where(
            and_(
                Appointment.is_pomodoro.is_(True),
                Appointment.date == old_date,
                Appointment.start_time == old_end_time,
                Appointment.id != a.id,
                Appointment.status != AppointmentStatus.CANCELLED,
            )
        )
        .limit(1)
    )
    pomodoro = s.scalars(q).first()
    if not pomodoro:
        return

    pomodoro.date = a.date
    pomodoro.start_time = a.end_time
    pomodoro.end_time = calculate_end_time(a.end_time, pomodoro.duration_minutes)
    _apply_compliance(pomodoro)
    logger.info("Pomodoro %s moved to %s %s", pomodoro.id, pomodoro.date, pomodoro.start_time)


def update_appointment(appointment_id: int, data: dict[str, Any]) -> Appointment:
    """
    Use case: edit an appointment.
    Moving it re-checks overlaps (excluding itself) unless `allow_overlap`,
    and a new date or start time counts as a reschedule.
    """
    data = dict(data)
    allow_overlap = data.pop("allow_overlap", None)
    data.pop("allow_weekend_override", None)

    with db_session() as s:
        a = _get_or_404(s, appointment_id)

        old_date, old_start, old_end = a.date, a.start_time, a.end_time
        old_status = a.status
        new_date = data["date"] if data.get("date") is not None else a.date
        new_start = data["start_time"] if data.get("start_time") is not None else a.start_time
        new_duration = data["duration_minutes"] if data.get("duration_minutes") is not None else a.duration_minutes
        _validate_slot_shape(new_start, new_duration)

        slot_changed = (new_date, new_start, new_duration) != (a.date, a.start_time, a.duration_minutes)
        overlap_ok = allow_overlap if allow_overlap is not None else a.allow_overlap
        if slot_changed and not a.is_pomodoro and not overlap_ok:
            conflicts = find_conflicts(new_date, new_start, new_duration, _booked_on(s, new_date), exclude_id=a.id)
            if conflicts:
                logger.warning("Moving appointment %s conflicts with %s", a.id, [c.id for c in conflicts])
                raise ConflictError(
                    f"The slot {new_start}-{calculate_end_time(new_start, new_duration)} "
                    f"overlaps {len(conflicts)} existing appointment(s).",
                    [c.id for c in conflicts],
                )

        if (new_start != old_start or new_date != old_date) and not a.is_pomodoro:
            a.reschedule_count += 1

        for key, value in _values(data).items():
            if value is None and key in NOT_NULL_FIELDS:
                continue
            setattr(a, key, value)
        a.end_time = calculate_end_time(a.start_time, a.duration_minutes)
        if allow_overlap is not None:
            a.allow_overlap = bool(allow_overlap)
        _apply_compliance(a)

        if slot_changed and not a.is_pomodoro:
            _move_pomodoro(s, old_date, old_end, a)

        if a.status != old_status:
            if a.status == AppointmentStatus.COMPLETED:
                a.completed_at = datetime.now()
            _recompute_project_time(s, a.project_id)

        logger.info("Appointment %s updated", a.id)
        return a


def delete_appointment(appointment_id: int) -> bool:
    with db_session() as s:
        a = s.get(Appointment, appointment_id)
        if not a:
            return False
        project_id = a.project_id
        s.delete(a)
        _recompute_project_time(s, project_id)
        logger.info("Appointment %s deleted", appointment_id)
        return True


# =========================
# Pomodoro
# =========================
def create_pomodoro_break(appointment_id: int) -> Appointment:
    """Short break right after an appointment, on the same day."""
    with db_session() as s:
        parent = _get_or_404(s, appointment_id)
        if parent.is_pomodoro:
            raise ValidationError("A Pomodoro break cannot have its own break.")

        p = Appointment(
            title=f"Pomodoro: {parent.title}",
            description="Short break",
            date=parent.date,
            start_time=parent.end_time,
            duration_minutes=POMODORO_MINUTES,
            end_time=calculate_end_time(parent.end_time, POMODORO_MINUTES),
            project_id=parent.project_id,
            company_id=parent.company_id,
            assigned_user_id=parent.assigned_user_id,
            category="pomodoro",
            is_pomodoro=True,
            status=AppointmentStatus.SCHEDULED,
        )
        _apply_compliance(p)
        s.add(p)
        s.flush()

        logger.info("Pomodoro %s added after appointment %s", p.id, parent.id)
        return p


def auto_complete_pomodoros(now: datetime | None = None) -> int:
    """Completes today's breaks whose end has passed. Returns how many."""
    now = now or datetime.now()
    now_minutes = now.hour * 60 + now.minute

    with db_session() as s:
        q = select(Appointment).where(
            and_(
                Appointment.is_pomodoro.is_(True),
                Appointment.date == now.date(),
                Appointment.status.not_in([AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED]),
            )
        )
        done = 0
        for p in s.scalars(q):
            _, end = slot_bounds(p.start_time, p.duration_minutes)
            if end <= now_minutes:
                p.status = AppointmentStatus.COMPLETED
                p.completed_at = now
                p.actual_time_minutes = p.duration_minutes
                done += 1

        if done:
            logger.info("Auto-completed %s Pomodoro break(s)", done)
        return done


# =========================
# Recurring series
# =========================
def _new_recurring_task_id(s) -> int:
    while True:
        rid = generate_recurring_task_id()
        taken = s.execute(select(Appointment.id).where(Appointment.recurring_task_id == rid).limit(1)).first()
        if taken is None:
            return rid


def create_recurring_appointment(data: dict[str, Any]) -> dict[str, Any]:
    """
    Use case: schedule a recurring appointment.
    - a template row keeps the rule
    - one row per weekday occurrence, linked to the template
    - every row shares the same recurring_task_id
    """
    data = dict(data)
    allow_overlap = bool(data.pop("allow_overlap", False))
    data.pop("allow_weekend_override", None)
    pattern = data.pop("recurrence_pattern", None)
    interval = data.pop("recurrence_interval", None)
    if interval is None:
        interval = 1
    end_date = data.pop("recurrence_end_date", None)
    end_count = data.pop("recurrence_end_count", None)

    day: date = data["date"]
    start_time: str = data["start_time"]
    duration = data.get("duration_minutes")
    _validate_slot_shape(start_time, duration)
    if not (data.get("title") or "").strip():
        raise ValidationError("Title is required.")

    errors = validate_recurrence(day, pattern, interval, end_date, end_count)
    if errors:
        logger.warning("Invalid recurrence rule: %s", errors)
        raise ValidationError("Invalid recurrence rule.", errors)
    pattern = parse_pattern(pattern)

    if not allow_overlap and overlaps_lunch_break(start_time, duration):
        raise ValidationError(f"The slot overlaps the lunch break ({LUNCH_START}-{LUNCH_END}).")

    dates = expand_dates(day, pattern, interval, end_date=end_date, end_count=end_count)
    if not dates:
        raise ValidationError("The recurrence rule produces no weekday occurrences.")

    common = _values(data)
    common.pop("date", None)
    common.pop("is_pomodoro", None)
    common.pop("status", None)
    end_time = calculate_end_time(start_time, duration)
    rule = dict(
        is_recurring=True,
        recurrence_pattern=pattern,
        recurrence_interval=interval,
        recurrence_end_date=end_date,
        recurrence_end_count=end_count,
    )

    with db_session() as s:
        rid = _new_recurring_task_id(s)

        template = Appointment(
            **common,
            **rule,
            date=day,
            end_time=end_time,
            recurring_task_id=rid,
            is_recurring_template=True,
            allow_overlap=allow_overlap,
            status=AppointmentStatus.SCHEDULED,
        )
        _apply_compliance(template)
        s.add(template)
        s.flush()

        instances = []
        for d in dates:
            inst = Appointment(
                **common,
                **rule,
                date=d,
                end_time=end_time,
                recurring_task_id=rid,
                parent_task_id=template.id,
                allow_overlap=allow_overlap,
                status=AppointmentStatus.SCHEDULED,
            )
            _apply_compliance(inst)
            instances.append(inst)
        s.add_all(instances)
        s.flush()

        logger.info(
            "Recurring series %s created: %s occurrence(s) from %s (%s every %s)",
            rid, len(instances), dates[0], pattern.value, interval,
        )
        return {"template": template, "instances": instances}


def get_recurring_instances(recurring_task_id: int) -> list[Appointment]:
    with db_session() as s:
        q = (
            select(Appointment)
            .where(Appointment.recurring_task_id == recurring_task_id)
            .order_by(Appointment.is_recurring_template.desc(), Appointment.date.asc(), Appointment.start_time.asc())
        )
        return list(s.scalars(q))


def update_recurring_series(recurring_task_id: int, data: dict[str, Any]) -> list[Appointment]:
    """Applies the same edit to every row of a series (dates are kept)."""
    values = _values(data, SERIES_FIELDS)
    with db_session() as s:
        rows = list(s.scalars(select(Appointment).where(Appointment.recurring_task_id == recurring_task_id)))
        if not rows:
            raise NotFoundError(f"Recurring series {recurring_task_id} not found.")

        for a in rows:
            for key, value in values.items():
                if value is None and key in NOT_NULL_FIELDS:
                    continue
                setattr(a, key, value)
            _validate_slot_shape(a.start_time, a.duration_minutes)
            a.end_time = calculate_end_time(a.start_time, a.duration_minutes)
            _apply_compliance(a)

        for project_id in {a.project_id for a in rows}:
            _recompute_project_time(s, project_id)

        logger.info("Recurring series %s updated (%s rows)", recurring_task_id, len(rows))
        rows.sort(key=lambda a: (not a.is_recurring_template, a.date, a.start_time))
        return rows


def delete_recurring_series(recurring_task_id: int) -> bool:
    with db_session() as s:
        project_ids = set(
            s.scalars(select(Appointment.project_id).where(Appointment.recurring_task_id == recurring_task_id))
        )
        result = s.execute(delete(Appointment).where(Appointment.recurring_task_id == recurring_task_id))
        if not result.rowcount:
            return False
        for project_id in project_ids:
            _recompute_project_time(s, project_id)
        logger.info("Recurring series %s deleted (%s rows)", recurring_task_id, result.rowcount)
        return True


def delete_recurring_instance(appointment_id: int, delete_all: bool = False) -> bool:
    """Deletes one occurrence, or its whole series when `delete_all`."""
    with db_session() as s:
        a = s.get(Appointment, appointment_id)
        if not a:
            return False
        rid = a.recurring_task_id

    if delete_all and rid is not None:
        return delete_recurring_series(rid)
    return delete_appointment(appointment_id)


# =========================
# Timer
# =========================
def _elapsed_minutes(started_at: datetime | None, now: datetime) -> int:
    """Whole minutes since `started_at`; clock skew or stale timers count as 0."""
    if started_at is None:
        return 0
    minutes = int((now - started_at).total_seconds() // 60)
    if minutes < 0 or minutes > MAX_TIMER_SESSION_MINUTES:
        return 0
    return minutes


def start_timer(appointment_id: int, now: datetime | None = None) -> Appointment:
    now = now or datetime.now()
    with db_session() as s:
        a = _get_or_404(s, appointment_id)
        if a.timer_state == TimerState.RUNNING:
            raise ValidationError("Timer is already running.")
        if a.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
            raise ValidationError(f"Cannot time a {a.status.value} appointment.")

        a.timer_state = TimerState.RUNNING
        a.timer_started_at = now
        a.timer_paused_at = None
        logger.info("Timer started for appointment %s", a.id)
        return a


def pause_timer(appointment_id: int, now: datetime | None = None) -> Appointment:
    now = now or datetime.now()
    with db_session() as s:
        a = _get_or_404(s, appointment_id)
        if a.timer_state != TimerState.RUNNING:
            raise ValidationError("Timer is not running.")

        a.accumulated_time_minutes += _elapsed_minutes(a.timer_started_at, now)
        a.actual_time_minutes = a.accumulated_time_minutes
        a.timer_state = TimerState.PAUSED
        a.timer_started_at = None
        a.timer_paused_at = now
        _recompute_project_time(s, a.project_id)
        return a


def resume_timer(appointment_id: int, now: datetime | None = None) -> Appointment:
    now = now or datetime.now()
    with db_session() as s:
        a = _get_or_404(s, appointment_id)
        if a.timer_state != TimerState.PAUSED:
            raise ValidationError("Timer is not paused.")

        a.timer_state = TimerState.RUNNING
        a.timer_started_at = now
        a.timer_paused_at = None
        return a


def complete_with_timer(appointment_id: int, now: datetime | None = None) -> Appointment:
    """Stops the timer, stores the tracked time and completes the appointment."""
    now = now or datetime.now()
    with db_session() as s:
        a = _get_or_404(s, appointment_id)
        if a.status == AppointmentStatus.COMPLETED:
            raise ValidationError("Appointment is already completed.")

        total = a.accumulated_time_minutes
        if a.timer_state == TimerState.RUNNING:
            total += _elapsed_minutes(a.timer_started_at, now)

        a.accumulated_time_minutes = total
        a.actual_time_minutes = total
        a.timer_state = TimerState.STOPPED
        a.timer_started_at = None
        a.timer_paused_at = None
        a.status = AppointmentStatus.COMPLETED
        a.completed_at = now
        _recompute_project_time(s, a.project_id)

        logger.info("Appointment %s completed, %s tracked minute(s)", a.id, total)
        return a


def timer_status(appointment_id: int, now: datetime | None = None) -> TimerStatus:
    now = now or datetime.now()
    with db_session() as s:
        a = _get_or_404(s, appointment_id)
        current = _elapsed_minutes(a.timer_started_at, now) if a.timer_state == TimerState.RUNNING else 0
        return TimerStatus(
            appointment_id=a.id,
            timer_state=a.timer_state,
            accumulated_minutes=a.accumulated_time_minutes,
            current_session_minutes=current,
            total_minutes=a.accumulated_time_minutes + current,
            timer_started_at=a.timer_started_at,
        )
