from __future__ import annotations

import time
from datetime import datetime, timedelta

import pytest

from conftest import MONDAY, SATURDAY, appointment_data
from timeflow import management, services
from timeflow.errors import ConflictError, NotFoundError, ValidationError, WeekendConfirmationNeeded
from timeflow.models import AppointmentStatus, TimerState
from timeflow.reports import is_sla_expired
from timeflow.services import (
    auto_complete_pomodoros,
    complete_with_timer,
    create_appointment,
    create_pomodoro_break,
    create_recurring_appointment,
    delete_appointment,
    get_appointment,
    pause_timer,
    resume_timer,
    start_timer,
    timer_status,
    update_appointment,
)

T0 = datetime(2026, 10, 19, 9, 0)


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)


@pytest.fixture
def project():
    return management.create_project({"name": "Website"})


class TestCreateAndUpdate:
    def test_weekend_needs_override(self):
        with pytest.raises(WeekendConfirmationNeeded) as exc:
            create_appointment(appointment_data(date=SATURDAY))
        assert exc.value.day_type == "Saturday"

        a = create_appointment(appointment_data(date=SATURDAY, allow_weekend_override=True))
        assert a.is_overtime

    def test_weekend_pomodoro_needs_override_too(self):
        with pytest.raises(WeekendConfirmationNeeded):
            create_appointment(appointment_data(date=SATURDAY, is_pomodoro=True, duration_minutes=5))

    def test_conflict_lists_the_overlapping_ids(self):
        a = create_appointment(appointment_data())
        with pytest.raises(ConflictError) as exc:
            create_appointment(appointment_data(start_time="09:45", duration_minutes=30))
        assert exc.value.conflicting_ids == [a.id]
        assert exc.value.to_payload()["conflicts"] == [a.id]

    def test_cancelled_appointments_free_their_slot(self):
        a = create_appointment(appointment_data())
        update_appointment(a.id, {"status": AppointmentStatus.CANCELLED})
        create_appointment(appointment_data(start_time="09:30"))

    def test_moving_within_its_own_slot(self):
        a = create_appointment(appointment_data())
        moved = update_appointment(a.id, {"start_time": "09:30"})
        assert moved.end_time == "10:30"
        assert moved.reschedule_count == 1

    def test_moving_a_break_keeps_the_reschedule_count(self):
        a = create_appointment(appointment_data())
        p = create_pomodoro_break(a.id)
        moved = update_appointment(p.id, {"start_time": "10:30"})
        assert moved.reschedule_count == 0

    def test_zero_duration_update_is_rejected(self):
        a = create_appointment(appointment_data())
        with pytest.raises(ValidationError):
            update_appointment(a.id, {"duration_minutes": 0})
        assert get_appointment(a.id).duration_minutes == 60

    def test_moving_to_a_weekend_is_not_confirmed_again(self):
        a = create_appointment(appointment_data())
        moved = update_appointment(a.id, {"date": SATURDAY})
        assert moved.work_schedule_violation == "weekend_saturday"

    def test_unknown_appointment(self):
        with pytest.raises(NotFoundError):
            update_appointment(404, {"title": "X"})
        assert delete_appointment(404) is False

    def test_pomodoro_of_unknown_appointment(self):
        with pytest.raises(NotFoundError):
            create_pomodoro_break(404)


class TestProjectTime:
    def test_completed_without_timer_counts_its_duration(self, project):
        a = create_appointment(appointment_data(project_id=project.id))
        create_pomodoro_break(a.id)
        update_appointment(a.id, {"status": AppointmentStatus.COMPLETED})
        assert management.get_project(project.id).actual_minutes == 60

        delete_appointment(a.id)
        assert management.get_project(project.id).actual_minutes == 0

    def test_recurring_template_is_not_counted(self, project):
        result = create_recurring_appointment(
            appointment_data(project_id=project.id, recurrence_pattern="daily", recurrence_end_count=2)
        )
        for inst in result["instances"]:
            update_appointment(inst.id, {"status": AppointmentStatus.COMPLETED})
        assert management.get_project(project.id).actual_minutes == 120


class TestTimer:
    def test_full_cycle(self, project):
        a = create_appointment(appointment_data(project_id=project.id))

        started = start_timer(a.id, now=T0)
        assert started.timer_state == TimerState.RUNNING
        with pytest.raises(ValidationError, match="already running"):
            start_timer(a.id, now=T0)

        paused = pause_timer(a.id, now=T0 + minutes(25))
        assert paused.accumulated_time_minutes == 25
        assert paused.actual_time_minutes == 25
        assert paused.timer_state == TimerState.PAUSED
        assert management.get_project(project.id).actual_minutes == 25
        with pytest.raises(ValidationError, match="not running"):
            pause_timer(a.id, now=T0 + minutes(26))

        resume_timer(a.id, now=T0 + minutes(30))
        status = timer_status(a.id, now=T0 + minutes(35))
        assert status.timer_state == TimerState.RUNNING
        assert status.current_session_minutes == 5
        assert status.total_minutes == 30

        done = complete_with_timer(a.id, now=T0 + minutes(40))
        assert done.status == AppointmentStatus.COMPLETED
        assert done.actual_time_minutes == 35
        assert done.completed_at == T0 + minutes(40)
        assert done.timer_state == TimerState.STOPPED
        assert management.get_project(project.id).actual_minutes == 35

        with pytest.raises(ValidationError, match="already completed"):
            complete_with_timer(a.id, now=T0 + minutes(41))
        with pytest.raises(ValidationError, match="Cannot time a completed appointment"):
            start_timer(a.id, now=T0 + minutes(41))

    def test_resume_needs_a_paused_timer(self):
        a = create_appointment(appointment_data())
        with pytest.raises(ValidationError, match="not paused"):
            resume_timer(a.id, now=T0)

    def test_stale_sessions_count_as_zero(self):
        a = create_appointment(appointment_data())
        start_timer(a.id, now=T0)
        assert pause_timer(a.id, now=T0 + timedelta(days=2)).accumulated_time_minutes == 0

        resume_timer(a.id, now=T0)
        assert pause_timer(a.id, now=T0 - minutes(10)).accumulated_time_minutes == 0

    def test_stopped_timer_status(self):
        a = create_appointment(appointment_data())
        status = timer_status(a.id, now=T0)
        assert status.timer_state == TimerState.STOPPED
        assert status.total_minutes == 0


class TestPomodoros:
    def test_auto_complete_when_the_break_is_over(self):
        a = create_appointment(appointment_data())
        p = create_pomodoro_break(a.id)

        assert auto_complete_pomodoros(datetime(2026, 10, 19, 10, 4)) == 0
        assert auto_complete_pomodoros(datetime(2026, 10, 19, 10, 5)) == 1
        assert auto_complete_pomodoros(datetime(2026, 10, 19, 10, 6)) == 0

        p = get_appointment(p.id)
        assert p.status == AppointmentStatus.COMPLETED
        assert p.actual_time_minutes == 5
        assert get_appointment(a.id).status == AppointmentStatus.SCHEDULED

    def test_only_today_is_touched(self):
        a = create_appointment(appointment_data())
        create_pomodoro_break(a.id)
        assert auto_complete_pomodoros(datetime(2026, 10, 20, 23, 0)) == 0

    def test_break_keeps_the_project(self, project):
        a = create_appointment(appointment_data(project_id=project.id))
        p = create_pomodoro_break(a.id)
        assert p.project_id == project.id
        assert p.date == MONDAY


class TestRecurringIds:
    def test_taken_ids_are_drawn_again(self, monkeypatch):
        ids = iter([7, 7, 9])
        monkeypatch.setattr(services, "generate_recurring_task_id", lambda: next(ids))

        data = appointment_data(recurrence_pattern="weekly", recurrence_end_count=2)
        first = create_recurring_appointment(data)
        second = create_recurring_appointment(dict(data, start_time="14:00"))
        assert first["template"].recurring_task_id == 7
        assert second["template"].recurring_task_id == 9

    def test_interval_zero_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            create_recurring_appointment(
                appointment_data(recurrence_pattern="daily", recurrence_interval=0, recurrence_end_count=2)
            )
        assert exc.value.errors == ["Recurrence interval must be between 1 and 365."]


@pytest.fixture
def sao_paulo_clock(monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    monkeypatch.setenv("TZ", "America/Sao_Paulo")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestLocalClock:
    def test_completion_time_is_local(self, sao_paulo_clock):
        a = create_appointment(appointment_data())
        before = datetime.now()
        done = update_appointment(a.id, {"status": AppointmentStatus.COMPLETED})
        assert before <= done.completed_at <= datetime.now()

    def test_prompt_completion_is_within_sla(self, sao_paulo_clock):
        now = datetime.now()
        a = create_appointment(
            appointment_data(
                date=now.date(),
                start_time=now.strftime("%H:%M"),
                duration_minutes=1,
                sla_minutes=60,
                allow_overlap=True,
                allow_weekend_override=True,
            )
        )
        done = update_appointment(a.id, {"status": AppointmentStatus.COMPLETED})
        assert is_sla_expired(done, datetime.now()) is False

    def test_timer_start_is_local(self, sao_paulo_clock):
        a = create_appointment(appointment_data())
        before = datetime.now()
        started = start_timer(a.id)
        assert before <= started.timer_started_at <= datetime.now()
