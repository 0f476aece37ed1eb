"""
Request/response models for the REST API.

The wire format is camelCase (durationMinutes, allowWeekendOverride, ...).
Python code keeps snake_case and every model also accepts it by name.
"""
from __future__ import annotations

import datetime as dt
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import (
    AppointmentStatus,
    CompanyType,
    PhaseStatus,
    Priority,
    ProjectStatus,
    RecurrencePattern,
    TimerState,
    UserType,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# =========================
# Auth (OAuth2 field names)
# =========================
class RegisterIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeOut(BaseModel):
    id: str
    username: str
    is_active: bool
    last_login_at: datetime | None = None


# =========================
# Appointments
# =========================
class AppointmentIn(ApiModel):
    # time and duration are checked by the use case (400, not 422)
    title: str
    description: str | None = None
    date: dt.date
    start_time: str
    duration_minutes: int
    project_id: int | None = None
    company_id: int | None = None
    assigned_user_id: int | None = None
    phase_id: int | None = None
    priority: Priority | None = None
    category: str | None = None
    notes: str | None = None
    location: str | None = None
    meeting_url: str | None = None
    sla_minutes: int | None = Field(default=None, ge=0)
    is_pomodoro: bool = False
    allow_overlap: bool = False
    allow_weekend_override: bool = False


class AppointmentUpdate(ApiModel):
    title: str | None = None
    description: str | None = None
    date: dt.date | None = None
    start_time: str | None = None
    duration_minutes: int | None = None
    project_id: int | None = None
    company_id: int | None = None
    assigned_user_id: int | None = None
    phase_id: int | None = None
    priority: Priority | None = None
    category: str | None = None
    notes: str | None = None
    location: str | None = None
    meeting_url: str | None = None
    sla_minutes: int | None = Field(default=None, ge=0)
    status: AppointmentStatus | None = None
    allow_overlap: bool | None = None


class RecurringAppointmentIn(AppointmentIn):
    # kept as a plain string so an unknown pattern is reported with the other rule errors
    recurrence_pattern: str | None = None
    recurrence_interval: int | None = 1
    recurrence_end_date: dt.date | None = None
    recurrence_end_count: int | None = None


class AppointmentOut(ApiModel):
    id: int
    title: str
    description: str | None = None
    date: dt.date
    start_time: str
    end_time: str
    duration_minutes: int
    project_id: int | None = None
    company_id: int | None = None
    assigned_user_id: int | None = None
    phase_id: int | None = None
    priority: Priority | None = None
    category: str | None = None
    notes: str | None = None
    location: str | None = None
    meeting_url: str | None = None
    sla_minutes: int | None = None
    status: AppointmentStatus
    is_pomodoro: bool
    completed_at: datetime | None = None
    reschedule_count: int

    timer_state: TimerState
    timer_started_at: datetime | None = None
    timer_paused_at: datetime | None = None
    accumulated_time_minutes: int
    actual_time_minutes: int

    is_recurring: bool
    recurrence_pattern: RecurrencePattern | None = None
    recurrence_interval: int | None = None
    recurrence_end_date: dt.date | None = None
    recurrence_end_count: int | None = None
    parent_task_id: int | None = None
    recurring_task_id: int | None = None
    is_recurring_template: bool

    is_within_work_hours: bool
    is_overtime: bool
    work_schedule_violation: str | None = None
    allow_overlap: bool

    created_at: datetime
    updated_at: datetime | None = None


class RecurringOut(ApiModel):
    template: AppointmentOut
    instances: list[AppointmentOut]


class TimerStatusOut(ApiModel):
    appointment_id: int
    timer_state: TimerState
    accumulated_minutes: int
    current_session_minutes: int
    total_minutes: int
    timer_started_at: datetime | None = None


class AutoCompleteOut(ApiModel):
    completed: int


# =========================
# Availability
# =========================
class TimeSlotOut(ApiModel):
    time: str
    available: bool
    conflicts: list[int] = []
    reason: str | None = None


class SlotsOut(ApiModel):
    date: dt.date
    day_type: str
    duration_minutes: int
    slots: list[TimeSlotOut]
    next_available: str | None = None
    suggestions: list[str] = []


# =========================
# Companies / projects / phases / users
# =========================
class CompanyIn(ApiModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    type: CompanyType = CompanyType.CLIENT
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    website: str | None = None
    contact_person: str | None = None
    notes: str | None = None
    is_active: bool = True


class CompanyUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    type: CompanyType | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    website: str | None = None
    contact_person: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class CompanyOut(CompanyIn):
    id: int
    created_at: datetime


class ProjectIn(ApiModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    company_id: int | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    priority: Priority = Priority.MEDIUM
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    color: str = "#3B82F6"
    estimated_hours: int | None = Field(default=None, ge=0)
    progress_percentage: int = Field(default=0, ge=0, le=100)
    notes: str | None = None
    is_active: bool = True


class ProjectUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    company_id: int | None = None
    status: ProjectStatus | None = None
    priority: Priority | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    color: str | None = None
    estimated_hours: int | None = Field(default=None, ge=0)
    progress_percentage: int | None = Field(default=None, ge=0, le=100)
    notes: str | None = None
    is_active: bool | None = None


class ProjectOut(ProjectIn):
    id: int
    actual_minutes: int
    created_at: datetime


class PhaseIn(ApiModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    color: str = "#8B5CF6"
    order_index: int = 0
    estimated_duration_days: int | None = Field(default=None, ge=0)
    is_active: bool = True


class PhaseUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    color: str | None = None
    order_index: int | None = None
    estimated_duration_days: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class PhaseOut(PhaseIn):
    id: int
    created_at: datetime


class SubphaseIn(ApiModel):
    name: str = Field(..., min_length=1)
    description: str | None = None
    order_index: int = 0
    estimated_duration_days: int | None = Field(default=None, ge=0)
    is_required: bool = True
    is_active: bool = True


class SubphaseUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    order_index: int | None = None
    estimated_duration_days: int | None = Field(default=None, ge=0)
    is_required: bool | None = None
    is_active: bool | None = None


class SubphaseOut(SubphaseIn):
    id: int
    phase_id: int


class ProjectPhaseIn(ApiModel):
    phase_id: int
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    status: PhaseStatus = PhaseStatus.NOT_STARTED
    progress_percentage: int = 0
    notes: str | None = None


class ProjectPhaseUpdate(ApiModel):
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    status: PhaseStatus | None = None
    progress_percentage: int | None = None
    notes: str | None = None


class ProjectPhaseOut(ApiModel):
    id: int
    project_id: int
    phase_id: int
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    status: PhaseStatus
    progress_percentage: int
    notes: str | None = None


class UserIn(ApiModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str | None = None
    position: str | None = None
    department: str | None = None
    company_id: int | None = None
    type: UserType = UserType.INTERNAL
    notes: str | None = None
    is_active: bool = True


class UserUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = Field(default=None, min_length=3)
    phone: str | None = None
    position: str | None = None
    department: str | None = None
    company_id: int | None = None
    type: UserType | None = None
    notes: str | None = None
    is_active: bool | None = None


class UserOut(UserIn):
    id: int
    created_at: datetime
