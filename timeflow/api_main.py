from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm

from timeflow import management, reports
from timeflow.config import LOG_LEVEL, WORK_DAY_END, WORK_DAY_START
from timeflow.errors import NotFoundError, SchedulingError
from timeflow.scheduling import build_time_slots, day_type, next_available_slot, suggest_times
from timeflow.schemas import (
    AppointmentIn,
    AppointmentOut,
    AppointmentUpdate,
    AutoCompleteOut,
    CompanyIn,
    CompanyOut,
    CompanyUpdate,
    MeOut,
    PhaseIn,
    PhaseOut,
    PhaseUpdate,
    ProjectIn,
    ProjectOut,
    ProjectPhaseIn,
    ProjectPhaseOut,
    ProjectPhaseUpdate,
    ProjectUpdate,
    RecurringAppointmentIn,
    RecurringOut,
    RegisterIn,
    SlotsOut,
    SubphaseIn,
    SubphaseOut,
    SubphaseUpdate,
    TimerStatusOut,
    TimeSlotOut,
    TokenOut,
    UserIn,
    UserOut,
    UserUpdate,
)
from timeflow.services import (
    appointments_between,
    appointments_for_project,
    appointments_for_user,
    appointments_on,
    auto_complete_pomodoros,
    complete_with_timer,
    create_appointment,
    create_pomodoro_break,
    create_recurring_appointment,
    delete_appointment,
    delete_recurring_instance,
    delete_recurring_series,
    get_appointment,
    get_recurring_instances,
    init_db,
    list_appointments,
    pause_timer,
    resume_timer,
    start_timer,
    timer_status,
    update_appointment,
    update_recurring_series,
)
from timeflow.seed import seed_base

# Import to register the auth tables in the metadata
from timeflow.auth_models import Account  # noqa: F401
from timeflow.auth_service import authenticate, create_account, get_account_by_id
from timeflow.auth_security import account_id_from_token, create_access_token

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

app = FastAPI(title="TimeFlow API", version="1.0.0")


# Startup

@app.on_event("startup")
def startup() -> None:
    # Tables (accounts included) and idempotent base data
    init_db()
    seed_base()


# Errors

@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _deleted(ok: bool, what: str) -> Response:
    if not ok:
        raise NotFoundError(f"{what} not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Auth dependencies

def get_current_account(token: str = Depends(oauth2_scheme)) -> Account:
    # stray spaces or quotes pasted around the token
    token = token.strip().strip('"').strip("'")

    account_id = account_id_from_token(token)
    if not account_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    a = get_account_by_id(account_id)
    if not a or not a.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid account")
    return a


# AUTH endpoints

@app.post("/api/auth/register", response_model=dict)
def register(payload: RegisterIn) -> dict[str, Any]:
    try:
        account_id = create_account(payload.username, payload.password)
        return {"ok": True, "account_id": account_id}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/auth/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()) -> TokenOut:
    a = authenticate(form.username, form.password)
    if not a:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_access_token(a.id, a.username)
    return TokenOut(access_token=token)


@app.get("/api/me", response_model=MeOut)
def me(account: Account = Depends(get_current_account)) -> MeOut:
    return MeOut(
        id=account.id,
        username=account.username,
        is_active=account.is_active,
        last_login_at=account.last_login_at,
    )


# APPOINTMENTS (reads are public, writes need a token)

@app.get("/api/appointments", response_model=list[AppointmentOut])
def api_appointments() -> list[Any]:
    return list_appointments()


@app.get("/api/appointments/date/{day}", response_model=list[AppointmentOut])
def api_appointments_on(day: date) -> list[Any]:
    return appointments_on(day)


@app.get("/api/appointments/range", response_model=list[AppointmentOut])
def api_appointments_range(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
) -> list[Any]:
    return appointments_between(start_date, end_date)


@app.get("/api/appointments/project/{project_id}", response_model=list[AppointmentOut])
def api_appointments_for_project(project_id: int) -> list[Any]:
    return appointments_for_project(project_id)


@app.get("/api/appointments/user/{user_id}", response_model=list[AppointmentOut])
def api_appointments_for_user(user_id: int) -> list[Any]:
    return appointments_for_user(user_id)


@app.post("/api/appointments/auto-complete-pomodoros", response_model=AutoCompleteOut)
def api_auto_complete_pomodoros(account: Account = Depends(get_current_account)) -> AutoCompleteOut:
    return AutoCompleteOut(completed=auto_complete_pomodoros())


@app.post("/api/appointments/recurring", response_model=RecurringOut, status_code=201)
def api_create_recurring(
    payload: RecurringAppointmentIn, account: Account = Depends(get_current_account)
) -> Any:
    return create_recurring_appointment(payload.model_dump())


@app.get("/api/appointments/recurring/{recurring_task_id}", response_model=list[AppointmentOut])
def api_recurring_instances(recurring_task_id: int) -> list[Any]:
    rows = get_recurring_instances(recurring_task_id)
    if not rows:
        raise NotFoundError(f"Recurring series {recurring_task_id} not found.")
    return rows


@app.patch("/api/appointments/recurring/{recurring_task_id}", response_model=list[AppointmentOut])
def api_update_recurring(
    recurring_task_id: int, payload: AppointmentUpdate, account: Account = Depends(get_current_account)
) -> list[Any]:
    return update_recurring_series(recurring_task_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/appointments/recurring/{recurring_task_id}", status_code=204)
def api_delete_recurring(recurring_task_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(delete_recurring_series(recurring_task_id), f"Recurring series {recurring_task_id}")


@app.get("/api/appointments/{appointment_id}", response_model=AppointmentOut)
def api_appointment(appointment_id: int) -> Any:
    return get_appointment(appointment_id)


@app.post("/api/appointments", response_model=AppointmentOut, status_code=201)
def api_create_appointment(payload: AppointmentIn, account: Account = Depends(get_current_account)) -> Any:
    return create_appointment(payload.model_dump())


@app.patch("/api/appointments/{appointment_id}", response_model=AppointmentOut)
def api_update_appointment(
    appointment_id: int, payload: AppointmentUpdate, account: Account = Depends(get_current_account)
) -> Any:
    return update_appointment(appointment_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/appointments/{appointment_id}", status_code=204)
def api_delete_appointment(appointment_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(delete_appointment(appointment_id), f"Appointment {appointment_id}")


@app.delete("/api/appointments/{appointment_id}/recurring", status_code=204)
def api_delete_recurring_instance(
    appointment_id: int,
    delete_all: bool = Query(False, alias="deleteAll"),
    account: Account = Depends(get_current_account),
) -> Response:
    return _deleted(delete_recurring_instance(appointment_id, delete_all), f"Appointment {appointment_id}")


@app.post("/api/appointments/{appointment_id}/pomodoro", response_model=AppointmentOut, status_code=201)
def api_create_pomodoro(appointment_id: int, account: Account = Depends(get_current_account)) -> Any:
    return create_pomodoro_break(appointment_id)


# TIMER

@app.post("/api/appointments/{appointment_id}/timer/start", response_model=AppointmentOut)
def api_timer_start(appointment_id: int, account: Account = Depends(get_current_account)) -> Any:
    return start_timer(appointment_id)


@app.post("/api/appointments/{appointment_id}/timer/pause", response_model=AppointmentOut)
def api_timer_pause(appointment_id: int, account: Account = Depends(get_current_account)) -> Any:
    return pause_timer(appointment_id)


@app.post("/api/appointments/{appointment_id}/timer/resume", response_model=AppointmentOut)
def api_timer_resume(appointment_id: int, account: Account = Depends(get_current_account)) -> Any:
    return resume_timer(appointment_id)


@app.post("/api/appointments/{appointment_id}/timer/complete", response_model=AppointmentOut)
def api_timer_complete(appointment_id: int, account: Account = Depends(get_current_account)) -> Any:
    return complete_with_timer(appointment_id)


@app.get("/api/appointments/{appointment_id}/timer/status", response_model=TimerStatusOut)
def api_timer_status(appointment_id: int) -> Any:
    return timer_status(appointment_id)


# AVAILABILITY / REPORTS

@app.get("/api/schedule/slots", response_model=SlotsOut)
def api_slots(
    day: date = Query(..., alias="date"),
    duration_minutes: int = Query(60, alias="durationMinutes"),
    exclude_id: int | None = Query(None, alias="excludeId"),
    working_start: str = Query(WORK_DAY_START, alias="workingStart"),
    working_end: str = Query(WORK_DAY_END, alias="workingEnd"),
    requested_time: str | None = Query(None, alias="requestedTime"),
) -> SlotsOut:
    slots = build_time_slots(
        day,
        duration_minutes,
        appointments_on(day),
        working_start=working_start,
        working_end=working_end,
        exclude_id=exclude_id,
    )
    return SlotsOut(
        date=day,
        day_type=day_type(day),
        duration_minutes=duration_minutes,
        slots=[
            TimeSlotOut(time=s.time, available=s.available, conflicts=[c.id for c in s.conflicts], reason=s.reason)
            for s in slots
        ],
        next_available=next_available_slot(slots),
        suggestions=suggest_times(slots, requested_time) if requested_time else [],
    )


@app.get("/api/schedule/daily/{day}")
def api_daily_schedule(day: date) -> dict:
    return reports.daily_schedule(day)


@app.get("/api/schedule/export/{day}", response_class=PlainTextResponse)
def api_daily_export(day: date) -> str:
    return reports.render_daily_text(reports.daily_schedule(day))


@app.get("/api/summary/weekly/{start}")
def api_weekly_summary(start: date) -> dict:
    return reports.weekly_summary(start)


@app.get("/api/summary/export/{start}", response_class=PlainTextResponse)
def api_weekly_export(start: date) -> str:
    return reports.render_weekly_text(reports.weekly_summary(start))


@app.get("/api/stats/productivity")
def api_productivity() -> dict:
    return reports.productivity_stats()


# COMPANIES

@app.get("/api/companies", response_model=list[CompanyOut])
def api_companies() -> list[Any]:
    return management.list_companies()


@app.get("/api/companies/{company_id}", response_model=CompanyOut)
def api_company(company_id: int) -> Any:
    return management.get_company(company_id)


@app.post("/api/companies", response_model=CompanyOut, status_code=201)
def api_create_company(payload: CompanyIn, account: Account = Depends(get_current_account)) -> Any:
    return management.create_company(payload.model_dump())


@app.patch("/api/companies/{company_id}", response_model=CompanyOut)
def api_update_company(company_id: int, payload: CompanyUpdate, account: Account = Depends(get_current_account)) -> Any:
    return management.update_company(company_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/companies/{company_id}", status_code=204)
def api_delete_company(company_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(management.delete_company(company_id), f"Company {company_id}")


# PROJECTS

@app.get("/api/projects", response_model=list[ProjectOut])
def api_projects() -> list[Any]:
    return management.list_projects()


@app.get("/api/projects/{project_id}", response_model=ProjectOut)
def api_project(project_id: int) -> Any:
    return management.get_project(project_id)


@app.post("/api/projects", response_model=ProjectOut, status_code=201)
def api_create_project(payload: ProjectIn, account: Account = Depends(get_current_account)) -> Any:
    return management.create_project(payload.model_dump())


@app.patch("/api/projects/{project_id}", response_model=ProjectOut)
def api_update_project(project_id: int, payload: ProjectUpdate, account: Account = Depends(get_current_account)) -> Any:
    return management.update_project(project_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/projects/{project_id}", status_code=204)
def api_delete_project(project_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(management.delete_project(project_id), f"Project {project_id}")


@app.get("/api/projects/{project_id}/phases")
def api_project_phases(project_id: int) -> list[dict]:
    return management.project_phases_flat(project_id)


@app.post("/api/projects/{project_id}/phases", response_model=ProjectPhaseOut, status_code=201)
def api_add_project_phase(
    project_id: int, payload: ProjectPhaseIn, account: Account = Depends(get_current_account)
) -> Any:
    return management.add_project_phase(project_id, payload.model_dump())


@app.patch("/api/projects/{project_id}/phases/{project_phase_id}", response_model=ProjectPhaseOut)
def api_update_project_phase(
    project_id: int,
    project_phase_id: int,
    payload: ProjectPhaseUpdate,
    account: Account = Depends(get_current_account),
) -> Any:
    return management.update_project_phase(project_id, project_phase_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/projects/{project_id}/phases/{project_phase_id}", status_code=204)
def api_remove_project_phase(
    project_id: int, project_phase_id: int, account: Account = Depends(get_current_account)
) -> Response:
    return _deleted(
        management.remove_project_phase(project_id, project_phase_id),
        f"Phase {project_phase_id} of project {project_id}",
    )


# PHASES / SUBPHASES

@app.get("/api/phases", response_model=list[PhaseOut])
def api_phases() -> list[Any]:
    return management.list_phases()


@app.get("/api/phases/{phase_id}", response_model=PhaseOut)
def api_phase(phase_id: int) -> Any:
    return management.get_phase(phase_id)


@app.post("/api/phases", response_model=PhaseOut, status_code=201)
def api_create_phase(payload: PhaseIn, account: Account = Depends(get_current_account)) -> Any:
    return management.create_phase(payload.model_dump())


@app.patch("/api/phases/{phase_id}", response_model=PhaseOut)
def api_update_phase(phase_id: int, payload: PhaseUpdate, account: Account = Depends(get_current_account)) -> Any:
    return management.update_phase(phase_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/phases/{phase_id}", status_code=204)
def api_delete_phase(phase_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(management.delete_phase(phase_id), f"Phase {phase_id}")


@app.get("/api/phases/{phase_id}/subphases", response_model=list[SubphaseOut])
def api_subphases(phase_id: int) -> list[Any]:
    return management.list_subphases(phase_id)


@app.post("/api/phases/{phase_id}/subphases", response_model=SubphaseOut, status_code=201)
def api_create_subphase(phase_id: int, payload: SubphaseIn, account: Account = Depends(get_current_account)) -> Any:
    return management.create_subphase(phase_id, payload.model_dump())


@app.patch("/api/subphases/{subphase_id}", response_model=SubphaseOut)
def api_update_subphase(
    subphase_id: int, payload: SubphaseUpdate, account: Account = Depends(get_current_account)
) -> Any:
    return management.update_subphase(subphase_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/subphases/{subphase_id}", status_code=204)
def api_delete_subphase(subphase_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(management.delete_subphase(subphase_id), f"Subphase {subphase_id}")


# USERS (team members)

@app.get("/api/users", response_model=list[UserOut])
def api_users() -> list[Any]:
    return management.list_users()


@app.get("/api/users/{user_id}", response_model=UserOut)
def api_user(user_id: int) -> Any:
    return management.get_user(user_id)


@app.post("/api/users", response_model=UserOut, status_code=201)
def api_create_user(payload: UserIn, account: Account = Depends(get_current_account)) -> Any:
    return management.create_user(payload.model_dump())


@app.patch("/api/users/{user_id}", response_model=UserOut)
def api_update_user(user_id: int, payload: UserUpdate, account: Account = Depends(get_current_account)) -> Any:
    return management.update_user(user_id, payload.model_dump(exclude_unset=True))


@app.delete("/api/users/{user_id}", status_code=204)
def api_delete_user(user_id: int, account: Account = Depends(get_current_account)) -> Response:
    return _deleted(management.delete_user(user_id), f"User {user_id}")
