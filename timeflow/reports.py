from __future__ import annotations

from datetime import date, datetime, timedelta

from sqlalchemy import and_, select

from .db import db_session
from .models import Appointment, AppointmentStatus, Company, Project, ProjectStatus, User
from .scheduling import day_type, time_to_minutes

NEXT_TASKS_LIMIT = 3


def _hours(minutes: int) -> float:
    return round(minutes / 60, 1)


def _starts_at(a: Appointment) -> datetime:
    minutes = time_to_minutes(a.start_time)
    return datetime.combine(a.date, datetime.min.time()) + timedelta(minutes=minutes)


def is_sla_expired(a: Appointment, now: datetime) -> bool:
    """
    SLA counts from the scheduled start. A completed appointment breaches it
    when it was completed too late, a scheduled one when the time has passed.
    """
    if not a.sla_minutes:
        return False
    deadline = _starts_at(a) + timedelta(minutes=a.sla_minutes)
    if a.status == AppointmentStatus.COMPLETED:
        return a.completed_at is not None and a.completed_at > deadline
    if a.status == AppointmentStatus.SCHEDULED:
        return now > deadline
    return False


# =========================
# Daily schedule
# =========================
def daily_schedule(day: date) -> dict:
    """
    'Flat' view of a day: serializable dicts with the project, company
    and assignee names already resolved.
    """
    with db_session() as s:
        q = (
            select(
                Appointment,
                Project.name.label("project_name"),
                Company.name.label("company_name"),
                User.name.label("user_name"),
            )
            .outerjoin(Project, Project.id == Appointment.project_id)
            .outerjoin(Company, Company.id == Appointment.company_id)
            .outerjoin(User, User.id == Appointment.assigned_user_id)
            .where(
                and_(
                    Appointment.date == day,
                    Appointment.is_recurring_template.is_(False),
                    Appointment.status != AppointmentStatus.CANCELLED,
                )
            )
            .order_by(Appointment.start_time.asc())
        )
        rows = s.execute(q).all()

    appointments = [
        {
            "id": a.id,
            "title": a.title,
            "startTime": a.start_time,
            "endTime": a.end_time,
            "durationMinutes": a.duration_minutes,
            "status": a.status.value,
            "priority": a.priority.value if a.priority else None,
            "category": a.category,
            "location": a.location,
            "isPomodoro": a.is_pomodoro,
            "isRecurring": a.is_recurring,
            "projectName": project_name,
            "companyName": company_name,
            "assignedUserName": user_name,
        }
        for a, project_name, company_name, user_name in rows
    ]

    return {
        "date": day.isoformat(),
        "dayType": day_type(day),
        "appointments": appointments,
        "summary": {
            "totalAppointments": len(appointments),
            "totalDurationHours": _hours(sum(x["durationMinutes"] for x in appointments)),
            "scheduledAppointments": sum(1 for x in appointments if x["status"] == "scheduled"),
            "completedAppointments": sum(1 for x in appointments if x["status"] == "completed"),
            "pomodoroSessions": sum(1 for x in appointments if x["isPomodoro"]),
        },
    }


# =========================
# Weekly summary
# =========================
def weekly_summary(start: date) -> dict:
    """Active projects over [start, start + 6] with their work in the week."""
    end = start + timedelta(days=6)

    with db_session() as s:
        projects = s.execute(
            select(Project, Company.name.label("company_name"))
            .outerjoin(Company, Company.id == Project.company_id)
            .where(and_(Project.is_active.is_(True), Project.status == ProjectStatus.ACTIVE))
            .order_by(Project.name)
        ).all()

        work = list(
            s.scalars(
                select(Appointment).where(
                    and_(
                        Appointment.project_id.is_not(None),
                        Appointment.is_pomodoro.is_(False),
                        Appointment.is_recurring_template.is_(False),
                        Appointment.status != AppointmentStatus.CANCELLED,
                        Appointment.date >= start,
                    )
                ).order_by(Appointment.date.asc(), Appointment.start_time.asc())
            )
        )

    items = []
    companies: list[str] = []
    total_tasks = completed_tasks = 0
    for p, company_name in projects:
        mine = [a for a in work if a.project_id == p.id]
        in_week = [a for a in mine if a.date <= end]
        done = [a for a in in_week if a.status == AppointmentStatus.COMPLETED]
        upcoming = [a for a in mine if a.status == AppointmentStatus.SCHEDULED][:NEXT_TASKS_LIMIT]

        total_tasks += len(in_week)
        completed_tasks += len(done)
        if company_name and company_name not in companies:
            companies.append(company_name)

        items.append(
            {
                "id": p.id,
                "name": p.name,
                "companyName": company_name,
                "status": p.status.value,
                "priority": p.priority.value,
                "color": p.color,
                "progressPercentage": p.progress_percentage,
                "actualMinutes": p.actual_minutes,
                "weekMetrics": {
                    "totalTasks": len(in_week),
                    "completedTasks": len(done),
                    "totalMinutes": sum(a.duration_minutes for a in in_week),
                },
                "nextTasks": [
                    {"id": a.id, "title": a.title, "date": a.date.isoformat(), "startTime": a.start_time}
                    for a in upcoming
                ],
            }
        )

    return {
        "weekStart": start.isoformat(),
        "weekEnd": end.isoformat(),
        "projects": items,
        "summary": {
            "totalProjects": len(items),
            "averageProgress": round(sum(p["progressPercentage"] for p in items) / len(items)) if items else 0,
            "completionRate": round(100 * completed_tasks / total_tasks) if total_tasks else 0,
            "uniqueCompanies": companies,
        },
    }


# =========================
# Text exports
# =========================
def render_daily_text(schedule: dict) -> str:
    day = date.fromisoformat(schedule["date"])
    lines = [f"DAILY SCHEDULE - {day.strftime('%A %d/%m/%Y')}", ""]

    if not schedule["appointments"]:
        lines.append("No appointments.")
    for a in schedule["appointments"]:
        marker = "[P] " if a["isPomodoro"] else ""
        lines.append(f"{a['startTime']}-{a['endTime']}  {marker}{a['title']} ({a['status']})")
        details = [x for x in (a["projectName"], a["companyName"], a["assignedUserName"]) if x]
        if details:
            lines.append("    " + " | ".join(details))

    summary = schedule["summary"]
    lines += [
        "",
        f"Appointments: {summary['totalAppointments']}",
        f"Scheduled hours: {summary['totalDurationHours']}h",
        f"Still to do: {summary['scheduledAppointments']}",
        f"Pomodoro breaks: {summary['pomodoroSessions']}",
    ]
    return "\n".join(lines) + "\n"


def render_weekly_text(summary: dict) -> str:
    start = date.fromisoformat(summary["weekStart"])
    end = date.fromisoformat(summary["weekEnd"])
    lines = [f"WEEKLY SUMMARY - {start.strftime('%d/%m/%Y')} to {end.strftime('%d/%m/%Y')}", ""]

    for p in summary["projects"]:
        m = p["weekMetrics"]
        company = f" ({p['companyName']})" if p["companyName"] else ""
        lines.append(f"* {p['name']}{company}: {p['progressPercentage']}% complete")
        lines.append(f"    tasks this week: {m['completedTasks']}/{m['totalTasks']} done, {_hours(m['totalMinutes'])}h")
        for t in p["nextTasks"]:
            lines.append(f"    next: {t['date']} {t['startTime']} {t['title']}")
    if not summary["projects"]:
        lines.append("No active projects.")

    totals = summary["summary"]
    lines += [
        "",
        f"Active projects: {totals['totalProjects']}",
        f"Average progress: {totals['averageProgress']}%",
        f"Completion rate: {totals['completionRate']}%",
    ]
    if totals["uniqueCompanies"]:
        lines.append("Companies: " + ", ".join(totals["uniqueCompanies"]))
    return "\n".join(lines) + "\n"


# =========================
# Productivity
# =========================
def productivity_stats(now: datetime | None = None) -> dict:
    now = now or datetime.now()
    today = now.date()

    with db_session() as s:
        rows = list(s.scalars(select(Appointment).where(Appointment.is_recurring_template.is_(False))))

    todays = [a for a in rows if a.date == today]
    with_sla = [a for a in rows if a.sla_minutes and not a.is_pomodoro]
    expired = [a for a in with_sla if is_sla_expired(a, now)]
    upcoming = sorted(
        (
            a for a in rows
            if a.status == AppointmentStatus.SCHEDULED and not a.is_pomodoro and _starts_at(a) > now
        ),
        key=_starts_at,
    )

    return {
        "todayCompleted": sum(1 for a in todays if a.status == AppointmentStatus.COMPLETED),
        "scheduledHoursToday": _hours(sum(a.duration_minutes for a in todays if not a.is_pomodoro)),
        "slaExpired": len(expired),
        "slaCompliance": round(100 * (len(with_sla) - len(expired)) / len(with_sla)) if with_sla else 100,
        "rescheduled": sum(a.reschedule_count for a in rows),
        "pomodorosToday": sum(1 for a in todays if a.is_pomodoro),
        "nextTask": upcoming[0].start_time if upcoming else "--:--",
    }
