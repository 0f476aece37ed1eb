from __future__ import annotations

import base64
import json
from datetime import date, datetime, time, timedelta, timezone

import streamlit as st

from timeflow.booking_flow import BookingFlow, Step
from timeflow.client import ApiError, TimeflowClient
from timeflow.config import API_BASE

st.set_page_config(page_title="TimeFlow", layout="wide")


# JWT helpers (UI only, no signature check)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    try:
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def jwt_is_expired(token: str) -> bool:
    exp = jwt_payload(token).get("exp")
    if not isinstance(exp, int):
        return False
    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp - 5)


def jwt_username(token: str) -> str:
    p = jwt_payload(token)
    return str(p.get("username") or p.get("sub") or "user")


def client() -> TimeflowClient:
    return TimeflowClient(API_BASE, token=st.session_state.get("token"))


def flow() -> BookingFlow:
    if "flow" not in st.session_state:
        st.session_state["flow"] = BookingFlow(client())
    f: BookingFlow = st.session_state["flow"]
    f.client = client()  # token may have changed since the last rerun
    return f


def show_notice(f: BookingFlow) -> None:
    n = f.notice
    if not n:
        return
    if n.kind == "success":
        st.success(f"{n.title}: {n.message}")
    elif n.kind in ("conflict", "weekend"):
        st.warning(f"{n.title}: {n.message}")
    else:
        st.error(f"{n.title}: {n.message}")


def is_logged_in() -> bool:
    token = st.session_state.get("token")
    return bool(token) and not jwt_is_expired(token)


# Sidebar login

with st.sidebar:
    st.header("Access")

    token = st.session_state.get("token")

    if not token:
        u = st.text_input("Username", key="login_user")
        p = st.text_input("Password", type="password", key="login_pass")

        if st.button("Login", key="login_btn"):
            try:
                st.session_state["token"] = client().login(u.strip().lower(), p)
                st.rerun()
            except ApiError as e:
                st.error("Invalid credentials." if e.status == 401 else e.message)
    else:
        st.write(f"User: **{jwt_username(token)}**")
        if jwt_is_expired(token):
            st.error("Session expired: log out and log in again.")

        if st.button("Logout", key="logout_btn"):
            st.session_state.pop("token", None)
            st.session_state.pop("flow", None)
            st.rerun()

    st.divider()
    st.caption(f"API: {API_BASE}")


# UI

st.title("TimeFlow")

tab1, tab2, tab3, tab4 = st.tabs(["New appointment", "Daily schedule", "Weekly summary", "Free slots"])


@st.cache_data(ttl=10)
def load_projects() -> list[dict]:
    return TimeflowClient(API_BASE).projects()  # public


# TAB 1 - New appointment (booking flow)

with tab1:
    st.subheader("Schedule an appointment")
    f = flow()

    if not is_logged_in():
        st.info("Log in from the sidebar to schedule appointments.")
    elif f.step in (Step.IDLE, Step.DONE):
        show_notice(f)

        try:
            projects = load_projects()
        except ApiError as e:
            st.error(f"API error: {e.message}")
            projects = []

        colA, colB, colC = st.columns(3)
        with colA:
            title = st.text_input("Title", key="new_title")
            project = st.selectbox(
                "Project (optional)",
                options=[None, *projects],
                format_func=lambda p: "-" if p is None else p["name"],
                key="new_project",
            )
        with colB:
            day = st.date_input("Date", value=date.today(), key="new_date")
            start = st.time_input("Start", value=time(9, 0), step=timedelta(minutes=15), key="new_start")
            duration = st.number_input("Duration (min)", min_value=5, max_value=600, value=60, step=5, key="new_dur")
        with colC:
            notes = st.text_area("Notes (optional)", height=100, key="new_notes")
            recurring = st.checkbox("Recurring", key="new_recurring")

        draft = {
            "title": title.strip(),
            "date": day.isoformat(),
            "startTime": start.strftime("%H:%M"),
            "durationMinutes": int(duration),
            "projectId": project["id"] if project else None,
            "notes": notes or None,
        }

        if recurring:
            c1, c2, c3 = st.columns(3)
            draft["recurrencePattern"] = c1.selectbox("Repeat", ["daily", "weekly", "monthly", "yearly"], key="rec_pat")
            draft["recurrenceInterval"] = int(c2.number_input("Every", min_value=1, max_value=365, value=1, key="rec_int"))
            draft["recurrenceEndCount"] = int(c3.number_input("Occurrences", min_value=1, max_value=1000, value=5, key="rec_cnt"))

        if st.button("Schedule", key="new_submit"):
            f.submit(draft)
            st.rerun()

    elif f.step == Step.CONFIRM_CONFLICT:
        st.warning(f"The slot overlaps {len(f.conflicts)} appointment(s):")
        for c in f.conflicts:
            st.write(f"- **{c.start_time}** ({c.duration_minutes} min) {c.title}")
        if f.suggestions:
            st.write("Free alternatives: " + ", ".join(f.suggestions))

        c1, c2 = st.columns(2)
        if c1.button("Schedule anyway", key="conf_yes"):
            f.confirm_conflict()
            st.rerun()
        if c2.button("Choose another time", key="conf_no"):
            f.choose_other_time()
            st.rerun()

    elif f.step == Step.CONFIRM_WEEKEND:
        st.warning(f.weekend_message or "Weekend day.")
        c1, c2 = st.columns(2)
        if c1.button(f"Schedule on {f.day_type}", key="wk_yes"):
            f.confirm_weekend()
            st.rerun()
        if c2.button("Cancel", key="wk_no"):
            f.cancel()
            st.rerun()

    elif f.step == Step.OFFER_POMODORO:
        st.success(f"Scheduled: {f.created['title']} {f.created['startTime']}-{f.created['endTime']}")
        st.write("Add a 5 minute Pomodoro break right after it?")
        c1, c2 = st.columns(2)
        if c1.button("Add break", key="pom_yes"):
            f.accept_pomodoro()
            st.rerun()
        if c2.button("No thanks", key="pom_no"):
            f.skip_pomodoro()
            st.rerun()


# TAB 2 - Daily schedule (public)

with tab2:
    st.subheader("Daily schedule")
    day = st.date_input("Day", value=date.today(), key="daily_day")

    try:
        data = client().daily_schedule(day)
        s = data["summary"]
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Appointments", s["totalAppointments"])
        c2.metric("Hours", s["totalDurationHours"])
        c3.metric("To do", s["scheduledAppointments"])
        c4.metric("Pomodoro", s["pomodoroSessions"])

        if not data["appointments"]:
            st.info("No appointments on this day.")
        for a in data["appointments"]:
            st.write(
                f"- **{a['startTime']} - {a['endTime']}** | {a['title']} | "
                f"{a['projectName'] or '-'} | {a['status']}"
            )

        st.download_button(
            "Export (text)",
            data=client().daily_export(day),
            file_name=f"schedule-{day.isoformat()}.txt",
            key="daily_export",
        )
    except ApiError as e:
        st.error(f"Schedule error: {e.message}")


# TAB 3 - Weekly summary (public)

with tab3:
    st.subheader("Weekly summary")
    start = st.date_input("Week start", value=date.today() - timedelta(days=date.today().weekday()), key="week_start")

    try:
        data = client().weekly_summary(start)
        s = data["summary"]
        c1, c2, c3 = st.columns(3)
        c1.metric("Active projects", s["totalProjects"])
        c2.metric("Average progress", f"{s['averageProgress']}%")
        c3.metric("Completion rate", f"{s['completionRate']}%")

        for p in data["projects"]:
            m = p["weekMetrics"]
            st.write(f"- **{p['name']}** ({p['companyName'] or '-'}): {m['completedTasks']}/{m['totalTasks']} done")

        st.download_button(
            "Export (text)",
            data=client().weekly_export(start),
            file_name=f"summary-{start.isoformat()}.txt",
            key="weekly_export",
        )
    except ApiError as e:
        st.error(f"Summary error: {e.message}")


# TAB 4 - Free slots (public)

with tab4:
    st.subheader("Free slots")
    c1, c2 = st.columns(2)
    day = c1.date_input("Day", value=date.today(), key="slots_day")
    duration = c2.number_input("Duration (min)", min_value=5, max_value=600, value=60, step=5, key="slots_dur")

    try:
        data = client().slots(day, int(duration))
        if data["dayType"] != "weekday":
            st.warning(f"{data['dayType']}: booking needs a weekend confirmation.")
        st.write(f"Next available: **{data['nextAvailable'] or '-'}**")
        free = [s["time"] for s in data["slots"] if s["available"]]
        st.write(", ".join(free) if free else "No free slots.")
    except ApiError as e:
        st.error(f"Slots error: {e.message}")
