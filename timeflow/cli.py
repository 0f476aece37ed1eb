from __future__ import annotations

import argparse
from datetime import date, datetime

from timeflow import management, reports
from timeflow.errors import SchedulingError
from timeflow.seed import seed_base
from timeflow.scheduling import build_time_slots, next_available_slot
from timeflow.services import (
    appointments_on,
    auto_complete_pomodoros,
    create_appointment,
    create_pomodoro_break,
    create_recurring_appointment,
    delete_appointment,
    init_db,
)


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("DB initialised and base data loaded.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "companies":
        for c in management.list_companies():
            print(f"{c.id} | {c.name} | {c.type.value}")
    elif args.entity == "projects":
        for p in management.list_projects():
            print(f"{p.id} | {p.name} | {p.status.value} | {p.progress_percentage}%")
    elif args.entity == "phases":
        for ph in management.list_phases():
            print(f"{ph.id} | {ph.order_index}. {ph.name}")
    elif args.entity == "users":
        for u in management.list_users():
            print(f"{u.id} | {u.name} | {u.email}")


def _appointment_data(args: argparse.Namespace) -> dict:
    return {
        "title": args.title,
        "date": date.fromisoformat(args.date),
        "start_time": args.start,
        "duration_minutes": args.duration,
        "project_id": args.project_id,
        "notes": args.notes,
        "allow_overlap": args.allow_overlap,
        "allow_weekend_override": args.weekend,
    }


def cmd_book(args: argparse.Namespace) -> None:
    a = create_appointment(_appointment_data(args))
    print(f"Scheduled: {a.id} | {a.date} {a.start_time}-{a.end_time} | {a.title}")
    if args.pomodoro:
        p = create_pomodoro_break(a.id)
        print(f"Pomodoro: {p.id} | {p.start_time}-{p.end_time}")


def cmd_book_recurring(args: argparse.Namespace) -> None:
    data = _appointment_data(args)
    data.update(
        recurrence_pattern=args.pattern,
        recurrence_interval=args.interval,
        recurrence_end_date=date.fromisoformat(args.until) if args.until else None,
        recurrence_end_count=args.count,
    )
    result = create_recurring_appointment(data)
    print(f"Series {result['template'].recurring_task_id}: {len(result['instances'])} occurrence(s)")
    for a in result["instances"]:
        print(f"  {a.id} | {a.date} {a.start_time}-{a.end_time}")


def cmd_cancel(args: argparse.Namespace) -> None:
    ok = delete_appointment(args.appointment_id)
    print("Deleted." if ok else "Not found.")


def cmd_slots(args: argparse.Namespace) -> None:
    day = date.fromisoformat(args.date)
    slots = build_time_slots(day, args.duration, appointments_on(day))
    for s in slots:
        print(f"{s.time}  {'free' if s.available else s.reason}")
    print(f"Next available: {next_available_slot(slots) or '-'}")


def cmd_daily(args: argparse.Namespace) -> None:
    day = date.fromisoformat(args.date) if args.date else date.today()
    print(reports.render_daily_text(reports.daily_schedule(day)), end="")


def cmd_weekly(args: argparse.Namespace) -> None:
    start = date.fromisoformat(args.start) if args.start else date.today()
    print(reports.render_weekly_text(reports.weekly_summary(start)), end="")


def cmd_pomodoros(args: argparse.Namespace) -> None:
    """
    Simulates the periodic job of the UI:
    - completes today's breaks that are over
    """
    n = auto_complete_pomodoros(datetime.now())
    print(f"{n} Pomodoro break(s) completed.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="timeflow", description="TimeFlow CLI (scheduling without the UI)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Create the DB and load base data")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="List entities")
    p_list.add_argument("entity", choices=["companies", "projects", "phases", "users"])
    p_list.set_defaults(func=cmd_list)

    def add_slot_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--title", required=True)
        sp.add_argument("--date", required=True, help="YYYY-MM-DD")
        sp.add_argument("--start", required=True, help="HH:MM")
        sp.add_argument("--duration", type=int, default=60, help="minutes")
        sp.add_argument("--project-id", type=int, default=None)
        sp.add_argument("--notes", default=None)
        sp.add_argument("--allow-overlap", action="store_true", help="Book even if the slot is taken")
        sp.add_argument("--weekend", action="store_true", help="Confirm a Saturday/Sunday slot")

    p_book = sub.add_parser("book", help="Schedule an appointment")
    add_slot_args(p_book)
    p_book.add_argument("--pomodoro", action="store_true", help="Add a Pomodoro break after it")
    p_book.set_defaults(func=cmd_book)

    p_rec = sub.add_parser("book-recurring", help="Schedule a recurring appointment")
    add_slot_args(p_rec)
    p_rec.add_argument("--pattern", required=True, choices=["daily", "weekly", "monthly", "yearly"])
    p_rec.add_argument("--interval", type=int, default=1)
    p_rec.add_argument("--until", default=None, help="End date YYYY-MM-DD")
    p_rec.add_argument("--count", type=int, default=None, help="Number of occurrences")
    p_rec.set_defaults(func=cmd_book_recurring)

    p_cancel = sub.add_parser("cancel", help="Delete an appointment")
    p_cancel.add_argument("--appointment-id", type=int, required=True)
    p_cancel.set_defaults(func=cmd_cancel)

    p_slots = sub.add_parser("slots", help="Free slots of a day")
    p_slots.add_argument("--date", required=True)
    p_slots.add_argument("--duration", type=int, default=60)
    p_slots.set_defaults(func=cmd_slots)

    p_daily = sub.add_parser("daily", help="Print the daily schedule")
    p_daily.add_argument("--date", default=None)
    p_daily.set_defaults(func=cmd_daily)

    p_weekly = sub.add_parser("weekly", help="Print the weekly summary")
    p_weekly.add_argument("--start", default=None)
    p_weekly.set_defaults(func=cmd_weekly)

    p_pom = sub.add_parser("pomodoros", help="Complete Pomodoro breaks that are over")
    p_pom.set_defaults(func=cmd_pomodoros)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    init_db()  # make sure the tables exist
    try:
        args.func(args)
    except SchedulingError as e:
        parser.exit(1, f"{e.message}\n")


if __name__ == "__main__":
    main()
