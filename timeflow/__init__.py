"""
TimeFlow: appointment scheduling and project tracking.

Structure:
- config.py     : settings from the environment / .env
- db.py         : SQLAlchemy engine and sessions
- models.py     : ORM models and enums
- scheduling.py : time arithmetic, overlaps, weekends, free slots
- recurrence.py : recurrence rules and their expansion
- services.py   : appointment use cases (booking, series, Pomodoro, timer)
- management.py : companies, projects, phases, team members
- reports.py    : daily schedule, weekly summary, productivity
- api_main.py   : REST API (FastAPI)
- client.py     : REST client used by the UI
- booking_flow.py : confirmation steps before a booking (conflict, weekend, Pomodoro)
- seed.py       : base data (internal company, phase catalogue)
- cli.py        : command line access without the UI
"""
