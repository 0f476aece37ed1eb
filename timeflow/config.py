from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# SQLite file in the project root unless overridden
DATABASE_URL = os.getenv("TIMEFLOW_DATABASE_URL", f"sqlite:///{PROJECT_ROOT / 'timeflow.sqlite'}")
DB_ECHO = os.getenv("TIMEFLOW_DB_ECHO", "0") == "1"

# In production: set it in the environment
JWT_SECRET = os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("TIMEFLOW_LOG_LEVEL", "INFO").upper()

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")

# Work day (HH:MM)
WORK_DAY_START = os.getenv("WORK_DAY_START", "08:00")
LUNCH_START = os.getenv("LUNCH_START", "12:00")
LUNCH_END = os.getenv("LUNCH_END", "13:00")
WORK_DAY_END = os.getenv("WORK_DAY_END", "18:00")

POMODORO_MINUTES = int(os.getenv("POMODORO_MINUTES", "5"))
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "15"))
