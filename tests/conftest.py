from __future__ import annotations

import os
import tempfile
from datetime import date

# the engine is built at import time: point it at a throwaway DB first
_DB_DIR = tempfile.mkdtemp(prefix="timeflow-tests-")
os.environ["TIMEFLOW_DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.sqlite')}"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from timeflow import auth_models, models  # noqa: E402,F401
from timeflow.db import create_tables, drop_tables  # noqa: E402

# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
FRIDAY = date(2026, 10, 23)
SATURDAY = date(2026, 10, 17)
SUNDAY = date(2026, 10, 18)


@pytest.fixture(autouse=True)
def fresh_db():
    drop_tables()
    create_tables()
    yield


@pytest.fixture
def client():
    from timeflow.api_main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    client.post("/api/auth/register", json={"username": "tester", "password": "secret"})
    r = client.post("/api/auth/login", data={"username": "tester", "password": "secret"})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def appointment_payload(**overrides) -> dict:
    payload = {
        "title": "Review",
        "date": MONDAY.isoformat(),
        "startTime": "09:00",
        "durationMinutes": 60,
    }
    payload.update(overrides)
    return payload


def appointment_data(**overrides) -> dict:
    """Same as appointment_payload, snake_case for the use cases."""
    data = {
        "title": "Review",
        "date": MONDAY,
        "start_time": "09:00",
        "duration_minutes": 60,
    }
    data.update(overrides)
    return data
