from __future__ import annotations

from datetime import date
from typing import Any

import requests

from timeflow.config import API_BASE


class ApiError(Exception):
    """Non-2xx answer from the API, with its decoded JSON body."""

    def __init__(self, status: int, payload: dict[str, Any]) -> None:
        self.status = status
        self.payload = payload
        super().__init__(f"{status}: {self.message}")

    @property
    def message(self) -> str:
        msg = self.payload.get("message") or self.payload.get("detail")
        if isinstance(msg, list):
            # FastAPI request validation: [{"loc": [...], "msg": "..."}]
            return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in msg)
        return str(msg or "Request failed")

    @property
    def code(self) -> str | None:
        return self.payload.get("code")


class TimeflowClient:
    """
    HTTP client (with JWT) for the REST API.
    Every non-2xx answer raises ApiError, 401 included.
    """

    def __init__(
        self,
        base_url: str = API_BASE,
        token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 10,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        r = self.session.request(
            method, f"{self.base_url}{path}", headers=self._headers(), timeout=self.timeout, **kwargs
        )
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            if not isinstance(payload, dict):
                payload = {"detail": payload}
            raise ApiError(r.status_code, payload)

        if r.status_code == 204:
            return None
        if "application/json" in r.headers.get("content-type", ""):
            return r.json()
        return r.text

    # Auth

    def login(self, username: str, password: str) -> str:
        # OAuth2PasswordRequestForm => x-www-form-urlencoded
        data = self._request("POST", "/api/auth/login", data={"username": username, "password": password})
        self.token = data["access_token"]
        return self.token

    def register(self, username: str, password: str) -> dict:
        return self._request("POST", "/api/auth/register", json={"username": username, "password": password})

    # Appointments

    def appointments_on(self, day: date) -> list[dict]:
        return self._request("GET", f"/api/appointments/date/{day.isoformat()}")

    def create_appointment(self, payload: dict) -> dict:
        return self._request("POST", "/api/appointments", json=payload)

    def update_appointment(self, appointment_id: int, payload: dict) -> dict:
        return self._request("PATCH", f"/api/appointments/{appointment_id}", json=payload)

    def delete_appointment(self, appointment_id: int) -> None:
        self._request("DELETE", f"/api/appointments/{appointment_id}")

    def create_recurring(self, payload: dict) -> dict:
        return self._request("POST", "/api/appointments/recurring", json=payload)

    def create_pomodoro(self, appointment_id: int) -> dict:
        return self._request("POST", f"/api/appointments/{appointment_id}/pomodoro")

    def auto_complete_pomodoros(self) -> int:
        return self._request("POST", "/api/appointments/auto-complete-pomodoros")["completed"]

    def timer(self, appointment_id: int, action: str) -> dict:
        return self._request("POST", f"/api/appointments/{appointment_id}/timer/{action}")

    # Availability / reports

    def slots(self, day: date, duration_minutes: int, requested_time: str | None = None) -> dict:
        params: dict[str, Any] = {"date": day.isoformat(), "durationMinutes": duration_minutes}
        if requested_time:
            params["requestedTime"] = requested_time
        return self._request("GET", "/api/schedule/slots", params=params)

    def daily_schedule(self, day: date) -> dict:
        return self._request("GET", f"/api/schedule/daily/{day.isoformat()}")

    def daily_export(self, day: date) -> str:
        return self._request("GET", f"/api/schedule/export/{day.isoformat()}")

    def weekly_summary(self, start: date) -> dict:
        return self._request("GET", f"/api/summary/weekly/{start.isoformat()}")

    def weekly_export(self, start: date) -> str:
        return self._request("GET", f"/api/summary/export/{start.isoformat()}")

    def productivity(self) -> dict:
        return self._request("GET", "/api/stats/productivity")

    def projects(self) -> list[dict]:
        return self._request("GET", "/api/projects")
