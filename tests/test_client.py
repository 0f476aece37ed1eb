from __future__ import annotations

from datetime import date

import pytest

from timeflow.client import ApiError, TimeflowClient


class FakeResponse:
    def __init__(self, status_code, body=None, text="", content_type="application/json"):
        self.status_code = status_code
        self._body = body
        self.text = text
        self.headers = {"content-type": content_type}

    def json(self):
        if self._body is None:
            raise ValueError("no JSON")
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self.responses.pop(0)


def make_client(*responses, **kwargs):
    session = FakeSession(*responses)
    return TimeflowClient("http://api.test/", session=session, **kwargs), session


def test_login_stores_the_token():
    client, session = make_client(
        FakeResponse(200, {"access_token": "abc", "token_type": "bearer"}),
        FakeResponse(200, []),
    )
    assert client.login("tester", "secret") == "abc"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "http://api.test/api/auth/login")
    assert kwargs["data"] == {"username": "tester", "password": "secret"}

    client.appointments_on(date(2026, 10, 19))
    method, url, kwargs = session.calls[1]
    assert url == "http://api.test/api/appointments/date/2026-10-19"
    assert kwargs["headers"] == {"Authorization": "Bearer abc"}


def test_error_payload_is_kept():
    body = {"code": "WEEKEND_CONFIRMATION_NEEDED", "message": "2026-10-17 is a Saturday.", "dayType": "Saturday"}
    client, _ = make_client(FakeResponse(422, body))

    with pytest.raises(ApiError) as exc:
        client.create_appointment({"title": "Review"})
    assert exc.value.status == 422
    assert exc.value.code == "WEEKEND_CONFIRMATION_NEEDED"
    assert exc.value.message == "2026-10-17 is a Saturday."
    assert exc.value.payload["dayType"] == "Saturday"


def test_non_json_error():
    client, _ = make_client(FakeResponse(500, text="Internal Server Error", content_type="text/plain"))
    with pytest.raises(ApiError) as exc:
        client.productivity()
    assert exc.value.message == "Internal Server Error"
    assert exc.value.code is None


def test_request_validation_detail():
    detail = [{"loc": ["body", "date"], "msg": "Field required"}, {"loc": ["body", "title"], "msg": "Field required"}]
    client, _ = make_client(FakeResponse(422, {"detail": detail}))
    with pytest.raises(ApiError) as exc:
        client.create_appointment({})
    assert exc.value.message == "Field required; Field required"


def test_non_dict_error_body():
    client, _ = make_client(FakeResponse(400, ["bad"]))
    with pytest.raises(ApiError) as exc:
        client.projects()
    assert exc.value.payload == {"detail": ["bad"]}
    assert exc.value.message == "bad"


def test_no_content_and_text():
    client, session = make_client(
        FakeResponse(204),
        FakeResponse(200, text="DAILY SCHEDULE", content_type="text/plain; charset=utf-8"),
    )
    assert client.delete_appointment(5) is None
    assert session.calls[0][:2] == ("DELETE", "http://api.test/api/appointments/5")
    assert client.daily_export(date(2026, 10, 19)) == "DAILY SCHEDULE"


def test_slots_query():
    client, session = make_client(FakeResponse(200, {"slots": []}), FakeResponse(200, {"slots": []}))
    client.slots(date(2026, 10, 19), 30)
    assert session.calls[0][2]["params"] == {"date": "2026-10-19", "durationMinutes": 30}

    client.slots(date(2026, 10, 19), 30, requested_time="09:00")
    assert session.calls[1][2]["params"]["requestedTime"] == "09:00"


def test_auto_complete_returns_the_count():
    client, session = make_client(FakeResponse(200, {"completed": 2}), token="abc")
    assert client.auto_complete_pomodoros() == 2
    assert session.calls[0][1] == "http://api.test/api/appointments/auto-complete-pomodoros"
