from __future__ import annotations

import pytest

from timeflow.booking_flow import BookingFlow, Step, notice_for
from timeflow.client import ApiError

WEEKEND = ApiError(
    422,
    {"code": "WEEKEND_CONFIRMATION_NEEDED", "message": "2026-10-17 is a Saturday.", "dayType": "Saturday"},
)


class FakeClient:
    """Stands in for TimeflowClient: records what is sent, replays errors first."""

    def __init__(self, booked=(), errors=(), pomodoro_error=None):
        self.booked = list(booked)
        self.errors = list(errors)
        self.pomodoro_error = pomodoro_error
        self.sent = []
        self.lookups = 0
        self.pomodoro_for = None

    def appointments_on(self, day):
        self.lookups += 1
        return [b for b in self.booked if b["date"] == day.isoformat()]

    def create_appointment(self, payload):
        self.sent.append(dict(payload))
        if self.errors:
            raise self.errors.pop(0)
        return {"id": 10, **payload, "endTime": "10:00"}

    def create_recurring(self, payload):
        self.sent.append(dict(payload))
        if self.errors:
            raise self.errors.pop(0)
        return {"template": {"id": 1}, "instances": [{"id": 2}, {"id": 3}]}

    def create_pomodoro(self, appointment_id):
        if self.pomodoro_error:
            raise self.pomodoro_error
        self.pomodoro_for = appointment_id
        return {"id": 11, "isPomodoro": True}


def draft(**overrides):
    d = {"title": "Review", "date": "2026-10-19", "startTime": "09:00", "durationMinutes": 60}
    d.update(overrides)
    return d


def booked(id, day="2026-10-19", start="09:00", duration=60):
    return {"id": id, "date": day, "startTime": start, "durationMinutes": duration, "title": "Call"}


class TestHappyPath:
    def test_free_slot_goes_straight_to_the_pomodoro_offer(self):
        client = FakeClient()
        flow = BookingFlow(client)

        assert flow.submit(draft()) == Step.OFFER_POMODORO
        assert flow.created["id"] == 10
        assert "allowOverlap" not in client.sent[0]

        assert flow.accept_pomodoro() == Step.DONE
        assert client.pomodoro_for == 10
        assert flow.pomodoro["isPomodoro"] is True
        assert flow.notice.kind == "success"

    def test_skip_pomodoro(self):
        flow = BookingFlow(FakeClient())
        flow.submit(draft())
        assert flow.skip_pomodoro() == Step.DONE
        assert flow.pomodoro is None
        assert flow.notice.message == "Appointment scheduled."

    def test_pomodoro_error_keeps_the_appointment(self):
        flow = BookingFlow(FakeClient(pomodoro_error=ApiError(404, {"message": "Appointment 10 not found."})))
        flow.submit(draft())
        assert flow.accept_pomodoro() == Step.DONE
        assert flow.created["id"] == 10
        assert flow.notice.kind == "error"

    def test_pomodoro_draft_skips_the_local_check(self):
        client = FakeClient(booked=[booked(1)])
        flow = BookingFlow(client)
        assert flow.submit(draft(isPomodoro=True, durationMinutes=5)) == Step.DONE
        assert client.lookups == 0

    def test_recurring_draft(self):
        flow = BookingFlow(FakeClient())
        step = flow.submit(draft(recurrencePattern="daily", recurrenceEndCount=2))
        assert step == Step.DONE
        assert flow.notice.message == "Recurring appointment scheduled: 2 occurrence(s)."


class TestConflicts:
    def test_overlap_asks_first(self):
        client = FakeClient(booked=[booked(1)])
        flow = BookingFlow(client)

        assert flow.submit(draft(startTime="09:30")) == Step.CONFIRM_CONFLICT
        assert [c.id for c in flow.conflicts] == [1]
        assert flow.suggestions == ["10:00", "10:15", "10:30"]
        assert client.sent == []

        assert flow.confirm_conflict() == Step.OFFER_POMODORO
        assert client.sent[0]["allowOverlap"] is True

    def test_choose_another_time(self):
        client = FakeClient(booked=[booked(1)])
        flow = BookingFlow(client)
        flow.submit(draft(startTime="09:30"))

        assert flow.choose_other_time() == Step.IDLE
        assert flow.draft["startTime"] == "09:30"
        assert client.sent == []

    def test_other_days_do_not_conflict(self):
        flow = BookingFlow(FakeClient(booked=[booked(1, day="2026-10-20")]))
        assert flow.submit(draft()) == Step.OFFER_POMODORO

    def test_server_side_conflict(self):
        error = ApiError(409, {"message": "The slot 09:00-10:00 overlaps 1 existing appointment(s).", "conflicts": [3]})
        flow = BookingFlow(FakeClient(errors=[error]))

        assert flow.submit(draft()) == Step.IDLE
        assert flow.notice.kind == "conflict"
        assert "overlaps" in flow.notice.message


class TestWeekend:
    def test_conflict_then_weekend_sends_both_flags(self):
        client = FakeClient(booked=[booked(1, day="2026-10-17")], errors=[WEEKEND])
        flow = BookingFlow(client)

        assert flow.submit(draft(date="2026-10-17", startTime="09:30")) == Step.CONFIRM_CONFLICT
        assert flow.confirm_conflict() == Step.CONFIRM_WEEKEND
        assert flow.day_type == "Saturday"
        assert flow.weekend_message == "2026-10-17 is a Saturday."

        assert flow.confirm_weekend() == Step.OFFER_POMODORO
        assert client.sent[-1]["allowOverlap"] is True
        assert client.sent[-1]["allowWeekendOverride"] is True

    def test_cancel_on_weekend(self):
        client = FakeClient(errors=[WEEKEND])
        flow = BookingFlow(client)

        assert flow.submit(draft(date="2026-10-17")) == Step.CONFIRM_WEEKEND
        assert flow.cancel() == Step.IDLE
        assert flow.created is None
        assert len(client.sent) == 1


class TestErrors:
    def test_validation_details(self):
        error = ApiError(400, {"message": "Invalid recurrence rule.", "errors": ["Unknown recurrence pattern 'x'."]})
        flow = BookingFlow(FakeClient(errors=[error]))

        assert flow.submit(draft(recurrencePattern="x", recurrenceEndCount=2)) == Step.IDLE
        assert flow.notice.kind == "validation"
        assert flow.notice.message == "Invalid recurrence rule. Unknown recurrence pattern 'x'."

    def test_invalid_local_input_is_not_sent(self):
        client = FakeClient()
        flow = BookingFlow(client)

        assert flow.submit(draft(startTime="25:00")) == Step.IDLE
        assert flow.notice.kind == "validation"

        bad = draft()
        del bad["date"]
        assert flow.submit(bad) == Step.IDLE
        assert flow.notice.message == "Date, start time and duration are required."
        assert client.sent == []

    def test_steps_must_be_in_order(self):
        flow = BookingFlow(FakeClient())
        with pytest.raises(RuntimeError):
            flow.confirm_conflict()
        with pytest.raises(RuntimeError):
            flow.accept_pomodoro()

    @pytest.mark.parametrize(
        "status, payload, kind",
        [
            (409, {"message": "overlap"}, "conflict"),
            (422, {"code": "WEEKEND_CONFIRMATION_NEEDED", "message": "weekend"}, "weekend"),
            (400, {"message": "bad"}, "validation"),
            (401, {"detail": "Not authenticated"}, "auth"),
            (500, {"detail": "boom"}, "error"),
        ],
    )
    def test_notice_kinds(self, status, payload, kind):
        assert notice_for(ApiError(status, payload)).kind == kind
