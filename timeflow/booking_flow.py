"""
Confirmation steps in front of a booking, as the UI walks them.

    IDLE -> (local overlap?) CONFIRM_CONFLICT -> (server says weekend?)
    CONFIRM_WEEKEND -> OFFER_POMODORO -> DONE

Every step is optional and each confirmation re-sends the same draft with
one more bypass flag (allowOverlap, allowWeekendOverride). Errors that need
no answer from the user end up in `notice` and the flow goes back to IDLE.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from timeflow.client import ApiError
from timeflow.errors import WEEKEND_CONFIRMATION_NEEDED, SchedulingError
from timeflow.scheduling import BookedSlot, build_time_slots, find_conflicts, suggest_times

logger = logging.getLogger(__name__)


class Step(enum.Enum):
    IDLE = "idle"
    CONFIRM_CONFLICT = "confirm_conflict"
    CONFIRM_WEEKEND = "confirm_weekend"
    OFFER_POMODORO = "offer_pomodoro"
    DONE = "done"


@dataclass(frozen=True)
class Notice:
    kind: str  # success | conflict | weekend | validation | auth | error
    title: str
    message: str


def notice_for(error: ApiError) -> Notice:
    if error.status == 409:
        return Notice("conflict", "Time conflict", error.message)
    if error.status == 422 and error.code == WEEKEND_CONFIRMATION_NEEDED:
        return Notice("weekend", "Weekend day", error.message)
    if error.status == 400:
        details = error.payload.get("errors") or []
        return Notice("validation", "Invalid data", " ".join([error.message, *details]))
    if error.status == 401:
        return Notice("auth", "Login required", error.message)
    return Notice("error", "Something went wrong", error.message)


class BookingFlow:
    def __init__(self, client: Any) -> None:
        self.client = client
        self.draft: dict[str, Any] | None = None
        self.reset()

    def reset(self) -> None:
        self.step = Step.IDLE
        self.conflicts: list[BookedSlot] = []
        self.suggestions: list[str] = []
        self.weekend_message: str | None = None
        self.day_type: str | None = None
        self.created: dict[str, Any] | None = None
        self.pomodoro: dict[str, Any] | None = None
        self.notice: Notice | None = None

    def _expect(self, step: Step) -> None:
        if self.step != step:
            raise RuntimeError(f"Expected step {step.name}, flow is at {self.step.name}")

    @property
    def is_recurring(self) -> bool:
        return bool(self.draft and self.draft.get("recurrencePattern"))

    # Steps

    def submit(self, draft: dict[str, Any]) -> Step:
        """Starts a new booking from a camelCase draft (the API payload)."""
        self.reset()
        self.draft = dict(draft)

        if not self.draft.get("isPomodoro") and not self.draft.get("allowOverlap"):
            try:
                day = date.fromisoformat(self.draft["date"])
                duration = int(self.draft["durationMinutes"])
                booked = [BookedSlot.from_api(x) for x in self.client.appointments_on(day)]
                conflicts = find_conflicts(day, self.draft["startTime"], duration, booked)
                if conflicts:
                    slots = build_time_slots(day, duration, booked)
                    self.suggestions = suggest_times(slots, self.draft["startTime"])
            except SchedulingError as e:
                self.notice = Notice("validation", "Invalid data", e.message)
                return self.step
            except (KeyError, ValueError):
                self.notice = Notice("validation", "Invalid data", "Date, start time and duration are required.")
                return self.step
            except ApiError as e:
                self.notice = notice_for(e)
                return self.step

            if conflicts:
                self.conflicts = conflicts
                self.step = Step.CONFIRM_CONFLICT
                return self.step

        return self._send()

    def confirm_conflict(self) -> Step:
        self._expect(Step.CONFIRM_CONFLICT)
        self.draft["allowOverlap"] = True
        return self._send()

    def choose_other_time(self) -> Step:
        """Back to the form; the draft is kept for editing."""
        self._expect(Step.CONFIRM_CONFLICT)
        self.step = Step.IDLE
        return self.step

    def confirm_weekend(self) -> Step:
        self._expect(Step.CONFIRM_WEEKEND)
        self.draft["allowWeekendOverride"] = True
        return self._send()

    def cancel(self) -> Step:
        self.reset()
        return self.step

    def accept_pomodoro(self) -> Step:
        self._expect(Step.OFFER_POMODORO)
        try:
            self.pomodoro = self.client.create_pomodoro(self.created["id"])
            self.notice = Notice("success", "Scheduled", "Appointment and Pomodoro break scheduled.")
        except ApiError as e:
            # the appointment itself is already saved
            self.notice = notice_for(e)
        self.step = Step.DONE
        return self.step

    def skip_pomodoro(self) -> Step:
        self._expect(Step.OFFER_POMODORO)
        self.notice = Notice("success", "Scheduled", "Appointment scheduled.")
        self.step = Step.DONE
        return self.step

    # Server round-trip

    def _send(self) -> Step:
        try:
            if self.is_recurring:
                self.created = self.client.create_recurring(self.draft)
            else:
                self.created = self.client.create_appointment(self.draft)
        except ApiError as e:
            if e.status == 422 and e.code == WEEKEND_CONFIRMATION_NEEDED:
                self.weekend_message = e.message
                self.day_type = e.payload.get("dayType")
                self.step = Step.CONFIRM_WEEKEND
                return self.step
            logger.info("Booking rejected: %s", e)
            self.notice = notice_for(e)
            self.step = Step.IDLE
            return self.step

        if self.is_recurring:
            n = len(self.created.get("instances", []))
            self.notice = Notice("success", "Scheduled", f"Recurring appointment scheduled: {n} occurrence(s).")
            self.step = Step.DONE
        elif self.draft.get("isPomodoro"):
            self.notice = Notice("success", "Scheduled", "Pomodoro break scheduled.")
            self.step = Step.DONE
        else:
            self.step = Step.OFFER_POMODORO
        return self.step
