"""Fixtures for exercising the booking state machine without Celery or Redis."""

from __future__ import annotations

import pytest

from bookings.repository import DjangoBookingRepository
from bookings.state_machine import BookingStateMachine


class RecordingEffects:
    """In-memory effects that remember every call; names in ``failing`` raise."""

    def __init__(self, failing: set[str] | None = None):
        self.calls: list[tuple[str, object]] = []
        self.failing = failing or set()

    def _record(self, name: str, value) -> None:
        self.calls.append((name, value))
        if name in self.failing:
            raise RuntimeError(f"{name} is down")

    def publish(self, topic, payload):
        self._record("publish", (topic, payload))

    def schedule_reminder(self, booking):
        self._record("schedule_reminder", booking.pk)

    def create_condition_report(self, booking):
        self._record("create_condition_report", booking.pk)

    def trigger_settlement(self, booking):
        self._record("trigger_settlement", booking.pk)

    def trigger_refund(self, booking):
        self._record("trigger_refund", booking.pk)

    def notify_admins(self, booking):
        self._record("notify_admins", booking.pk)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def published(self) -> list[dict]:
        return [value[1] for name, value in self.calls if name == "publish"]


@pytest.fixture
def effects():
    return RecordingEffects()


@pytest.fixture
def machine(effects):
    return BookingStateMachine(DjangoBookingRepository(), effects)


@pytest.fixture
def recording_state_machine(monkeypatch, effects):
    """Route every get_state_machine() call (API, tasks) through RecordingEffects."""
    instance = BookingStateMachine(DjangoBookingRepository(), effects)
    monkeypatch.setattr("bookings.api.get_state_machine", lambda: instance)
    monkeypatch.setattr("bookings.tasks.get_state_machine", lambda: instance)
    return instance
