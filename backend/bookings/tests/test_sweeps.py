from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from bookings.models import ActorRole, Booking, Transition
from bookings.repository import DjangoBookingRepository
from bookings.state_machine import BookingStateMachine

pytestmark = pytest.mark.django_db

S = Booking.Status


def test_expire_unpaid_bookings(machine, effects, booking_factory):
    now = timezone.now()
    stale = booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(hours=25))
    fresh = booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(hours=2))
    other = booking_factory(status=S.CONFIRMED, status_changed_at=now - timedelta(days=3))

    result = machine.expire_unpaid_bookings(now=now)

    assert result.transitioned == [stale.pk]
    assert result.failed == []
    stale.refresh_from_db()
    fresh.refresh_from_db()
    other.refresh_from_db()
    assert stale.status == S.CANCELLED
    assert fresh.status == S.PENDING_PAYMENT
    assert other.status == S.CONFIRMED

    entry = machine.get_state_history(stale.pk)[-1]
    assert entry.transition == Transition.EXPIRE
    assert entry.actor_role == ActorRole.SYSTEM
    assert entry.metadata == {"reason": "Payment timeout"}
    assert ("trigger_refund", stale.pk) in effects.calls


def test_payment_timeout_is_configurable(machine, booking_factory, settings):
    settings.BOOKING_PAYMENT_TIMEOUT_HOURS = 1
    now = timezone.now()
    booking = booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(hours=2))

    assert machine.expire_unpaid_bookings(now=now).count == 1
    booking.refresh_from_db()
    assert booking.status == S.CANCELLED


def test_auto_approve_return_inspections(machine, effects, booking_factory):
    now = timezone.now()
    overdue = booking_factory(
        status=S.AWAITING_RETURN_INSPECTION, status_changed_at=now - timedelta(hours=49)
    )
    pending = booking_factory(
        status=S.AWAITING_RETURN_INSPECTION, status_changed_at=now - timedelta(hours=47)
    )

    result = machine.auto_approve_return_inspections(now=now)

    assert result.count == 1
    overdue.refresh_from_db()
    pending.refresh_from_db()
    assert overdue.status == S.COMPLETED
    assert pending.status == S.AWAITING_RETURN_INSPECTION
    assert machine.get_state_history(overdue.pk)[-1].metadata == {
        "reason": "Auto-approved after 48 hours"
    }
    assert ("trigger_settlement", overdue.pk) in effects.calls


def test_sweep_is_idempotent(machine, booking_factory):
    now = timezone.now()
    booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(days=2))

    assert machine.expire_unpaid_bookings(now=now).count == 1
    assert machine.expire_unpaid_bookings(now=now).count == 0


def test_one_failure_does_not_abort_sweep(effects, booking_factory):
    now = timezone.now()
    first = booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(days=3))
    second = booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(days=2))

    class VanishingRepository(DjangoBookingRepository):
        def find_stale_ids(self, status, changed_before):
            # A candidate deleted between the scan and its transition.
            return [first.pk, 999999, second.pk]

    machine = BookingStateMachine(VanishingRepository(), effects)

    result = machine.expire_unpaid_bookings(now=now)

    assert result.transitioned == [first.pk, second.pk]
    assert result.failed == [999999]


def test_run_sweeps(machine, booking_factory):
    now = timezone.now()
    booking_factory(status=S.PENDING_PAYMENT, status_changed_at=now - timedelta(days=2))
    booking_factory(status=S.AWAITING_RETURN_INSPECTION, status_changed_at=now - timedelta(days=3))
    booking_factory(status=S.IN_PROGRESS, status_changed_at=now - timedelta(days=3))

    assert machine.run_sweeps(now=now) == 2
