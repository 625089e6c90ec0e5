"""Celery tasks for bookings."""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import IntegrityError

from payments_cancellation_policy import compute_refund

from .exceptions import BookingError
from .models import ActorRole, Booking, BookingStateHistory, ConditionReport, Transition
from .state_machine import get_state_machine

logger = logging.getLogger(__name__)


@shared_task(name="bookings.settle_booking")
def settle_booking(booking_id: int) -> bool:
    """Move a completed booking to SETTLED once its payout is handed off."""
    try:
        get_state_machine().transition(
            booking_id,
            Transition.SETTLE,
            None,
            ActorRole.SYSTEM,
            {"reason": "Settlement after completion"},
        )
    except BookingError:
        logger.warning("bookings: could not settle booking %s", booking_id, exc_info=True)
        return False
    return True


@shared_task(name="bookings.process_booking_refund")
def process_booking_refund(booking_id: int) -> dict | None:
    """
    Compute and record the refund for a cancelled booking, then mark it REFUNDED.

    Bookings cancelled before payment (never CONFIRMED) have nothing to refund
    and stay CANCELLED.
    """
    booking = Booking.objects.select_related("listing__cancellation_policy").filter(pk=booking_id).first()
    if booking is None:
        logger.warning("bookings: booking %s no longer exists", booking_id)
        return None
    if booking.status != Booking.Status.CANCELLED:
        logger.info("bookings: skip refund for booking %s in %s", booking_id, booking.status)
        return None
    was_paid = BookingStateHistory.objects.filter(
        booking_id=booking_id, status=Booking.Status.CONFIRMED
    ).exists()
    if not was_paid:
        logger.info("bookings: booking %s cancelled before payment, no refund", booking_id)
        return None

    refund = compute_refund(booking, booking.status_changed_at).as_dict()

    try:
        get_state_machine().transition(
            booking_id,
            Transition.REFUND,
            None,
            ActorRole.SYSTEM,
            {"refund_amount": refund["refund_amount"], "reason": refund["reason_code"]},
        )
    except BookingError:
        logger.warning("bookings: could not refund booking %s", booking_id, exc_info=True)
        return None
    Booking.objects.filter(pk=booking_id, status=Booking.Status.REFUNDED).update(refund=refund)
    return refund


@shared_task(name="bookings.create_initial_condition_report")
def create_initial_condition_report(booking_id: int) -> bool:
    """Open the check-in condition report; a second call is a no-op."""
    if not Booking.objects.filter(pk=booking_id).exists():
        logger.warning("bookings: booking %s no longer exists", booking_id)
        return False
    try:
        _, created = ConditionReport.objects.get_or_create(
            booking_id=booking_id,
            kind=ConditionReport.Kind.CHECK_IN,
        )
    except IntegrityError:
        created = False
    return created


@shared_task(name="bookings.expire_unpaid_bookings")
def expire_unpaid_bookings() -> int:
    """Cancel bookings whose payment window elapsed. Returns the number cancelled."""
    return get_state_machine().expire_unpaid_bookings().count


@shared_task(name="bookings.auto_approve_return_inspections")
def auto_approve_return_inspections() -> int:
    """Complete bookings whose return inspection window elapsed."""
    return get_state_machine().auto_approve_return_inspections().count
