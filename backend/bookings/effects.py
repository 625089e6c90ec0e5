"""Side effects fired after a booking changes status."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Protocol

from django.conf import settings
from django.utils import timezone

from core.redis import publish_event
from notifications import tasks as notification_tasks

from .models import Booking

logger = logging.getLogger(__name__)


class BookingEffects(Protocol):
    """Capabilities the state machine needs from the outside world."""

    def publish(self, topic: str, payload: Dict[str, Any]) -> None: ...

    def schedule_reminder(self, booking: Booking) -> None: ...

    def create_condition_report(self, booking: Booking) -> None: ...

    def trigger_settlement(self, booking: Booking) -> None: ...

    def trigger_refund(self, booking: Booking) -> None: ...

    def notify_admins(self, booking: Booking) -> None: ...


class CeleryBookingEffects:
    """Publish to Redis and hand everything else to Celery workers."""

    def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        publish_event(topic, payload)
        notification_tasks.send_booking_status_update.delay(
            payload["booking_id"], payload["new_status"]
        )

    def schedule_reminder(self, booking: Booking) -> None:
        lead = timedelta(hours=settings.BOOKING_REMINDER_LEAD_HOURS)
        eta = booking.start_at - lead
        if eta <= timezone.now():
            notification_tasks.send_pre_rental_reminder.delay(booking.id)
            return
        notification_tasks.send_pre_rental_reminder.apply_async(args=[booking.id], eta=eta)
        logger.debug("bookings: reminder for booking %s scheduled at %s", booking.id, eta)

    def create_condition_report(self, booking: Booking) -> None:
        from . import tasks as booking_tasks

        booking_tasks.create_initial_condition_report.delay(booking.id)

    def trigger_settlement(self, booking: Booking) -> None:
        from . import tasks as booking_tasks

        booking_tasks.settle_booking.delay(booking.id)

    def trigger_refund(self, booking: Booking) -> None:
        from . import tasks as booking_tasks

        booking_tasks.process_booking_refund.delay(booking.id)

    def notify_admins(self, booking: Booking) -> None:
        notification_tasks.notify_admins_booking_disputed.delay(booking.id)
