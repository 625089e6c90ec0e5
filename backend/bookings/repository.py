"""Persistence collaborator for the booking state machine."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from django.db import transaction
from django.utils import timezone

from .exceptions import TransitionConflict
from .models import Booking, BookingStateHistory

logger = logging.getLogger(__name__)


class BookingRepository(Protocol):
    def get(self, booking_id: int) -> Optional[Booking]: ...

    def apply_transition(
        self,
        booking: Booking,
        *,
        expected_status: str,
        new_status: str,
        transition: str,
        actor_id: Optional[int],
        actor_role: str,
        metadata: Mapping[str, Any],
    ) -> BookingStateHistory: ...

    def find_stale_ids(self, status: str, changed_before: datetime) -> list[int]: ...

    def history(self, booking_id: int) -> list[BookingStateHistory]: ...


class DjangoBookingRepository:
    """ORM-backed repository; status changes are compare-and-swap on the status column."""

    def get(self, booking_id: int) -> Optional[Booking]:
        return (
            Booking.objects.select_related("listing", "renter")
            .filter(pk=booking_id)
            .first()
        )

    def apply_transition(
        self,
        booking: Booking,
        *,
        expected_status: str,
        new_status: str,
        transition: str,
        actor_id: Optional[int],
        actor_role: str,
        metadata: Mapping[str, Any],
    ) -> BookingStateHistory:
        """
        Move ``booking`` from ``expected_status`` to ``new_status`` and append history.

        Both writes share one transaction. If another request already moved the
        booking off ``expected_status`` nothing is written and TransitionConflict
        is raised.
        """
        now = timezone.now()
        with transaction.atomic():
            updated = Booking.objects.filter(pk=booking.pk, status=expected_status).update(
                status=new_status,
                status_changed_at=now,
                updated_at=now,
            )
            if updated != 1:
                logger.info(
                    "bookings: stale transition %s on booking %s (expected %s)",
                    transition,
                    booking.pk,
                    expected_status,
                )
                raise TransitionConflict(
                    f"Booking {booking.pk} is no longer {expected_status}; reload and retry."
                )
            entry = BookingStateHistory.objects.create(
                booking_id=booking.pk,
                status=new_status,
                transition=transition,
                actor_id=actor_id,
                actor_role=actor_role,
                metadata=dict(metadata or {}),
                created_at=now,
            )

        booking.status = new_status
        booking.status_changed_at = now
        booking.updated_at = now
        return entry

    def find_stale_ids(self, status: str, changed_before: datetime) -> list[int]:
        """IDs of bookings that entered ``status`` no later than ``changed_before``."""
        return list(
            Booking.objects.filter(status=status, status_changed_at__lte=changed_before)
            .order_by("status_changed_at", "id")
            .values_list("pk", flat=True)
        )

    def history(self, booking_id: int) -> list[BookingStateHistory]:
        return list(BookingStateHistory.objects.filter(booking_id=booking_id).order_by("created_at", "id"))
