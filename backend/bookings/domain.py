"""Domain helpers for booking validation and creation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from core.redis import publish_event
from listings.models import Listing
from listings.services import quote_listing_price

from .exceptions import ListingNotFound
from .models import ActorRole, Booking, BookingStateHistory

logger = logging.getLogger(__name__)

# Statuses that hold the listing's calendar for conflict detection.
# Drafts and requests awaiting approval may still overlap.
ACTIVE_BOOKING_STATUSES = (
    Booking.Status.PENDING_PAYMENT,
    Booking.Status.CONFIRMED,
    Booking.Status.IN_PROGRESS,
    Booking.Status.AWAITING_RETURN_INSPECTION,
)


def validate_booking_dates(start_at: datetime | None, end_at: datetime | None) -> None:
    """Validate that the provided instants exist and form a valid range."""
    if not start_at or not end_at:
        raise ValidationError({"non_field_errors": ["Start and end times are required."]})
    if start_at >= end_at:
        raise ValidationError({"end_at": ["End time must be after start time."]})


def ensure_no_conflict(
    listing: Listing,
    start_at: datetime,
    end_at: datetime,
    *,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """Ensure there are no overlapping active bookings for the listing."""
    qs = Booking.objects.filter(listing=listing, status__in=ACTIVE_BOOKING_STATUSES)
    if exclude_booking_id is not None:
        qs = qs.exclude(pk=exclude_booking_id)
    conflicts = qs.filter(start_at__lt=end_at, end_at__gt=start_at)
    if conflicts.exists():
        raise ValidationError(
            {"non_field_errors": ["Requested dates are not available for this listing."]}
        )


def create_booking(
    listing_id: int,
    renter,
    start_at: datetime,
    end_at: datetime,
    *,
    promo_code: Optional[str] = None,
    wants_insurance: bool = False,
) -> Booking:
    """
    Create a DRAFT booking carrying the price snapshot for the requested period.

    The creation is recorded as the first history entry with a blank transition.
    """
    validate_booking_dates(start_at, end_at)

    listing = Listing.objects.filter(pk=listing_id, is_active=True).first()
    if listing is None:
        raise ListingNotFound(f"Listing {listing_id} not found")
    if listing.owner_id == renter.pk:
        raise ValidationError({"listing": ["You cannot book your own listing."]})

    ensure_no_conflict(listing, start_at, end_at)
    breakdown = quote_listing_price(
        listing.pk,
        start_at,
        end_at,
        promo_code=promo_code,
        wants_insurance=wants_insurance,
    )

    booking = Booking(
        listing=listing,
        renter=renter,
        start_at=start_at,
        end_at=end_at,
        status=Booking.Status.DRAFT,
        promo_code=(promo_code or "").strip().upper(),
        wants_insurance=wants_insurance,
    )
    booking.apply_price(breakdown)
    with transaction.atomic():
        booking.save()
        BookingStateHistory.objects.create(
            booking=booking,
            status=Booking.Status.DRAFT,
            transition="",
            actor_id=renter.pk,
            actor_role=ActorRole.RENTER,
            metadata={"total": str(breakdown.total)},
            created_at=booking.status_changed_at,
        )
    logger.info(
        "bookings: created booking %s for listing %s by renter %s",
        booking.pk,
        listing.pk,
        renter.pk,
    )
    publish_event(
        settings.BOOKING_CREATED_TOPIC,
        {
            "booking_id": booking.pk,
            "listing_id": listing.pk,
            "renter_id": renter.pk,
            "owner_id": listing.owner_id,
            "status": booking.status,
            "start_at": booking.start_at.isoformat(),
            "end_at": booking.end_at.isoformat(),
            "total_amount": str(booking.total_amount),
        },
    )
    return booking
