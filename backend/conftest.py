"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from bookings.models import Booking
from listings.models import Listing
from listings.services import compute_price

User = get_user_model()


@pytest.fixture
def api_client():
    """DRF API client for request/response helpers."""
    return APIClient()


def _create_user(*, username: str, is_staff: bool = False) -> User:
    return User.objects.create_user(
        username=username,
        password="testpass",
        email=f"{username}@example.com",
        is_staff=is_staff,
    )


@pytest.fixture
def owner_user():
    return _create_user(username="owner")


@pytest.fixture
def renter_user():
    return _create_user(username="renter")


@pytest.fixture
def other_user():
    return _create_user(username="stranger")


@pytest.fixture
def admin_user():
    return _create_user(username="admin", is_staff=True)


@pytest.fixture
def listing_factory(owner_user):
    def _factory(**overrides) -> Listing:
        values = {
            "owner": owner_user,
            "title": "Cordless Drill",
            "description": "18V drill with two batteries",
            "pricing_mode": Listing.PricingMode.PER_DAY,
            "base_price": Decimal("100.00"),
            "daily_price": Decimal("100.00"),
        }
        values.update(overrides)
        return Listing.objects.create(**values)

    return _factory


@pytest.fixture
def listing(listing_factory):
    return listing_factory()


@pytest.fixture
def utc():
    def _at(*args) -> datetime:
        return datetime(*args, tzinfo=dt_timezone.utc)

    return _at


@pytest.fixture
def booking_factory(listing, renter_user):
    """
    Create a booking directly in any status, bypassing the state machine.

    The price snapshot is computed from the listing like a real booking.
    """

    def _factory(
        *,
        status: str = Booking.Status.DRAFT,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
        status_changed_at: datetime | None = None,
        **overrides,
    ) -> Booking:
        booking_listing = overrides.pop("listing", listing)
        start_at = start_at or timezone.now() + timedelta(days=5)
        end_at = end_at or start_at + timedelta(days=2)
        booking = Booking(
            listing=booking_listing,
            renter=overrides.pop("renter", renter_user),
            start_at=start_at,
            end_at=end_at,
            status=status,
            status_changed_at=status_changed_at or timezone.now(),
        )
        booking.apply_price(compute_price(booking_listing, start_at, end_at))
        for field, value in overrides.items():
            setattr(booking, field, value)
        booking.save()
        return booking

    return _factory
