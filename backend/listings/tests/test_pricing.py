"""Tests for the listing pricing engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from bookings.exceptions import ListingNotFound, NotFoundError
from listings.models import Listing, PromoCode
from listings.services import (
    classify_duration,
    compute_base_price,
    compute_price,
    quote_listing_price,
    resolve_promo_code,
)

START = datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc)


def make_listing(**overrides) -> Listing:
    values = {
        "title": "Pressure washer",
        "pricing_mode": Listing.PricingMode.PER_DAY,
        "base_price": Decimal("100"),
        "daily_price": Decimal("100"),
    }
    values.update(overrides)
    return Listing(**values)


def assert_reconciles(breakdown) -> None:
    assert breakdown.total == (
        breakdown.subtotal
        + breakdown.service_fee
        + breakdown.deposit_amount
        + breakdown.insurance_fee
    )
    assert breakdown.owner_earnings == breakdown.subtotal - breakdown.platform_fee


def test_single_day_booking():
    breakdown = compute_price(make_listing(), START, START + timedelta(days=1))

    assert breakdown.subtotal == Decimal("100.00")
    assert breakdown.platform_fee == Decimal("15.00")
    assert breakdown.service_fee == Decimal("5.00")
    assert breakdown.deposit_amount == Decimal("0.00")
    assert breakdown.total == Decimal("105.00")
    assert breakdown.owner_earnings == Decimal("85.00")
    assert breakdown.currency == "USD"
    assert_reconciles(breakdown)


def test_weekly_discount():
    listing = make_listing(weekly_discount=Decimal("15"))

    breakdown = compute_price(listing, START, START + timedelta(days=7))

    assert breakdown.base_price == Decimal("700.00")
    assert breakdown.discount_total == Decimal("105.00")
    assert breakdown.subtotal == Decimal("595.00")
    assert [line.type for line in breakdown.discounts] == ["weekly"]
    assert_reconciles(breakdown)


def test_monthly_discount_supersedes_weekly():
    listing = make_listing(weekly_discount=Decimal("10"), monthly_discount=Decimal("20"))

    month = compute_price(listing, START, START + timedelta(days=30))
    weeks = compute_price(listing, START, START + timedelta(days=29))
    days = compute_price(listing, START, START + timedelta(days=6))

    assert [line.type for line in month.discounts] == ["monthly"]
    assert month.subtotal == Decimal("2400.00")
    assert [line.type for line in weeks.discounts] == ["weekly"]
    assert weeks.subtotal == Decimal("2610.00")
    assert days.discounts == ()


def test_long_booking_without_monthly_discount_gets_no_weekly():
    listing = make_listing(weekly_discount=Decimal("10"))

    breakdown = compute_price(listing, START, START + timedelta(days=31))

    assert breakdown.discounts == ()
    assert breakdown.subtotal == Decimal("3100.00")


@pytest.mark.parametrize(
    "elapsed,unit,value",
    [
        (timedelta(minutes=30), "hours", 1),
        (timedelta(hours=23, minutes=1), "hours", 24),
        (timedelta(days=1), "days", 1),
        (timedelta(days=1, milliseconds=1), "days", 2),
        (timedelta(days=7), "weeks", 1),
        (timedelta(days=15), "weeks", 3),
        (timedelta(days=30), "months", 1),
        (timedelta(days=61), "months", 3),
        (timedelta(0), "hours", 1),
        (timedelta(hours=-5), "hours", 1),
    ],
)
def test_classify_duration_rounds_up(elapsed, unit, value):
    duration = classify_duration(START, START + elapsed)

    assert duration.unit == unit
    assert duration.value == value


def test_zero_length_span_charges_one_unit():
    breakdown = compute_price(make_listing(), START, START)

    assert breakdown.subtotal == Decimal("100.00")


def test_sub_day_booking_on_daily_listing_charges_a_day():
    breakdown = compute_price(make_listing(), START, START + timedelta(hours=5))

    assert breakdown.base_price == Decimal("100.00")
    assert breakdown.duration.unit == "hours"


def test_hourly_listing():
    listing = make_listing(pricing_mode=Listing.PricingMode.PER_HOUR, hourly_price=Decimal("12.50"))

    assert compute_base_price(listing, START, START + timedelta(hours=2, minutes=10)) == Decimal("37.50")


def test_weekly_listing_prices_short_spans_daily():
    listing = make_listing(
        pricing_mode=Listing.PricingMode.PER_WEEK,
        daily_price=Decimal("30"),
        weekly_price=Decimal("150"),
    )

    assert compute_base_price(listing, START, START + timedelta(days=3)) == Decimal("90")
    assert compute_base_price(listing, START, START + timedelta(days=8)) == Decimal("300")


def test_monthly_listing_prices_short_spans_daily():
    listing = make_listing(
        pricing_mode=Listing.PricingMode.PER_MONTH,
        daily_price=Decimal("20"),
        monthly_price=Decimal("400"),
    )

    assert compute_base_price(listing, START, START + timedelta(days=10)) == Decimal("200")
    assert compute_base_price(listing, START, START + timedelta(days=30)) == Decimal("400")


def test_missing_unit_price_falls_back_to_base_price():
    listing = make_listing(pricing_mode=Listing.PricingMode.PER_WEEK, base_price=Decimal("80"), daily_price=None)

    assert compute_base_price(listing, START, START + timedelta(days=2)) == Decimal("160")
    assert compute_base_price(listing, START, START + timedelta(days=14)) == Decimal("160")


def test_custom_listing_is_flat():
    listing = make_listing(pricing_mode=Listing.PricingMode.CUSTOM, base_price=Decimal("250"))

    assert compute_base_price(listing, START, START + timedelta(days=9)) == Decimal("250")


def test_unknown_pricing_mode():
    with pytest.raises(ValidationError):
        compute_price(make_listing(pricing_mode="PER_FORTNIGHT"), START, START + timedelta(days=1))


def test_missing_listing():
    with pytest.raises(ListingNotFound):
        compute_price(None, START, START + timedelta(days=1))


def test_fixed_and_percentage_deposits():
    fixed = make_listing(
        requires_deposit=True,
        deposit_type=Listing.DepositType.FIXED,
        deposit_amount=Decimal("250"),
    )
    percentage = make_listing(
        requires_deposit=True,
        deposit_type=Listing.DepositType.PERCENTAGE,
        deposit_amount=Decimal("20"),
    )
    not_required = make_listing(deposit_type=Listing.DepositType.FIXED, deposit_amount=Decimal("250"))

    end = START + timedelta(days=2)
    assert compute_price(fixed, START, end).deposit_amount == Decimal("250.00")
    assert compute_price(percentage, START, end).deposit_amount == Decimal("40.00")
    assert compute_price(not_required, START, end).deposit_amount == Decimal("0.00")
    breakdown = compute_price(fixed, START, end)
    assert breakdown.total == Decimal("460.00")
    assert_reconciles(breakdown)


def test_insurance_added_only_when_requested():
    listing = make_listing(
        insurance_type=Listing.InsuranceType.PERCENTAGE,
        insurance_amount=Decimal("10"),
    )
    end = START + timedelta(days=1)

    without = compute_price(listing, START, end)
    with_insurance = compute_price(listing, START, end, wants_insurance=True)

    assert without.insurance_fee == Decimal("0.00")
    assert with_insurance.insurance_fee == Decimal("10.00")
    assert with_insurance.total == Decimal("115.00")
    assert_reconciles(with_insurance)


def test_insurance_not_offered():
    with pytest.raises(ValidationError):
        compute_price(make_listing(), START, START + timedelta(days=1), wants_insurance=True)


def test_promo_applies_after_volume_discount():
    listing = make_listing(weekly_discount=Decimal("50"))
    promo = PromoCode(code="HALF", percent_off=Decimal("50"))

    breakdown = compute_price(listing, START, START + timedelta(days=7), promo=promo)

    assert breakdown.subtotal == Decimal("175.00")
    assert breakdown.discount_total == Decimal("525.00")
    assert [line.type for line in breakdown.discounts] == ["weekly", "promo"]
    assert breakdown.subtotal > 0


def test_rounding_happens_on_output():
    listing = make_listing(daily_price=Decimal("33.33"), weekly_discount=Decimal("12.5"))

    breakdown = compute_price(listing, START, START + timedelta(days=7))

    # 233.31 less 12.5% is 204.14625 before rounding.
    assert breakdown.subtotal == Decimal("204.15")
    assert breakdown.platform_fee == Decimal("30.62")
    assert breakdown.service_fee == Decimal("10.21")
    assert_reconciles(breakdown)


def test_as_totals_is_json_safe():
    totals = compute_price(make_listing(weekly_discount=Decimal("15")), START, START + timedelta(days=7)).as_totals()

    assert totals["subtotal"] == "595.00"
    assert totals["duration"] == 1
    assert totals["duration_type"] == "weeks"
    assert totals["discounts"][0]["amount"] == "105.00"


@pytest.mark.django_db
def test_resolve_promo_code():
    now = datetime.now(timezone.utc)
    PromoCode.objects.create(code="welcome", percent_off=Decimal("10"))
    PromoCode.objects.create(code="OLD", percent_off=Decimal("10"), valid_until=now - timedelta(days=1))
    PromoCode.objects.create(code="OFF", percent_off=Decimal("10"), is_active=False)

    assert resolve_promo_code(None) is None
    assert resolve_promo_code("  ") is None
    assert resolve_promo_code(" Welcome ").code == "WELCOME"
    for code in ("OLD", "OFF", "NOPE"):
        with pytest.raises(ValidationError):
            resolve_promo_code(code)


@pytest.mark.django_db
def test_quote_listing_price_requires_active_listing(listing):
    end = START + timedelta(days=1)
    assert quote_listing_price(listing.pk, START, end).total == Decimal("105.00")

    listing.is_active = False
    listing.save()
    with pytest.raises(NotFoundError):
        quote_listing_price(listing.pk, START, end)
