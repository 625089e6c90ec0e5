"""Pricing engine: turns a listing's pricing configuration and a date range into a quote."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal, Optional

from django.core.exceptions import ValidationError

from bookings.exceptions import ListingNotFound

from .models import Listing, PromoCode

DurationUnit = Literal["hours", "days", "weeks", "months"]

PLATFORM_FEE_RATE = Decimal("0.15")  # deducted from owner earnings
SERVICE_FEE_RATE = Decimal("0.05")  # charged to the renter on top of the subtotal

WEEKLY_DISCOUNT_MIN_DAYS = 7
MONTHLY_DISCOUNT_MIN_DAYS = 30

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
WEEK = timedelta(days=7)
MONTH = timedelta(days=30)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENT = Decimal("0.01")


def q2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _ceil_units(elapsed: timedelta, unit: timedelta) -> int:
    """Whole units covering ``elapsed``; any span, even an empty one, costs one unit."""
    if elapsed <= timedelta(0):
        return 1
    return max(1, -(-elapsed // unit))


@dataclass(frozen=True)
class Duration:
    unit: DurationUnit
    value: int
    hours: int
    days: int


@dataclass(frozen=True)
class DiscountLine:
    type: str
    amount: Decimal
    reason: str

    def as_dict(self) -> dict[str, str]:
        return {"type": self.type, "amount": str(self.amount), "reason": self.reason}


@dataclass(frozen=True)
class PriceBreakdown:
    currency: str
    duration: Duration
    base_price: Decimal
    discount_total: Decimal
    subtotal: Decimal
    platform_fee: Decimal
    service_fee: Decimal
    deposit_amount: Decimal
    insurance_fee: Decimal
    total: Decimal
    owner_earnings: Decimal
    discounts: tuple[DiscountLine, ...] = field(default_factory=tuple)

    def as_totals(self) -> dict[str, object]:
        """
        JSON-safe snapshot stored on Booking.totals.

        Monetary values are strings quantized to two decimals.
        """
        return {
            "currency": self.currency,
            "duration": self.duration.value,
            "duration_type": self.duration.unit,
            "base_price": str(self.base_price),
            "discount_total": str(self.discount_total),
            "subtotal": str(self.subtotal),
            "platform_fee": str(self.platform_fee),
            "service_fee": str(self.service_fee),
            "deposit_amount": str(self.deposit_amount),
            "insurance_fee": str(self.insurance_fee),
            "total": str(self.total),
            "owner_earnings": str(self.owner_earnings),
            "discounts": [line.as_dict() for line in self.discounts],
        }


def classify_duration(start_at: datetime, end_at: datetime) -> Duration:
    """
    Bucket a span into the finest meaningful unit, always rounding up:
    hours below a day, days below a week, weeks below 30 days, months beyond.
    """
    elapsed = end_at - start_at
    hours = _ceil_units(elapsed, HOUR)
    days = _ceil_units(elapsed, DAY)

    if elapsed < DAY:
        return Duration(unit="hours", value=hours, hours=hours, days=days)
    if elapsed < WEEK:
        return Duration(unit="days", value=days, hours=hours, days=days)
    if elapsed < MONTH:
        return Duration(unit="weeks", value=_ceil_units(elapsed, WEEK), hours=hours, days=days)
    return Duration(unit="months", value=_ceil_units(elapsed, MONTH), hours=hours, days=days)


def _rate(specific: Optional[Decimal], listing: Listing) -> Decimal:
    """Per-unit price, falling back to the listing's generic base price when unset."""
    return Decimal(specific) if specific else Decimal(listing.base_price or 0)


def compute_base_price(listing: Listing, start_at: datetime, end_at: datetime) -> Decimal:
    """
    Price the span in the listing's pricing mode.

    Spans shorter than the mode's unit are priced at the daily rate
    rather than prorating the coarser unit.
    """
    elapsed = end_at - start_at
    days = _ceil_units(elapsed, DAY)
    mode = listing.pricing_mode

    if mode == Listing.PricingMode.PER_HOUR:
        return _rate(listing.hourly_price, listing) * _ceil_units(elapsed, HOUR)
    if mode == Listing.PricingMode.PER_DAY:
        return _rate(listing.daily_price, listing) * days
    if mode == Listing.PricingMode.PER_WEEK:
        if elapsed < WEEK:
            return _rate(listing.daily_price, listing) * days
        return _rate(listing.weekly_price, listing) * _ceil_units(elapsed, WEEK)
    if mode == Listing.PricingMode.PER_MONTH:
        if elapsed < MONTH:
            return _rate(listing.daily_price, listing) * days
        return _rate(listing.monthly_price, listing) * _ceil_units(elapsed, MONTH)
    if mode == Listing.PricingMode.CUSTOM:
        return Decimal(listing.base_price or 0)
    raise ValidationError({"pricing_mode": [f"Unknown pricing mode: {mode!r}"]})


def _volume_discount(listing: Listing, days: int, base_price: Decimal) -> DiscountLine | None:
    # Monthly and weekly discounts never stack.
    if days >= MONTHLY_DISCOUNT_MIN_DAYS:
        percentage = Decimal(listing.monthly_discount or 0)
        if percentage > _ZERO:
            return DiscountLine(
                type="monthly",
                amount=base_price * percentage / _HUNDRED,
                reason=f"Monthly booking discount ({percentage.normalize():f}%)",
            )
        return None
    if days >= WEEKLY_DISCOUNT_MIN_DAYS:
        percentage = Decimal(listing.weekly_discount or 0)
        if percentage > _ZERO:
            return DiscountLine(
                type="weekly",
                amount=base_price * percentage / _HUNDRED,
                reason=f"Weekly booking discount ({percentage.normalize():f}%)",
            )
    return None


def compute_deposit(listing: Listing, subtotal: Decimal) -> Decimal:
    if not listing.requires_deposit:
        return _ZERO
    amount = Decimal(listing.deposit_amount or 0)
    if listing.deposit_type == Listing.DepositType.FIXED:
        return amount
    if listing.deposit_type == Listing.DepositType.PERCENTAGE:
        return subtotal * amount / _HUNDRED
    return _ZERO


def compute_insurance_fee(listing: Listing, subtotal: Decimal) -> Decimal:
    amount = Decimal(listing.insurance_amount or 0)
    if listing.insurance_type == Listing.InsuranceType.FIXED:
        return amount
    if listing.insurance_type == Listing.InsuranceType.PERCENTAGE:
        return subtotal * amount / _HUNDRED
    raise ValidationError({"wants_insurance": ["Insurance is not offered for this listing."]})


def compute_price(
    listing: Listing | None,
    start_at: datetime,
    end_at: datetime,
    *,
    promo: PromoCode | None = None,
    wants_insurance: bool = False,
) -> PriceBreakdown:
    """
    Compute the price breakdown for renting ``listing`` over [start_at, end_at):
    - Base price: units in the listing's pricing mode x per-unit price
    - Subtotal: base minus one volume discount, then minus the promo percentage
    - Platform fee: 15% of subtotal, taken from the owner's side
    - Service fee: 5% of subtotal, charged to the renter
    - Total: subtotal + service fee + deposit (+ insurance when requested)
    - Owner earnings: subtotal - platform fee

    Intermediate values keep full precision; outputs are rounded to cents.
    """
    if listing is None:
        raise ListingNotFound("Listing not found")

    duration = classify_duration(start_at, end_at)
    base_price = compute_base_price(listing, start_at, end_at)

    discounts: list[DiscountLine] = []
    volume = _volume_discount(listing, duration.days, base_price)
    if volume is not None:
        discounts.append(volume)
    subtotal = base_price - sum((line.amount for line in discounts), _ZERO)

    if promo is not None:
        percentage = Decimal(promo.percent_off)
        promo_amount = subtotal * percentage / _HUNDRED
        discounts.append(
            DiscountLine(
                type="promo",
                amount=promo_amount,
                reason=f"Promo code {promo.code} ({percentage.normalize():f}%)",
            )
        )
        subtotal -= promo_amount

    subtotal_out = q2(subtotal)
    platform_fee = q2(subtotal * PLATFORM_FEE_RATE)
    service_fee = q2(subtotal * SERVICE_FEE_RATE)
    deposit_amount = q2(compute_deposit(listing, subtotal))
    insurance_fee = q2(compute_insurance_fee(listing, subtotal)) if wants_insurance else q2(_ZERO)

    return PriceBreakdown(
        currency=listing.currency,
        duration=duration,
        base_price=q2(base_price),
        discount_total=q2(base_price) - subtotal_out,
        subtotal=subtotal_out,
        platform_fee=platform_fee,
        service_fee=service_fee,
        deposit_amount=deposit_amount,
        insurance_fee=insurance_fee,
        total=subtotal_out + service_fee + deposit_amount + insurance_fee,
        owner_earnings=subtotal_out - platform_fee,
        discounts=tuple(
            DiscountLine(type=line.type, amount=q2(line.amount), reason=line.reason)
            for line in discounts
        ),
    )


def resolve_promo_code(code: str | None, *, at: datetime | None = None) -> PromoCode | None:
    """Look up a redeemable promo code; blank input means no promo."""
    normalized = (code or "").strip().upper()
    if not normalized:
        return None
    promo = PromoCode.objects.filter(code=normalized).first()
    if promo is None or not promo.is_redeemable(at):
        raise ValidationError({"promo_code": ["Promo code is invalid or expired."]})
    return promo


def quote_listing_price(
    listing_id: int,
    start_at: datetime,
    end_at: datetime,
    *,
    promo_code: str | None = None,
    wants_insurance: bool = False,
) -> PriceBreakdown:
    """Fetch an active listing's pricing configuration and run the pricing engine."""
    listing = Listing.objects.filter(pk=listing_id, is_active=True).first()
    if listing is None:
        raise ListingNotFound(f"Listing {listing_id} not found")
    promo = resolve_promo_code(promo_code)
    return compute_price(
        listing,
        start_at,
        end_at,
        promo=promo,
        wants_insurance=wants_insurance,
    )
