"""Refund calculation for cancelled bookings."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from bookings.models import Booking

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HALF = Decimal("0.5")
_CENT = Decimal("0.01")

FULL_REFUND_HOURS = 48
PARTIAL_REFUND_HOURS = 24


class RefundReason:
    FULL_REFUND_48H = "FULL_REFUND_48H"
    PARTIAL_REFUND_24H = "PARTIAL_REFUND_24H"
    NO_REFUND_UNDER_24H = "NO_REFUND_UNDER_24H"
    CANCELLATION_POLICY = "CANCELLATION_POLICY"


REASON_TEXT = {
    RefundReason.FULL_REFUND_48H: "Cancelled more than 48 hours before start",
    RefundReason.PARTIAL_REFUND_24H: "Cancelled 24-48 hours before start",
    RefundReason.NO_REFUND_UNDER_24H: "Cancelled less than 24 hours before start",
    RefundReason.CANCELLATION_POLICY: "Per the listing cancellation policy",
}


@dataclass(frozen=True)
class RefundResult:
    """How the money of a cancelled booking is split between renter and platform."""

    refund_amount: Decimal
    subtotal_refunded: Decimal
    platform_fee_retained: Decimal
    service_fee_refunded: Decimal
    deposit_refunded: Decimal
    penalty: Decimal
    refund_percentage: Decimal
    reason_code: str
    reason: str

    def as_dict(self) -> dict:
        return {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in asdict(self).items()
        }


def _quantize(value: Decimal) -> Decimal:
    """Round a Decimal value to cents using HALF_UP."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _safe_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return _ZERO


def hours_until_start(booking: Booking, cancelled_at: datetime) -> Decimal:
    """Hours between the cancellation and the rental start; negative once started."""
    seconds = Decimal(str((booking.start_at - cancelled_at).total_seconds()))
    return seconds / Decimal("3600")


def default_refund_fraction(hours: Decimal) -> tuple[Decimal, str]:
    """Time-banded policy used when the listing has no cancellation policy."""
    if hours >= FULL_REFUND_HOURS:
        return _ONE, RefundReason.FULL_REFUND_48H
    if hours >= PARTIAL_REFUND_HOURS:
        return _HALF, RefundReason.PARTIAL_REFUND_24H
    return _ZERO, RefundReason.NO_REFUND_UNDER_24H


def compute_refund(
    booking: Booking,
    cancelled_at: datetime,
    *,
    deposit_claim: Decimal | None = None,
) -> RefundResult:
    """
    Split a cancelled booking's charge into refund and penalty.

    The listing's cancellation policy decides the refund percentage when one is
    attached; otherwise the 48h/24h bands apply. The percentage is applied to
    both the subtotal and the service fee, the platform keeps its fee, and the
    deposit is returned in full minus any ``deposit_claim`` raised against it.

    Components are rounded to cents before they are combined, so
    ``refund_amount == subtotal_refunded + service_fee_refunded + deposit_refunded``
    and ``subtotal_refunded + penalty == subtotal`` hold exactly.
    """
    hours = hours_until_start(booking, cancelled_at)
    policy = booking.listing.cancellation_policy
    if policy is not None:
        pct = policy.refund_fraction(hours)
        reason_code = RefundReason.CANCELLATION_POLICY
    else:
        pct, reason_code = default_refund_fraction(hours)

    subtotal = _quantize(_safe_decimal(booking.subtotal))
    service_fee = _safe_decimal(booking.service_fee)
    platform_fee = _safe_decimal(booking.platform_fee)
    deposit = max(_ZERO, _safe_decimal(booking.deposit_amount))

    claim = _safe_decimal(deposit_claim) if deposit_claim is not None else _ZERO
    claim = max(_ZERO, min(claim, deposit))
    deposit_refunded = _quantize(deposit - claim)

    subtotal_refunded = _quantize(subtotal * pct)
    service_fee_refunded = _quantize(service_fee * pct)

    return RefundResult(
        refund_amount=subtotal_refunded + service_fee_refunded + deposit_refunded,
        subtotal_refunded=subtotal_refunded,
        platform_fee_retained=_quantize(platform_fee),
        service_fee_refunded=service_fee_refunded,
        deposit_refunded=deposit_refunded,
        penalty=subtotal - subtotal_refunded,
        refund_percentage=_quantize(pct * Decimal("100")),
        reason_code=reason_code,
        reason=REASON_TEXT[reason_code],
    )
