"""Database models for rental bookings."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from listings.models import Listing


class ActorRole(models.TextChoices):
    RENTER = "RENTER", "Renter"
    OWNER = "OWNER", "Owner"
    ADMIN = "ADMIN", "Admin"
    SYSTEM = "SYSTEM", "System"


class Transition(models.TextChoices):
    SUBMIT_REQUEST = "SUBMIT_REQUEST", "Submit request"
    OWNER_APPROVE = "OWNER_APPROVE", "Owner approve"
    OWNER_REJECT = "OWNER_REJECT", "Owner reject"
    COMPLETE_PAYMENT = "COMPLETE_PAYMENT", "Complete payment"
    START_RENTAL = "START_RENTAL", "Start rental"
    CANCEL = "CANCEL", "Cancel"
    REQUEST_RETURN = "REQUEST_RETURN", "Request return"
    APPROVE_RETURN = "APPROVE_RETURN", "Approve return"
    REJECT_RETURN = "REJECT_RETURN", "Reject return"
    SETTLE = "SETTLE", "Settle"
    INITIATE_DISPUTE = "INITIATE_DISPUTE", "Initiate dispute"
    RESOLVE_DISPUTE = "RESOLVE_DISPUTE", "Resolve dispute"
    REFUND = "REFUND", "Refund"
    EXPIRE = "EXPIRE", "Expire"


class Booking(models.Model):
    """A renter's reservation of a listing, with the price snapshot taken at creation."""

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PENDING_OWNER_APPROVAL = "PENDING_OWNER_APPROVAL", "Pending owner approval"
        PENDING_PAYMENT = "PENDING_PAYMENT", "Pending payment"
        CONFIRMED = "CONFIRMED", "Confirmed"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        AWAITING_RETURN_INSPECTION = "AWAITING_RETURN_INSPECTION", "Awaiting return inspection"
        COMPLETED = "COMPLETED", "Completed"
        SETTLED = "SETTLED", "Settled"
        CANCELLED = "CANCELLED", "Cancelled"
        DISPUTED = "DISPUTED", "Disputed"
        REFUNDED = "REFUNDED", "Refunded"

    listing = models.ForeignKey(
        Listing,
        related_name="bookings",
        on_delete=models.PROTECT,
    )
    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="bookings_as_renter",
        on_delete=models.PROTECT,
    )
    start_at = models.DateTimeField()
    end_at = models.DateTimeField(help_text="End of the rental, must be after start_at.")
    status = models.CharField(
        max_length=32,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    status_changed_at = models.DateTimeField(default=timezone.now)

    currency = models.CharField(max_length=3, default="USD")
    base_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    service_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    deposit_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    insurance_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    owner_earnings = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    totals = models.JSONField(default=dict, blank=True)
    promo_code = models.CharField(max_length=40, blank=True, default="")
    wants_insurance = models.BooleanField(default=False)

    refund = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["listing", "start_at", "end_at"], name="booking_listing_period_idx"),
            models.Index(fields=["renter", "status"], name="booking_renter_status_idx"),
            models.Index(fields=["status", "status_changed_at"], name="booking_status_changed_idx"),
        ]

    def __str__(self) -> str:
        """Return a human-readable representation."""
        return f"Booking #{self.pk} for {self.listing_id} ({self.status})"

    @property
    def owner_id(self) -> int | None:
        return self.listing.owner_id if self.listing_id else None

    def is_terminal(self) -> bool:
        """Return True if the booking accepts no further renter/owner actions."""
        return self.status in {
            self.Status.SETTLED,
            self.Status.REFUNDED,
            self.Status.CANCELLED,
        }

    def apply_price(self, breakdown) -> None:
        """Copy a listings.services.PriceBreakdown onto the snapshot columns."""
        self.currency = breakdown.currency
        self.base_price = breakdown.base_price
        self.discount_total = breakdown.discount_total
        self.subtotal = breakdown.subtotal
        self.platform_fee = breakdown.platform_fee
        self.service_fee = breakdown.service_fee
        self.deposit_amount = breakdown.deposit_amount
        self.insurance_fee = breakdown.insurance_fee
        self.total_amount = breakdown.total
        self.owner_earnings = breakdown.owner_earnings
        self.totals = breakdown.as_totals()


class BookingStateHistory(models.Model):
    """Append-only audit trail of status changes."""

    booking = models.ForeignKey(
        Booking,
        related_name="state_history",
        on_delete=models.CASCADE,
    )
    status = models.CharField(max_length=32, choices=Booking.Status.choices)
    transition = models.CharField(max_length=32, choices=Transition.choices, blank=True)
    actor_id = models.BigIntegerField(null=True, blank=True)
    actor_role = models.CharField(max_length=8, choices=ActorRole.choices)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "booking state history"

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.status} by {self.actor_role}:{self.actor_id}"


class ConditionReport(models.Model):
    class Kind(models.TextChoices):
        CHECK_IN = "CHECK_IN", "Check-in"
        CHECK_OUT = "CHECK_OUT", "Check-out"

    booking = models.ForeignKey(
        Booking,
        related_name="condition_reports",
        on_delete=models.CASCADE,
    )
    kind = models.CharField(max_length=12, choices=Kind.choices)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["booking", "kind"], name="uniq_condition_report_kind"),
        ]

    def __str__(self) -> str:
        return f"{self.kind} report for booking {self.booking_id}"
