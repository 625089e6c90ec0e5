from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

_HUNDRED = Decimal("100")


class CancellationPolicy(models.Model):
    """
    Listing-specific refund schedule.

    ``tiers`` is a list of ``{"hours_before": int, "refund_percentage": number}``
    entries. A cancellation made at least ``hours_before`` hours ahead of the
    rental start earns ``refund_percentage`` percent back; the satisfied tier with
    the largest ``hours_before`` wins.
    """

    name = models.CharField(max_length=80)
    tiers = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "cancellation policies"

    def __str__(self) -> str:
        return self.name

    def clean(self):
        if not isinstance(self.tiers, list):
            raise ValidationError({"tiers": ["Tiers must be a list."]})
        for tier in self.tiers:
            try:
                hours = int(tier["hours_before"])
                percentage = Decimal(str(tier["refund_percentage"]))
            except (KeyError, TypeError, ValueError, ArithmeticError):
                raise ValidationError(
                    {"tiers": ["Each tier needs hours_before and refund_percentage."]}
                )
            if hours < 0:
                raise ValidationError({"tiers": ["hours_before cannot be negative."]})
            if percentage < 0 or percentage > _HUNDRED:
                raise ValidationError({"tiers": ["refund_percentage must be within 0-100."]})

    def refund_fraction(self, hours_until_start: float) -> Decimal:
        """Return the refund share (0..1) for a cancellation made this far ahead."""
        best: tuple[int, Decimal] | None = None
        for tier in self.tiers or []:
            hours = int(tier["hours_before"])
            if hours_until_start < hours:
                continue
            if best is None or hours > best[0]:
                best = (hours, Decimal(str(tier["refund_percentage"])))
        if best is None:
            return Decimal("0")
        return best[1] / _HUNDRED


class PromoCode(models.Model):
    code = models.CharField(max_length=40, unique=True)
    percent_off = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(_HUNDRED)],
    )
    is_active = models.BooleanField(default=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.code} ({self.percent_off}%)"

    def is_redeemable(self, at: datetime | None = None) -> bool:
        if not self.is_active:
            return False
        at = at or timezone.now()
        if self.valid_from and at < self.valid_from:
            return False
        if self.valid_until and at > self.valid_until:
            return False
        return True


class Listing(models.Model):
    """Rentable item together with the pricing configuration bookings are quoted from."""

    class PricingMode(models.TextChoices):
        PER_HOUR = "PER_HOUR", "Per hour"
        PER_DAY = "PER_DAY", "Per day"
        PER_WEEK = "PER_WEEK", "Per week"
        PER_MONTH = "PER_MONTH", "Per month"
        CUSTOM = "CUSTOM", "Custom"

    class DepositType(models.TextChoices):
        NONE = "NONE", "None"
        FIXED = "FIXED", "Fixed amount"
        PERCENTAGE = "PERCENTAGE", "Percentage of subtotal"

    # Insurance surcharges use the same kinds as deposits.
    InsuranceType = DepositType

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="listings",
    )
    title = models.CharField(max_length=140)
    description = models.TextField(blank=True)
    currency = models.CharField(max_length=3, default="USD")
    is_active = models.BooleanField(default=True)

    pricing_mode = models.CharField(
        max_length=16,
        choices=PricingMode.choices,
        default=PricingMode.PER_DAY,
    )
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        default=0,
    )
    hourly_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    daily_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    weekly_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    monthly_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    weekly_discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(_HUNDRED)],
        help_text="Percent off for bookings of 7 days or more.",
    )
    monthly_discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(_HUNDRED)],
        help_text="Percent off for bookings of 30 days or more.",
    )

    requires_deposit = models.BooleanField(default=False)
    deposit_type = models.CharField(
        max_length=12,
        choices=DepositType.choices,
        default=DepositType.NONE,
    )
    deposit_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Fixed amount, or a percentage of the subtotal for PERCENTAGE deposits.",
    )

    insurance_type = models.CharField(
        max_length=12,
        choices=InsuranceType.choices,
        default=InsuranceType.NONE,
    )
    insurance_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    cancellation_policy = models.ForeignKey(
        CancellationPolicy,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="listings",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def clean(self):
        if not self.title or len(self.title.strip()) < 3:
            raise ValidationError("Title too short")
        if self.deposit_type == self.DepositType.PERCENTAGE and self.deposit_amount > _HUNDRED:
            raise ValidationError({"deposit_amount": ["Percentage deposits cannot exceed 100."]})

    def __str__(self) -> str:
        return f"{self.title} ({self.pricing_mode})"
