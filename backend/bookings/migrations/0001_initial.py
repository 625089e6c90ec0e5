import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("DRAFT", "Draft"),
    ("PENDING_OWNER_APPROVAL", "Pending owner approval"),
    ("PENDING_PAYMENT", "Pending payment"),
    ("CONFIRMED", "Confirmed"),
    ("IN_PROGRESS", "In progress"),
    ("AWAITING_RETURN_INSPECTION", "Awaiting return inspection"),
    ("COMPLETED", "Completed"),
    ("SETTLED", "Settled"),
    ("CANCELLED", "Cancelled"),
    ("DISPUTED", "Disputed"),
    ("REFUNDED", "Refunded"),
]

TRANSITION_CHOICES = [
    ("SUBMIT_REQUEST", "Submit request"),
    ("OWNER_APPROVE", "Owner approve"),
    ("OWNER_REJECT", "Owner reject"),
    ("COMPLETE_PAYMENT", "Complete payment"),
    ("START_RENTAL", "Start rental"),
    ("CANCEL", "Cancel"),
    ("REQUEST_RETURN", "Request return"),
    ("APPROVE_RETURN", "Approve return"),
    ("REJECT_RETURN", "Reject return"),
    ("SETTLE", "Settle"),
    ("INITIATE_DISPUTE", "Initiate dispute"),
    ("RESOLVE_DISPUTE", "Resolve dispute"),
    ("REFUND", "Refund"),
    ("EXPIRE", "Expire"),
]


def money(**kwargs):
    return models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("listings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("start_at", models.DateTimeField()),
                ("end_at", models.DateTimeField(help_text="End of the rental, must be after start_at.")),
                ("status", models.CharField(choices=STATUS_CHOICES, default="DRAFT", max_length=32)),
                ("status_changed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("base_price", money()),
                ("discount_total", money()),
                ("subtotal", money()),
                ("platform_fee", money()),
                ("service_fee", money()),
                ("deposit_amount", money()),
                ("insurance_fee", money()),
                ("total_amount", money()),
                ("owner_earnings", money()),
                ("totals", models.JSONField(blank=True, default=dict)),
                ("promo_code", models.CharField(blank=True, default="", max_length=40)),
                ("wants_insurance", models.BooleanField(default=False)),
                ("refund", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "listing",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="listings.listing",
                    ),
                ),
                (
                    "renter",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings_as_renter",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["listing", "start_at", "end_at"], name="booking_listing_period_idx"),
                    models.Index(fields=["renter", "status"], name="booking_renter_status_idx"),
                    models.Index(fields=["status", "status_changed_at"], name="booking_status_changed_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BookingStateHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status", models.CharField(choices=STATUS_CHOICES, max_length=32)),
                ("transition", models.CharField(blank=True, choices=TRANSITION_CHOICES, max_length=32)),
                ("actor_id", models.BigIntegerField(blank=True, null=True)),
                (
                    "actor_role",
                    models.CharField(
                        choices=[
                            ("RENTER", "Renter"),
                            ("OWNER", "Owner"),
                            ("ADMIN", "Admin"),
                            ("SYSTEM", "System"),
                        ],
                        max_length=8,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="state_history",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "verbose_name_plural": "booking state history",
            },
        ),
        migrations.CreateModel(
            name="ConditionReport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[("CHECK_IN", "Check-in"), ("CHECK_OUT", "Check-out")],
                        max_length=12,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="condition_reports",
                        to="bookings.booking",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("booking", "kind"), name="uniq_condition_report_kind"),
                ],
            },
        ),
    ]
