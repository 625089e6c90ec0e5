import django.core.validators
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CancellationPolicy",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=80)),
                ("tiers", models.JSONField(blank=True, default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name_plural": "cancellation policies",
            },
        ),
        migrations.CreateModel(
            name="PromoCode",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=40, unique=True)),
                (
                    "percent_off",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.01")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("valid_from", models.DateTimeField(blank=True, null=True)),
                ("valid_until", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="Listing",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=140)),
                ("description", models.TextField(blank=True)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "pricing_mode",
                    models.CharField(
                        choices=[
                            ("PER_HOUR", "Per hour"),
                            ("PER_DAY", "Per day"),
                            ("PER_WEEK", "Per week"),
                            ("PER_MONTH", "Per month"),
                            ("CUSTOM", "Custom"),
                        ],
                        default="PER_DAY",
                        max_length=16,
                    ),
                ),
                (
                    "base_price",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("hourly_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("daily_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("weekly_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("monthly_price", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                (
                    "weekly_discount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Percent off for bookings of 7 days or more.",
                        max_digits=5,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                (
                    "monthly_discount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Percent off for bookings of 30 days or more.",
                        max_digits=5,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                ("requires_deposit", models.BooleanField(default=False)),
                (
                    "deposit_type",
                    models.CharField(
                        choices=[
                            ("NONE", "None"),
                            ("FIXED", "Fixed amount"),
                            ("PERCENTAGE", "Percentage of subtotal"),
                        ],
                        default="NONE",
                        max_length=12,
                    ),
                ),
                (
                    "deposit_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Fixed amount, or a percentage of the subtotal for PERCENTAGE deposits.",
                        max_digits=10,
                    ),
                ),
                (
                    "insurance_type",
                    models.CharField(
                        choices=[
                            ("NONE", "None"),
                            ("FIXED", "Fixed amount"),
                            ("PERCENTAGE", "Percentage of subtotal"),
                        ],
                        default="NONE",
                        max_length=12,
                    ),
                ),
                ("insurance_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "cancellation_policy",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="listings",
                        to="listings.cancellationpolicy",
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="listings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
