from rest_framework import serializers

from .models import Listing


class ListingSerializer(serializers.ModelSerializer):
    """Read-only view of a listing and its pricing configuration."""

    owner = serializers.PrimaryKeyRelatedField(read_only=True)
    owner_username = serializers.ReadOnlyField(source="owner.username")
    cancellation_policy_name = serializers.ReadOnlyField(source="cancellation_policy.name")

    class Meta:
        model = Listing
        fields = [
            "id",
            "owner",
            "owner_username",
            "title",
            "description",
            "currency",
            "is_active",
            "pricing_mode",
            "base_price",
            "hourly_price",
            "daily_price",
            "weekly_price",
            "monthly_price",
            "weekly_discount",
            "monthly_discount",
            "requires_deposit",
            "deposit_type",
            "deposit_amount",
            "insurance_type",
            "insurance_amount",
            "cancellation_policy_name",
            "created_at",
        ]
        read_only_fields = fields


class QuoteRequestSerializer(serializers.Serializer):
    start_at = serializers.DateTimeField()
    end_at = serializers.DateTimeField()
    promo_code = serializers.CharField(required=False, allow_blank=True, max_length=40)
    wants_insurance = serializers.BooleanField(required=False, default=False)
