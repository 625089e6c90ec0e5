"""Serializers for booking-related API endpoints."""

from __future__ import annotations

from rest_framework import serializers

from .models import ActorRole, Booking, BookingStateHistory, Transition


class BookingSerializer(serializers.ModelSerializer):
    """Read model of a booking and its price snapshot."""

    listing_title = serializers.ReadOnlyField(source="listing.title")
    owner = serializers.ReadOnlyField(source="listing.owner_id")
    status_label = serializers.CharField(source="get_status_display", read_only=True)
    is_terminal = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = (
            "id",
            "listing",
            "listing_title",
            "owner",
            "renter",
            "start_at",
            "end_at",
            "status",
            "status_label",
            "status_changed_at",
            "is_terminal",
            "currency",
            "base_price",
            "discount_total",
            "subtotal",
            "platform_fee",
            "service_fee",
            "deposit_amount",
            "insurance_fee",
            "total_amount",
            "owner_earnings",
            "totals",
            "promo_code",
            "wants_insurance",
            "refund",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_is_terminal(self, obj: Booking) -> bool:
        return obj.is_terminal()


class BookingCreateSerializer(serializers.Serializer):
    listing = serializers.IntegerField(min_value=1)
    start_at = serializers.DateTimeField()
    end_at = serializers.DateTimeField()
    promo_code = serializers.CharField(required=False, allow_blank=True, max_length=40)
    wants_insurance = serializers.BooleanField(required=False, default=False)


class TransitionRequestSerializer(serializers.Serializer):
    transition = serializers.ChoiceField(choices=Transition.choices)
    # SYSTEM is reserved for workers and cannot be claimed over HTTP.
    role = serializers.ChoiceField(
        choices=[ActorRole.RENTER, ActorRole.OWNER, ActorRole.ADMIN],
        required=False,
    )
    metadata = serializers.DictField(required=False, default=dict)


class BookingStateHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingStateHistory
        fields = ("id", "status", "transition", "actor_id", "actor_role", "metadata", "created_at")
        read_only_fields = fields
