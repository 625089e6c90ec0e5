from django.core.exceptions import ValidationError
from rest_framework import permissions, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from bookings.exceptions import NotFoundError
from core.http import booking_error_response

from .models import Listing
from .serializers import ListingSerializer, QuoteRequestSerializer
from .services import quote_listing_price


class ListingViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Listing.objects.filter(is_active=True).select_related("owner", "cancellation_policy")
    serializer_class = ListingSerializer
    permission_classes = [permissions.AllowAny]
    lookup_value_regex = r"\d+"

    @action(detail=True, methods=["post"])
    def quote(self, request, pk=None):
        """Price a prospective booking without creating it."""
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            breakdown = quote_listing_price(
                int(pk),
                data["start_at"],
                data["end_at"],
                promo_code=data.get("promo_code"),
                wants_insurance=data.get("wants_insurance", False),
            )
        except (NotFoundError, ValidationError) as exc:
            return booking_error_response(exc)
        return Response(breakdown.as_totals())
