from __future__ import annotations

import django_filters as filters

from .models import Booking


class BookingFilter(filters.FilterSet):
    status = filters.CharFilter(field_name="status")
    role = filters.ChoiceFilter(
        method="filter_role",
        choices=(("renter", "Renter"), ("owner", "Owner")),
    )
    listing = filters.NumberFilter(field_name="listing_id")
    start_after = filters.IsoDateTimeFilter(field_name="start_at", lookup_expr="gte")
    start_before = filters.IsoDateTimeFilter(field_name="start_at", lookup_expr="lte")

    class Meta:
        model = Booking
        fields = ["status", "role", "listing"]

    def filter_role(self, queryset, name, value):
        user = getattr(self.request, "user", None)
        if user is None or not user.is_authenticated:
            return queryset.none()
        if value == "renter":
            return queryset.filter(renter=user)
        return queryset.filter(listing__owner=user)
