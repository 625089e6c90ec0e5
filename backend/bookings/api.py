"""API viewsets and permissions for bookings."""

from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.http import booking_error_response
from payments_cancellation_policy import compute_refund

from .domain import create_booking
from .exceptions import BookingError, TransitionForbidden
from .filters import BookingFilter
from .models import ActorRole, Booking
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingStateHistorySerializer,
    TransitionRequestSerializer,
)
from .state_machine import get_available_transitions, get_state_machine, is_terminal_state


class IsBookingParticipant(permissions.BasePermission):
    """Allow access only to users tied to the booking, plus staff."""

    def has_permission(self, request, view) -> bool:
        return True

    def has_object_permission(self, request, view, obj: Booking) -> bool:
        user = request.user
        if user.is_staff:
            return True
        return user.id in (obj.listing.owner_id, obj.renter_id)


def resolve_actor_role(user, booking: Booking, requested: str | None = None) -> str:
    """
    Pick the role a user acts under for ``booking``.

    An explicit ``requested`` role is honoured (identity is verified later by the
    state machine) except ADMIN, which needs a staff account.
    """
    if requested:
        if requested not in (ActorRole.RENTER, ActorRole.OWNER, ActorRole.ADMIN):
            raise TransitionForbidden(f"Role {requested} cannot be used here")
        if requested == ActorRole.ADMIN and not user.is_staff:
            raise TransitionForbidden("Only staff can act as ADMIN")
        return requested
    if booking.renter_id == user.id:
        return ActorRole.RENTER
    if booking.listing.owner_id == user.id:
        return ActorRole.OWNER
    if user.is_staff:
        return ActorRole.ADMIN
    raise TransitionForbidden("Not a participant of this booking")


class BookingViewSet(viewsets.ModelViewSet):
    """Booking creation, reads and lifecycle transitions."""

    serializer_class = BookingSerializer
    permission_classes = (permissions.IsAuthenticated, IsBookingParticipant)
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = BookingFilter
    ordering_fields = ["created_at", "start_at", "status_changed_at"]
    http_method_names = ["get", "post", "head", "options"]

    def get_queryset(self):
        """Restrict bookings to the authenticated participant."""
        user = self.request.user
        qs = Booking.objects.select_related("listing", "listing__owner", "renter")
        if not user.is_staff:
            qs = qs.filter(Q(renter=user) | Q(listing__owner=user))
        return qs.order_by("-created_at")

    def get_object(self):
        """Fetch a single booking and enforce participant permissions."""
        obj = get_object_or_404(
            Booking.objects.select_related("listing", "listing__owner", "renter"),
            pk=self.kwargs["pk"],
        )
        self.check_object_permissions(self.request, obj)
        return obj

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            booking = create_booking(
                data["listing"],
                request.user,
                data["start_at"],
                data["end_at"],
                promo_code=data.get("promo_code"),
                wants_insurance=data.get("wants_insurance", False),
            )
        except (BookingError, ValidationError) as exc:
            return booking_error_response(exc)
        return Response(BookingSerializer(booking).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def transition(self, request, *args, **kwargs):
        """Fire a lifecycle transition on behalf of the current user."""
        booking = self.get_object()
        serializer = TransitionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            role = resolve_actor_role(request.user, booking, data.get("role"))
            result = get_state_machine().transition(
                booking.pk,
                data["transition"],
                request.user.id,
                role,
                data.get("metadata") or {},
            )
        except (BookingError, ValidationError) as exc:
            return booking_error_response(exc)

        booking.refresh_from_db()
        return Response(
            {
                "success": result.success,
                "previous_status": result.previous_status,
                "new_status": result.new_status,
                "message": result.message,
                "booking": BookingSerializer(booking).data,
            },
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["get"])
    def history(self, request, *args, **kwargs):
        booking = self.get_object()
        entries = get_state_machine().get_state_history(booking.pk)
        return Response(BookingStateHistorySerializer(entries, many=True).data)

    @action(detail=True, methods=["get"], url_path="transitions")
    def available_transitions(self, request, *args, **kwargs):
        """Transitions the current user may fire from the booking's status."""
        booking = self.get_object()
        try:
            role = resolve_actor_role(request.user, booking, request.query_params.get("role"))
        except TransitionForbidden as exc:
            return booking_error_response(exc)
        return Response(
            {
                "status": booking.status,
                "role": role,
                "transitions": get_available_transitions(booking.status, role),
                "is_terminal": is_terminal_state(booking.status),
            }
        )

    @action(detail=True, methods=["get"], url_path="refund-quote")
    def refund_quote(self, request, *args, **kwargs):
        """Refund the booking would receive if cancelled now."""
        booking = self.get_object()
        refund = compute_refund(booking, timezone.now())
        return Response(refund.as_dict())
