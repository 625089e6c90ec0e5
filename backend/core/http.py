"""Translate booking domain errors into DRF responses."""

from __future__ import annotations

from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.response import Response

from bookings.exceptions import (
    BookingError,
    InvalidTransition,
    NotFoundError,
    TransitionConflict,
    TransitionForbidden,
)


def validation_error_response(exc: ValidationError) -> Response:
    detail = getattr(exc, "message_dict", None) or {"non_field_errors": exc.messages}
    return Response(detail, status=status.HTTP_400_BAD_REQUEST)


def booking_error_response(exc: BookingError | ValidationError) -> Response:
    """Map the error taxonomy onto HTTP status codes (404/409/403/400)."""
    if isinstance(exc, ValidationError):
        return validation_error_response(exc)
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, TransitionForbidden):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, InvalidTransition):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    body = {"detail": str(exc)}
    if isinstance(exc, TransitionConflict):
        body["retryable"] = True
    return Response(body, status=code)
