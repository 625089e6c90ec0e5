from __future__ import annotations

import logging
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import EmailMultiAlternatives
from django.utils import timezone

from notifications.models import NotificationLog

logger = logging.getLogger(__name__)
User = get_user_model()

STATUS_WORDS = {
    "PENDING_OWNER_APPROVAL": "sent to the owner for approval",
    "PENDING_PAYMENT": "approved and is awaiting payment",
    "CONFIRMED": "confirmed",
    "IN_PROGRESS": "started",
    "AWAITING_RETURN_INSPECTION": "returned and is awaiting inspection",
    "COMPLETED": "completed",
    "SETTLED": "settled",
    "CANCELLED": "cancelled",
    "DISPUTED": "disputed",
    "REFUNDED": "refunded",
}


def _load_booking(booking_id: int):
    from bookings.models import Booking

    booking = (
        Booking.objects.select_related("listing", "listing__owner", "renter")
        .filter(pk=booking_id)
        .first()
    )
    if booking is None:
        logger.warning("notifications: booking %s no longer exists", booking_id)
    return booking


def _log_notification(
    channel: str,
    type_: str,
    status: str,
    *,
    user_id: int | None = None,
    booking_id: int | None = None,
    recipient: str | None = None,
    subject: str = "",
    error: str | None = None,
) -> None:
    try:
        NotificationLog.objects.create(
            channel=channel,
            type=type_,
            status=status,
            user_id=user_id,
            booking_id=booking_id,
            recipient=recipient or "",
            subject=subject[:200],
            error=error or "",
        )
    except Exception:
        logger.exception(
            "notifications: failed to persist notification log",
            extra={"channel": channel, "type": type_, "status": status},
        )


def _send_email_logged(
    type_: str,
    *,
    to_email: str | None,
    subject: str,
    body: str,
    user_id: int | None = None,
    booking_id: int | None = None,
) -> bool:
    if not to_email:
        _log_notification(
            NotificationLog.Channel.EMAIL,
            type_,
            NotificationLog.Status.FAILED,
            user_id=user_id,
            booking_id=booking_id,
            subject=subject,
            error="missing recipient email",
        )
        logger.warning("notifications: cannot send email without recipient")
        return False

    message = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to_email],
    )
    try:
        message.send(fail_silently=False)
    except Exception as exc:
        logger.exception(
            "notifications: email send failed",
            extra={"type": type_, "booking_id": booking_id, "user_id": user_id},
        )
        _log_notification(
            NotificationLog.Channel.EMAIL,
            type_,
            NotificationLog.Status.FAILED,
            user_id=user_id,
            booking_id=booking_id,
            recipient=to_email,
            subject=subject,
            error=str(exc) or exc.__class__.__name__,
        )
        return False

    _log_notification(
        NotificationLog.Channel.EMAIL,
        type_,
        NotificationLog.Status.SENT,
        user_id=user_id,
        booking_id=booking_id,
        recipient=to_email,
        subject=subject,
    )
    return True


def _display_name(user: Optional[User]) -> str:
    if not user:
        return "Unknown"
    full_name = (user.get_full_name() or "").strip()
    return full_name or user.get_username() or str(user)


def _format_instant(value) -> str:
    if not value:
        return "N/A"
    return timezone.localtime(value).strftime("%b %d, %Y %H:%M")


@shared_task(queue="emails")
def send_booking_status_update(booking_id: int, new_status: str):
    """Tell the renter and the owner that a booking moved to ``new_status``."""
    booking = _load_booking(booking_id)
    if booking is None:
        return

    site_name = getattr(settings, "SITE_NAME", "Rentals")
    listing_title = getattr(booking.listing, "title", "your listing")
    status_word = STATUS_WORDS.get(new_status, "updated")
    period = f"{_format_instant(booking.start_at)} - {_format_instant(booking.end_at)}"
    owner = booking.listing.owner

    for recipient in (booking.renter, owner):
        body = (
            f"Hi {_display_name(recipient)},\n\n"
            f"Booking #{booking.pk} for {listing_title} ({period}) was {status_word}.\n"
            f"Total: {booking.total_amount} {booking.currency}\n\n"
            f"- {site_name}"
        )
        _send_email_logged(
            "booking_status_update",
            to_email=getattr(recipient, "email", None),
            subject=f"Your booking for {listing_title} was {status_word}",
            body=body,
            user_id=getattr(recipient, "id", None),
            booking_id=booking_id,
        )


@shared_task(queue="emails")
def send_pre_rental_reminder(booking_id: int):
    """Remind the renter that their rental is about to start."""
    from bookings.models import Booking

    booking = _load_booking(booking_id)
    if booking is None:
        return
    if booking.status != Booking.Status.CONFIRMED:
        logger.info(
            "notifications: skip reminder for booking %s in %s", booking_id, booking.status
        )
        return

    listing_title = getattr(booking.listing, "title", "your listing")
    renter = booking.renter
    body = (
        f"Hi {_display_name(renter)},\n\n"
        f"Your rental of {listing_title} starts {_format_instant(booking.start_at)}.\n"
        f"Please coordinate pickup with {_display_name(booking.listing.owner)}."
    )
    _send_email_logged(
        "pre_rental_reminder",
        to_email=getattr(renter, "email", None),
        subject=f"Reminder: your rental of {listing_title} starts soon",
        body=body,
        user_id=renter.id,
        booking_id=booking_id,
    )


@shared_task(queue="emails")
def notify_admins_booking_disputed(booking_id: int) -> int:
    """Email every active staff user about a disputed booking. Returns emails sent."""
    booking = _load_booking(booking_id)
    if booking is None:
        return 0

    admins = User.objects.filter(is_staff=True, is_active=True).exclude(email="")
    if not admins.exists():
        logger.warning("notifications: no staff recipients for dispute on booking %s", booking_id)
        return 0

    listing_title = getattr(booking.listing, "title", "listing")
    body = (
        f"Booking #{booking.pk} for {listing_title} is now disputed.\n"
        f"Renter: {_display_name(booking.renter)}\n"
        f"Owner: {_display_name(booking.listing.owner)}\n"
        f"Total: {booking.total_amount} {booking.currency}"
    )
    sent = 0
    for admin in admins:
        if _send_email_logged(
            "booking_disputed_admin",
            to_email=admin.email,
            subject=f"Dispute opened on booking #{booking.pk}",
            body=body,
            user_id=admin.id,
            booking_id=booking_id,
        ):
            sent += 1
    return sent
