import logging
from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from bookings.models import Booking
from notifications import tasks
from notifications.models import NotificationLog

pytestmark = pytest.mark.django_db


def test_status_update_emails_both_parties(settings, booking_factory, renter_user, owner_user):
    settings.DEFAULT_FROM_EMAIL = "noreply@test.local"
    booking = booking_factory(status=Booking.Status.CONFIRMED)

    tasks.send_booking_status_update.run(booking.pk, Booking.Status.CONFIRMED)

    assert [message.to for message in mail.outbox] == [[renter_user.email], [owner_user.email]]
    assert mail.outbox[0].subject == f"Your booking for {booking.listing.title} was confirmed"
    assert mail.outbox[0].from_email == "noreply@test.local"
    assert str(booking.total_amount) in mail.outbox[0].body
    logs = NotificationLog.objects.filter(booking_id=booking.pk, type="booking_status_update")
    assert logs.count() == 2
    assert {log.status for log in logs} == {NotificationLog.Status.SENT}
    assert {log.recipient for log in logs} == {renter_user.email, owner_user.email}


def test_missing_recipient_is_logged_as_failure(booking_factory, renter_user):
    renter_user.email = ""
    renter_user.save()
    booking = booking_factory(status=Booking.Status.CANCELLED)

    tasks.send_booking_status_update.run(booking.pk, Booking.Status.CANCELLED)

    assert len(mail.outbox) == 1
    failed = NotificationLog.objects.get(user=renter_user)
    assert failed.status == NotificationLog.Status.FAILED
    assert failed.error == "missing recipient email"


def test_send_failure_is_logged(monkeypatch, booking_factory):
    booking = booking_factory()

    def boom(self, fail_silently=False):
        raise ConnectionError("smtp down")

    monkeypatch.setattr("notifications.tasks.EmailMultiAlternatives.send", boom)

    tasks.send_booking_status_update.run(booking.pk, Booking.Status.PENDING_OWNER_APPROVAL)

    errors = set(NotificationLog.objects.values_list("error", flat=True))
    assert errors == {"smtp down"}


def test_status_update_for_missing_booking(caplog):
    with caplog.at_level(logging.WARNING):
        tasks.send_booking_status_update.run(999999, Booking.Status.CONFIRMED)

    assert mail.outbox == []
    assert "no longer exists" in caplog.text


def test_pre_rental_reminder(booking_factory, renter_user):
    booking = booking_factory(
        status=Booking.Status.CONFIRMED, start_at=timezone.now() + timedelta(hours=20)
    )

    tasks.send_pre_rental_reminder.run(booking.pk)

    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == [renter_user.email]
    assert "starts soon" in mail.outbox[0].subject
    assert NotificationLog.objects.filter(type="pre_rental_reminder").count() == 1


def test_reminder_skipped_after_cancellation(booking_factory):
    booking = booking_factory(status=Booking.Status.CANCELLED)

    tasks.send_pre_rental_reminder.run(booking.pk)

    assert mail.outbox == []


def test_admins_notified_of_dispute(booking_factory, admin_user, django_user_model):
    django_user_model.objects.create_user(
        username="retired-admin", email="old@example.com", password="x", is_staff=True, is_active=False
    )
    booking = booking_factory(status=Booking.Status.DISPUTED)

    sent = tasks.notify_admins_booking_disputed.run(booking.pk)

    assert sent == 1
    assert mail.outbox[0].to == [admin_user.email]
    assert f"#{booking.pk}" in mail.outbox[0].subject


def test_dispute_without_staff(booking_factory, caplog):
    booking = booking_factory(status=Booking.Status.DISPUTED)

    with caplog.at_level(logging.WARNING):
        assert tasks.notify_admins_booking_disputed.run(booking.pk) == 0

    assert "no staff recipients" in caplog.text
