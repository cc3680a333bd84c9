"""
Tests for the Celery tasks. Tasks run in-process against the test database.
"""

from datetime import date, timedelta

import pytest

from carebridge.core.config import settings
from carebridge.core.types import utcnow
from carebridge.models import BillingStatus, BookingStatus
from carebridge.services.booking import BookingService
from carebridge.services.case_access import resolve_case_access
from carebridge.services.case_billing import CaseBillingService
from carebridge.services.device_tokens import DeviceTokenService
from carebridge.services.push import PushDeliveryError, PushService
from carebridge.services.therapists import TherapistService
from carebridge.tasks import (
    deactivate_stale_device_tokens, expire_pending_bookings, mark_overdue_billing,
    send_booking_reminders, send_push_notification,
)
from carebridge.tasks.celery_app import celery_app, health_check


@pytest.fixture
def session_type(db):
    return TherapistService(db).create_session_type({"name": "OT session", "duration": 60, "default_price": 120.0})


class TestCeleryConfig:
    def test_beat_schedule_covers_housekeeping(self) -> None:
        tasks = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}
        assert tasks == {
            "carebridge.tasks.notification_tasks.send_booking_reminders",
            "carebridge.tasks.notification_tasks.expire_pending_bookings",
            "carebridge.tasks.notification_tasks.deactivate_stale_device_tokens",
            "carebridge.tasks.notification_tasks.mark_overdue_billing",
        }

    def test_push_is_routed_to_its_queue(self) -> None:
        route = celery_app.conf.task_routes["carebridge.tasks.notification_tasks.send_push_notification"]
        assert route["queue"] == "push"

    def test_worker_health_check_task(self) -> None:
        assert health_check.delay().get() == {"status": "healthy", "worker": True}


class TestTasks:
    def test_push_task_skips_when_disabled(self, db, parent) -> None:
        result = send_push_notification.delay(str(parent.id), "Hello", "World").get()
        assert result["skipped"] is True

    def test_push_task_retries_undelivered_dispatch(self, db, parent, monkeypatch) -> None:
        monkeypatch.setattr(settings, "push_enabled", True)
        DeviceTokenService(db).register(parent, "tok-1", "ios")
        attempts = []

        def failing_post(self, messages):
            attempts.append(messages)
            raise PushDeliveryError("Push API returned 503")

        monkeypatch.setattr(PushService, "_post", failing_post)

        with pytest.raises(PushDeliveryError):
            send_push_notification.delay(str(parent.id), "Hello", "World").get()
        assert len(attempts) == settings.celery_max_retries + 1

    def test_booking_reminders(self, db, parent, therapist, session_type) -> None:
        service = BookingService(db)
        earlier = utcnow() - timedelta(days=1)
        booking = service.create_booking(
            parent, therapist.therapist_profile.id, session_type.id, utcnow() + timedelta(minutes=30), now=earlier,
        )
        service.accept(therapist, booking.id, now=earlier)

        assert send_booking_reminders() == {"reminded": 1}
        db.refresh(booking)
        assert booking.reminders_sent == ["1h", "24h"]

    def test_expire_pending_bookings(self, db, parent, therapist, session_type) -> None:
        earlier = utcnow() - timedelta(hours=5)
        booking = BookingService(db).create_booking(
            parent, therapist.therapist_profile.id, session_type.id, utcnow() + timedelta(days=2), now=earlier,
        )

        assert expire_pending_bookings() == {"expired": 1}
        db.refresh(booking)
        assert booking.status == BookingStatus.CANCELLED_BY_PATIENT

    def test_deactivate_stale_device_tokens(self, db, parent) -> None:
        device = DeviceTokenService(db).register(parent, "tok-stale", "ios")
        device.last_used_at = utcnow() - timedelta(days=31)
        db.commit()

        assert deactivate_stale_device_tokens() == {"deactivated": 1}
        db.refresh(device)
        assert device.is_active is False

    def test_mark_overdue_billing(self, db, therapist, case) -> None:
        access = resolve_case_access(db, therapist, case.id, "edit")
        record = CaseBillingService(db).create_billing(access, {
            "amount": 75.0, "due_date": date.today() - timedelta(days=3),
        })

        assert mark_overdue_billing() == {"overdue": 1}
        db.refresh(record)
        assert record.status == BillingStatus.OVERDUE
