"""
Tests for therapist availability, slot generation, bookings and ratings.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from carebridge.core.exceptions import BadRequestError, ForbiddenError
from carebridge.models import BookingStatus, RaterType
from carebridge.services.availability import (
    AvailabilityService, day_of_week, format_display, generate_window, get_zone,
)
from carebridge.services.booking import BookingService
from carebridge.services.ratings import RatingService
from carebridge.services.therapists import TherapistService


DAY = date(2030, 6, 3)
BASE = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def session_type(db):
    return TherapistService(db).create_session_type({
        "name": "Speech session", "duration": 45, "default_price": 100.0,
    })


@pytest.fixture
def profile(therapist):
    return therapist.therapist_profile


@pytest.fixture
def morning(db, profile):
    AvailabilityService(db).set_recurring(profile, day_of_week(DAY), "09:00", "12:00", "UTC")


# ── Helpers ──────────────────────────────────────────────────────────────────


class TestSlotHelpers:
    def test_day_of_week_starts_on_sunday(self) -> None:
        assert day_of_week(date(2026, 10, 18)) == 0
        assert day_of_week(date(2026, 10, 24)) == 6

    def test_generate_window_steps_by_duration_plus_buffer(self) -> None:
        slots = generate_window(at(9), at(11), 45, 15)
        assert [s.start for s in slots] == [at(9), at(10)]
        assert slots[-1].end == at(10, 45)

    def test_format_display_in_viewer_zone(self) -> None:
        text = format_display(at(6), at(6, 45), get_zone("Africa/Nairobi"))
        assert text == "9:00 AM - 9:45 AM EAT"

    def test_unknown_zone_rejected(self) -> None:
        with pytest.raises(BadRequestError):
            get_zone("Mars/Olympus")


# ── Availability ─────────────────────────────────────────────────────────────


class TestAvailability:
    def test_recurring_validation(self, db, profile) -> None:
        service = AvailabilityService(db)
        with pytest.raises(BadRequestError):
            service.set_recurring(profile, 7, "09:00", "10:00")
        with pytest.raises(BadRequestError):
            service.set_recurring(profile, 1, "10:00", "09:00")
        with pytest.raises(BadRequestError):
            service.set_recurring(profile, 1, "9am", "10:00")

        service.set_recurring(profile, 1, "09:00", "12:00")
        with pytest.raises(BadRequestError):
            service.set_recurring(profile, 1, "11:00", "13:00")
        service.set_recurring(profile, 1, "12:00", "13:00")

    def test_exception_validation(self, db, profile) -> None:
        service = AvailabilityService(db)
        with pytest.raises(BadRequestError):
            service.add_exception(profile, DAY, "AVAILABLE")
        with pytest.raises(BadRequestError):
            service.add_exception(profile, DAY, "BLOCKED", "10:00")

    def test_slots_from_recurring_window(self, db, profile, session_type, morning) -> None:
        slots = AvailabilityService(db).available_slots(profile.id, DAY, session_type.id)
        assert [s["start_time"] for s in slots] == [
            at(9).isoformat(), at(10).isoformat(), at(11).isoformat(),
        ]
        assert slots[0]["display_time"] == "9:00 AM - 9:45 AM UTC"
        assert all(s["available"] for s in slots)

    def test_window_in_its_own_timezone(self, db, profile, session_type) -> None:
        service = AvailabilityService(db)
        service.set_recurring(profile, day_of_week(DAY), "09:00", "11:00", "Africa/Nairobi")

        slots = service.available_slots(profile.id, DAY, session_type.id, "Africa/Nairobi")
        assert [s["start_time"] for s in slots] == [at(6).isoformat(), at(7).isoformat()]
        assert slots[0]["display_time"] == "9:00 AM - 9:45 AM EAT"

    def test_blocked_all_day(self, db, profile, session_type, morning) -> None:
        service = AvailabilityService(db)
        service.add_exception(profile, DAY, "BLOCKED", reason="Conference")
        assert service.available_slots(profile.id, DAY, session_type.id) == []

    def test_partial_block_and_extra_window(self, db, profile, session_type, morning) -> None:
        service = AvailabilityService(db)
        service.add_exception(profile, DAY, "BLOCKED", "10:00", "10:30")
        service.add_exception(profile, DAY, "AVAILABLE", "14:00", "15:00")

        starts = [s["start_time"] for s in service.available_slots(profile.id, DAY, session_type.id)]
        assert starts == [at(9).isoformat(), at(11).isoformat(), at(14).isoformat()]

    def test_deleted_window_no_longer_offers_slots(self, db, profile, session_type) -> None:
        service = AvailabilityService(db)
        window = service.set_recurring(profile, day_of_week(DAY), "09:00", "10:00")
        service.delete_recurring(profile, window.id)
        assert service.available_slots(profile.id, DAY, session_type.id) == []

    def test_booked_slot_is_removed(self, db, parent, profile, session_type, morning) -> None:
        BookingService(db).create_booking(parent, profile.id, session_type.id, at(9), now=BASE)

        starts = [s["start_time"] for s in AvailabilityService(db).available_slots(profile.id, DAY, session_type.id)]
        assert starts == [at(10).isoformat(), at(11).isoformat()]


# ── Bookings ─────────────────────────────────────────────────────────────────


class TestBookings:
    def test_create_prices_and_deadline(self, db, parent, profile, session_type) -> None:
        booking = BookingService(db).create_booking(
            parent, profile.id, session_type.id, at(9), tz="Africa/Nairobi", now=BASE,
        )
        assert booking.status == BookingStatus.PENDING_ACCEPTANCE
        assert booking.end_time == at(9, 45)
        assert booking.subtotal == 100.0
        assert booking.platform_fee == 15.0
        assert booking.therapist_amount == 85.0
        assert booking.acceptance_deadline == BASE + timedelta(hours=4)

    def test_therapist_price_and_commission_override(self, db, parent, therapist, profile, session_type) -> None:
        TherapistService(db).set_price(therapist, session_type.id, 80.0)
        profile.commission_percentage = 10.0
        db.commit()

        booking = BookingService(db).create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        assert booking.subtotal == 80.0
        assert booking.platform_fee == 8.0
        assert booking.platform_fee_percentage == 10.0

    def test_minimum_notice(self, db, parent, profile, session_type) -> None:
        with pytest.raises(BadRequestError):
            BookingService(db).create_booking(
                parent, profile.id, session_type.id, BASE + timedelta(hours=11), now=BASE,
            )

    def test_conflict_includes_buffer(self, db, parent, make_user, profile, session_type) -> None:
        service = BookingService(db)
        service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)

        with pytest.raises(BadRequestError):
            service.create_booking(make_user(), profile.id, session_type.id, at(9, 30), now=BASE)
        service.create_booking(make_user(), profile.id, session_type.id, at(10), now=BASE)

    def test_listed_slot_just_before_a_booking_can_be_booked(self, db, parent, make_user, profile, morning) -> None:
        types = TherapistService(db)
        hour = types.create_session_type({"name": "Assessment", "duration": 60, "default_price": 150.0})
        short = types.create_session_type({"name": "Check-in", "duration": 30, "default_price": 40.0})
        service = BookingService(db)
        service.create_booking(parent, profile.id, hour.id, at(10, 15), now=BASE)

        starts = [s["start_time"] for s in AvailabilityService(db).available_slots(profile.id, DAY, short.id)]
        assert starts == [at(9).isoformat(), at(9, 45).isoformat()]

        booking = service.create_booking(make_user(), profile.id, short.id, at(9, 45), now=BASE)
        assert booking.end_time == at(10, 15)

    def test_not_accepting_bookings(self, db, parent, profile, session_type) -> None:
        profile.accepting_bookings = False
        db.commit()
        with pytest.raises(BadRequestError):
            BookingService(db).create_booking(parent, profile.id, session_type.id, at(9), now=BASE)

    def test_accept_then_complete(self, db, parent, therapist, profile, session_type) -> None:
        service = BookingService(db)
        booking = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)

        with pytest.raises(BadRequestError):
            service.accept(parent, booking.id, now=BASE)
        with pytest.raises(BadRequestError):
            service.complete(therapist, booking.id)

        service.accept(therapist, booking.id, now=BASE + timedelta(hours=1))
        assert booking.status == BookingStatus.CONFIRMED
        service.complete(therapist, booking.id)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.completed_at is not None

    def test_late_accept_auto_cancels(self, db, parent, therapist, profile, session_type) -> None:
        service = BookingService(db)
        booking = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)

        with pytest.raises(BadRequestError):
            service.accept(therapist, booking.id, now=BASE + timedelta(hours=5))
        assert booking.status == BookingStatus.CANCELLED_BY_PATIENT

    def test_reject_and_cancel(self, db, parent, therapist, profile, session_type) -> None:
        service = BookingService(db)
        rejected = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        service.reject(therapist, rejected.id, "Fully booked")
        assert rejected.status == BookingStatus.REJECTED
        assert rejected.rejection_reason == "Fully booked"

        cancelled = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        service.cancel(parent, cancelled.id)
        assert cancelled.status == BookingStatus.CANCELLED_BY_PATIENT
        with pytest.raises(BadRequestError):
            service.cancel(parent, cancelled.id)

        by_therapist = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        service.cancel(therapist, by_therapist.id, "Unwell")
        assert by_therapist.status == BookingStatus.CANCELLED_BY_THERAPIST

    def test_expire_pending(self, db, parent, profile, session_type) -> None:
        service = BookingService(db)
        booking = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)

        assert service.expire_pending(BASE + timedelta(hours=3)) == 0
        assert service.expire_pending(BASE + timedelta(hours=5)) == 1
        assert booking.status == BookingStatus.CANCELLED_BY_PATIENT

    def test_reminders_send_tightest_window_once(self, db, parent, therapist, profile, session_type) -> None:
        service = BookingService(db)
        booking = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        service.accept(therapist, booking.id, now=BASE)

        assert service.send_due_reminders(at(9) - timedelta(hours=30)) == 0
        assert service.send_due_reminders(at(8, 30)) == 1
        assert booking.reminders_sent == ["1h", "24h"]
        assert service.send_due_reminders(at(8, 35)) == 0

        assert service.send_due_reminders(at(8, 50)) == 1
        assert booking.reminders_sent == ["15m", "1h", "24h"]

    def test_list_mine_by_role_and_status(self, db, parent, therapist, profile, session_type) -> None:
        service = BookingService(db)
        first = service.create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        service.create_booking(parent, profile.id, session_type.id, at(11), now=BASE)
        service.accept(therapist, first.id, now=BASE)

        assert len(service.list_mine(parent)) == 2
        assert [b.id for b in service.list_mine(therapist, "therapist", "CONFIRMED,COMPLETED")] == [first.id]
        assert service.list_mine(parent, "therapist") == []


# ── Ratings ──────────────────────────────────────────────────────────────────


class TestRatings:
    @pytest.fixture
    def completed(self, db, parent, therapist, profile, session_type):
        service = BookingService(db)
        now = datetime.now(timezone.utc)
        booking = service.create_booking(
            parent, profile.id, session_type.id, now - timedelta(days=2), now=now - timedelta(days=3),
        )
        service.accept(therapist, booking.id, now=now - timedelta(days=3))
        service.complete(therapist, booking.id)
        return booking

    def test_patient_rating_updates_average(self, db, parent, therapist, profile, completed) -> None:
        service = RatingService(db)
        rating = service.submit(parent, completed.id, {"rating": 4, "review": "Very patient"})
        assert rating.rater_type == RaterType.PATIENT

        service.submit(therapist, completed.id, {"rating": 2})
        db.refresh(profile)
        assert profile.average_rating == 4.0
        assert profile.total_ratings == 1

        ratings = service.booking_ratings(parent, completed.id)
        assert ratings["patient_rating"].rating == 4
        assert ratings["therapist_rating"].rating == 2

        stats = service.therapist_stats(profile.id)
        assert stats["distribution"]["4"] == 1
        assert stats["total_ratings"] == 1

    def test_rating_rules(self, db, parent, make_user, profile, session_type, completed) -> None:
        service = RatingService(db)
        with pytest.raises(BadRequestError):
            service.submit(parent, completed.id, {"rating": 6})
        with pytest.raises(ForbiddenError):
            service.submit(make_user(), completed.id, {"rating": 5})

        service.submit(parent, completed.id, {"rating": 5})
        with pytest.raises(BadRequestError):
            service.submit(parent, completed.id, {"rating": 5})

        pending = BookingService(db).create_booking(parent, profile.id, session_type.id, at(9), now=BASE)
        with pytest.raises(BadRequestError):
            service.submit(parent, pending.id, {"rating": 5})

    def test_rating_window_expires(self, db, parent, completed) -> None:
        with pytest.raises(BadRequestError):
            RatingService(db).submit(
                parent, completed.id, {"rating": 5}, now=datetime.now(timezone.utc) + timedelta(days=40),
            )
