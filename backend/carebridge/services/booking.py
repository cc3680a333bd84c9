"""
Marketplace bookings and their life cycle.

    PENDING_ACCEPTANCE -> CONFIRMED -> (IN_PROGRESS) -> COMPLETED
    PENDING_ACCEPTANCE -> REJECTED
    PENDING_ACCEPTANCE | CONFIRMED -> CANCELLED_BY_PATIENT | CANCELLED_BY_THERAPIST

Slot availability is re-validated against live bookings at insert time.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.marketplace import (
    Booking, BookingStatus, LIVE_BOOKING_STATUSES, Organization, SessionType, TherapistProfile,
)
from ..models.user import User
from .availability import get_zone
from .cache import get_cache
from .therapists import TherapistService


logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (BookingStatus.PENDING_ACCEPTANCE, BookingStatus.CONFIRMED)
COMPLETABLE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)

# Tightest window first; minutes before start
REMINDER_WINDOWS = (("15m", 15), ("1h", 60), ("24h", 24 * 60))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingService:
    def __init__(self, db: Session):
        self.db = db
        self.cache = get_cache()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get(self, booking_id: UUID) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def _is_therapist(booking: Booking, user: User) -> bool:
        return booking.therapist is not None and booking.therapist.user_id == user.id

    def _commission_for(self, therapist: TherapistProfile) -> float:
        """Therapist rate, then organization rate, then the platform rate."""
        if therapist.commission_percentage is not None:
            return therapist.commission_percentage
        if therapist.organization_id:
            organization = self.db.query(Organization).filter(Organization.id == therapist.organization_id).first()
            if organization and organization.commission_percentage is not None:
                return organization.commission_percentage
        return settings.platform_commission_percentage

    def _has_conflict(self, therapist_id: UUID, start: datetime, end: datetime) -> bool:
        """A live booking is busy from its start until its end plus the buffer, as in slot listing."""
        buffer = timedelta(minutes=settings.booking_buffer_minutes)
        candidates = (
            self.db.query(Booking)
            .filter(
                Booking.therapist_id == therapist_id,
                Booking.status.in_(LIVE_BOOKING_STATUSES),
                Booking.start_time < end,
            )
            .all()
        )
        return any(start < b.end_time + buffer for b in candidates)

    @staticmethod
    def _notify(user_id: UUID, title: str, body: str, data: dict[str, Any]) -> None:
        try:
            from ..tasks.notification_tasks import send_push_notification

            send_push_notification.delay(str(user_id), title, body, data)
        except Exception as e:
            logger.error(f"Failed to queue push notification: {e}")

    # =========================================================================
    # Create
    # =========================================================================

    def create_booking(
        self,
        patient: User,
        therapist_id: UUID,
        session_type_id: UUID,
        start_time: datetime,
        tz: str = "UTC",
        patient_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        now = now or utcnow()
        therapist = self.db.query(TherapistProfile).filter(TherapistProfile.id == therapist_id).first()
        if not therapist or not therapist.is_active or not therapist.accepting_bookings:
            raise BadRequestError("Therapist is not available for bookings")

        session_type = self.db.query(SessionType).filter(SessionType.id == session_type_id).first()
        if not session_type or not session_type.is_active:
            raise BadRequestError("Session type not found or inactive")

        get_zone(tz)
        start = _as_utc(start_time)
        end = start + timedelta(minutes=session_type.duration)

        if start < now + timedelta(hours=settings.booking_min_notice_hours):
            raise BadRequestError(
                f"Bookings must be made at least {settings.booking_min_notice_hours} hours in advance"
            )

        if self._has_conflict(therapist.id, start, end):
            raise BadRequestError("This time slot is no longer available")

        price, currency = TherapistService(self.db).price_for(therapist.id, session_type)
        commission = self._commission_for(therapist)
        platform_fee = round(price * commission / 100, 2)

        booking = Booking(
            patient_id=patient.id,
            therapist_id=therapist.id,
            session_type_id=session_type.id,
            organization_id=therapist.organization_id,
            start_time=start,
            end_time=end,
            timezone=tz,
            duration=session_type.duration,
            status=BookingStatus.PENDING_ACCEPTANCE,
            subtotal=price,
            platform_fee=platform_fee,
            platform_fee_percentage=commission,
            therapist_amount=round(price - platform_fee, 2),
            currency=currency,
            patient_notes=patient_notes,
            acceptance_deadline=now + timedelta(hours=settings.booking_acceptance_hours),
            reminders_sent=[],
        )
        with transaction(self.db):
            self.db.add(booking)

        self.cache.invalidate_slots(therapist.id)
        logger.info(f"Booking {booking.id} created for therapist {therapist.id}")

        self._notify(
            therapist.user_id,
            "New booking request",
            f"{session_type.name} requested for {start.strftime('%Y-%m-%d %H:%M')} UTC",
            {"type": "booking_request", "booking_id": str(booking.id)},
        )
        return booking

    # =========================================================================
    # Transitions
    # =========================================================================

    def accept(self, user: User, booking_id: UUID, now: Optional[datetime] = None) -> Booking:
        now = now or utcnow()
        booking = self._get(booking_id)
        if not self._is_therapist(booking, user):
            raise BadRequestError("Unauthorized to accept this booking")
        if booking.status != BookingStatus.PENDING_ACCEPTANCE:
            raise BadRequestError("Booking is not in pending acceptance state")

        if booking.acceptance_deadline and booking.acceptance_deadline < now:
            self._auto_cancel(booking, "Therapist did not accept in time", now)
            raise BadRequestError("Acceptance deadline has passed")

        with transaction(self.db):
            booking.status = BookingStatus.CONFIRMED
            booking.therapist_accepted_at = now

        self.cache.invalidate_slots(booking.therapist_id)
        self._notify(
            booking.patient_id,
            "Booking confirmed",
            "Your therapist has accepted your booking.",
            {"type": "booking_confirmed", "booking_id": str(booking.id)},
        )
        return booking

    def reject(self, user: User, booking_id: UUID, reason: Optional[str] = None) -> Booking:
        booking = self._get(booking_id)
        if not self._is_therapist(booking, user):
            raise BadRequestError("Unauthorized to reject this booking")
        if booking.status != BookingStatus.PENDING_ACCEPTANCE:
            raise BadRequestError("Booking is not in pending acceptance state")

        with transaction(self.db):
            booking.status = BookingStatus.REJECTED
            booking.therapist_rejected_at = utcnow()
            booking.rejection_reason = reason

        self.cache.invalidate_slots(booking.therapist_id)
        self._notify(
            booking.patient_id,
            "Booking declined",
            reason or "Your therapist is unable to take this booking.",
            {"type": "booking_rejected", "booking_id": str(booking.id)},
        )
        return booking

    def cancel(self, user: User, booking_id: UUID, reason: Optional[str] = None) -> Booking:
        booking = self._get(booking_id)
        is_patient = booking.patient_id == user.id
        is_therapist = self._is_therapist(booking, user)
        if not is_patient and not is_therapist:
            raise BadRequestError("Unauthorized to cancel this booking")
        if booking.status not in CANCELLABLE_STATUSES:
            raise BadRequestError("Booking cannot be cancelled in current state")

        with transaction(self.db):
            booking.status = (
                BookingStatus.CANCELLED_BY_PATIENT if is_patient else BookingStatus.CANCELLED_BY_THERAPIST
            )
            booking.cancelled_at = utcnow()
            booking.cancellation_reason = reason

        self.cache.invalidate_slots(booking.therapist_id)
        other = booking.therapist.user_id if is_patient else booking.patient_id
        self._notify(
            other,
            "Booking cancelled",
            reason or "A booking has been cancelled.",
            {"type": "booking_cancelled", "booking_id": str(booking.id)},
        )
        return booking

    def complete(self, user: User, booking_id: UUID) -> Booking:
        booking = self._get(booking_id)
        if not self._is_therapist(booking, user):
            raise BadRequestError("Unauthorized")
        if booking.status not in COMPLETABLE_STATUSES:
            raise BadRequestError("Only confirmed sessions can be completed")

        with transaction(self.db):
            booking.status = BookingStatus.COMPLETED
            booking.completed_at = utcnow()

        self.cache.invalidate_slots(booking.therapist_id)
        return booking

    def _auto_cancel(self, booking: Booking, reason: str, now: datetime) -> None:
        with transaction(self.db):
            booking.status = BookingStatus.CANCELLED_BY_PATIENT
            booking.cancelled_at = now
            booking.cancellation_reason = reason
        self.cache.invalidate_slots(booking.therapist_id)
        logger.info(f"Booking {booking.id} auto-cancelled: {reason}")

    def expire_pending(self, now: Optional[datetime] = None) -> int:
        """Cancel PENDING_ACCEPTANCE bookings whose acceptance deadline passed."""
        now = now or utcnow()
        expired = (
            self.db.query(Booking)
            .filter(
                Booking.status == BookingStatus.PENDING_ACCEPTANCE,
                Booking.acceptance_deadline.isnot(None),
                Booking.acceptance_deadline < now,
            )
            .all()
        )
        for booking in expired:
            self._auto_cancel(booking, "Therapist did not accept in time", now)
            self._notify(
                booking.patient_id,
                "Booking expired",
                "Your booking request was not accepted in time.",
                {"type": "booking_expired", "booking_id": str(booking.id)},
            )
        return len(expired)

    def send_due_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Push reminders for CONFIRMED bookings entering the 24h, 1h or 15m window.

        Only the tightest due window is sent, and every wider window is
        marked sent along with it.
        """
        now = now or utcnow()
        horizon = now + timedelta(minutes=REMINDER_WINDOWS[-1][1])
        upcoming = (
            self.db.query(Booking)
            .filter(
                Booking.status == BookingStatus.CONFIRMED,
                Booking.start_time > now,
                Booking.start_time <= horizon,
            )
            .all()
        )

        sent = 0
        for booking in upcoming:
            minutes_left = (booking.start_time - now).total_seconds() / 60
            keys = [key for key, minutes in REMINDER_WINDOWS if minutes_left <= minutes]
            already = set(booking.reminders_sent or [])
            if not keys or keys[0] in already:
                continue

            with transaction(self.db):
                booking.reminders_sent = sorted(already.union(keys))

            body = f"Your session starts in {keys[0]}."
            data = {"type": "booking_reminder", "booking_id": str(booking.id), "window": keys[0]}
            self._notify(booking.patient_id, "Upcoming session", body, data)
            if booking.therapist is not None:
                self._notify(booking.therapist.user_id, "Upcoming session", body, data)
            sent += 1

        if sent:
            logger.info(f"Sent reminders for {sent} bookings")
        return sent

    # =========================================================================
    # Queries
    # =========================================================================

    def get_booking(self, user: User, booking_id: UUID) -> Booking:
        booking = self._get(booking_id)
        if booking.patient_id != user.id and not self._is_therapist(booking, user):
            raise BadRequestError("Unauthorized to view this booking")
        return booking

    def list_mine(self, user: User, role: str = "patient", status: Optional[str] = None) -> list[Booking]:
        query = self.db.query(Booking)
        if role == "therapist":
            profile = user.therapist_profile
            if profile is None:
                return []
            query = query.filter(Booking.therapist_id == profile.id)
        else:
            query = query.filter(Booking.patient_id == user.id)

        if status:
            statuses = [BookingStatus(s.strip()) for s in status.split(",") if s.strip()]
            query = query.filter(or_(*[Booking.status == s for s in statuses]))

        return query.order_by(Booking.start_time.desc()).all()
