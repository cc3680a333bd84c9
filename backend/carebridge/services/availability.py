"""
Therapist availability and bookable slot generation.

Recurring windows are stored as ``HH:MM`` wall-clock times in their own
timezone. Exceptions are interpreted in the therapist's default timezone.
Generated slots are UTC instants with a display string rendered in the
viewer's timezone.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..models.marketplace import (
    AvailabilityException, Booking, ExceptionType, LIVE_BOOKING_STATUSES,
    SessionType, TherapistAvailability, TherapistProfile,
)
from .cache import get_cache


logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


@dataclass
class Slot:
    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


def get_zone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        raise BadRequestError(f"Unknown timezone: {name}")


def parse_hhmm(value: str) -> time:
    if not value or not TIME_PATTERN.match(value):
        raise BadRequestError("Time must be in HH:mm format")
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def minutes_of(value: str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def local_instant(day: date, hhmm: str, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, parse_hhmm(hhmm), tzinfo=zone).astimezone(timezone.utc)


def format_display(start: datetime, end: datetime, zone: ZoneInfo) -> str:
    local_start = start.astimezone(zone)
    local_end = end.astimezone(zone)
    start_text = local_start.strftime("%I:%M %p").lstrip("0")
    end_text = local_end.strftime("%I:%M %p").lstrip("0")
    return f"{start_text} - {end_text} {local_end.strftime('%Z')}"


def generate_window(start: datetime, end: datetime, duration: int, buffer: int) -> list[Slot]:
    """Slots of ``duration`` minutes in ``[start, end]``, stepping by duration + buffer."""
    slots = []
    length = timedelta(minutes=duration)
    step = timedelta(minutes=duration + buffer)
    cursor = start
    while cursor + length <= end:
        slots.append(Slot(cursor, cursor + length))
        cursor += step
    return slots


class AvailabilityService:
    def __init__(self, db: Session):
        self.db = db
        self.cache = get_cache()

    # =========================================================================
    # Recurring Availability
    # =========================================================================

    def set_recurring(
        self,
        therapist: TherapistProfile,
        day: int,
        start_time: str,
        end_time: str,
        tz: Optional[str] = None,
    ) -> TherapistAvailability:
        if day < 0 or day > 6:
            raise BadRequestError("dayOfWeek must be between 0 (Sunday) and 6 (Saturday)")

        start_minutes = minutes_of(start_time)
        end_minutes = minutes_of(end_time)
        if start_minutes >= end_minutes:
            raise BadRequestError("Start time must be before end time")

        tz = tz or therapist.default_timezone
        get_zone(tz)

        existing = (
            self.db.query(TherapistAvailability)
            .filter(
                TherapistAvailability.therapist_id == therapist.id,
                TherapistAvailability.day_of_week == day,
                TherapistAvailability.is_active.is_(True),
            )
            .all()
        )
        for slot in existing:
            if start_minutes < minutes_of(slot.end_time) and end_minutes > minutes_of(slot.start_time):
                raise BadRequestError("Time slot overlaps with an existing slot")

        availability = TherapistAvailability(
            therapist_id=therapist.id,
            day_of_week=day,
            start_time=start_time,
            end_time=end_time,
            timezone=tz,
        )
        with transaction(self.db):
            self.db.add(availability)

        self.cache.invalidate_slots(therapist.id)
        return availability

    def delete_recurring(self, therapist: TherapistProfile, availability_id: UUID) -> TherapistAvailability:
        availability = self.db.query(TherapistAvailability).filter(TherapistAvailability.id == availability_id).first()
        if not availability or availability.therapist_id != therapist.id:
            raise NotFoundError("Availability not found")

        with transaction(self.db):
            availability.is_active = False

        self.cache.invalidate_slots(therapist.id)
        return availability

    # =========================================================================
    # Exceptions
    # =========================================================================

    def add_exception(
        self,
        therapist: TherapistProfile,
        day: date,
        exception_type: str,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> AvailabilityException:
        kind = ExceptionType(exception_type)
        if bool(start_time) != bool(end_time):
            raise BadRequestError("Provide both startTime and endTime, or neither")
        if start_time and minutes_of(start_time) >= minutes_of(end_time):
            raise BadRequestError("Start time must be before end time")
        if kind == ExceptionType.AVAILABLE and not start_time:
            raise BadRequestError("AVAILABLE exceptions require startTime and endTime")

        exception = AvailabilityException(
            therapist_id=therapist.id,
            date=day,
            type=kind,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
        )
        with transaction(self.db):
            self.db.add(exception)

        self.cache.invalidate_slots(therapist.id)
        return exception

    def delete_exception(self, therapist: TherapistProfile, exception_id: UUID) -> None:
        exception = self.db.query(AvailabilityException).filter(AvailabilityException.id == exception_id).first()
        if not exception or exception.therapist_id != therapist.id:
            raise NotFoundError("Exception not found")

        with transaction(self.db):
            self.db.delete(exception)

        self.cache.invalidate_slots(therapist.id)

    def get_all(self, therapist_id: UUID, today: Optional[date] = None) -> dict[str, list]:
        today = today or datetime.now(timezone.utc).date()
        recurring = (
            self.db.query(TherapistAvailability)
            .filter(TherapistAvailability.therapist_id == therapist_id, TherapistAvailability.is_active.is_(True))
            .order_by(TherapistAvailability.day_of_week.asc(), TherapistAvailability.start_time.asc())
            .all()
        )
        exceptions = (
            self.db.query(AvailabilityException)
            .filter(AvailabilityException.therapist_id == therapist_id, AvailabilityException.date >= today)
            .order_by(AvailabilityException.date.asc())
            .all()
        )
        return {"recurring": recurring, "exceptions": exceptions}

    # =========================================================================
    # Slots
    # =========================================================================

    def available_slots(
        self,
        therapist_id: UUID,
        day: date,
        session_type_id: UUID,
        viewer_timezone: str = "UTC",
    ) -> list[dict[str, Any]]:
        therapist = self.db.query(TherapistProfile).filter(TherapistProfile.id == therapist_id).first()
        if not therapist:
            raise NotFoundError("Therapist not found")
        session_type = self.db.query(SessionType).filter(SessionType.id == session_type_id).first()
        if not session_type:
            raise NotFoundError("Session type not found")
        viewer_zone = get_zone(viewer_timezone)

        def compute() -> list[dict[str, Any]]:
            slots = self._compute_slots(therapist, day, session_type.duration)
            return [
                {
                    "start_time": slot.start.isoformat(),
                    "end_time": slot.end.isoformat(),
                    "available": True,
                    "display_time": format_display(slot.start, slot.end, viewer_zone),
                }
                for slot in slots
            ]

        key = self.cache.slots_key(therapist_id, day.isoformat(), session_type_id, viewer_timezone)
        return self.cache.get_or_compute(key, compute, ttl=settings.cache_ttl_slots)

    def _compute_slots(self, therapist: TherapistProfile, day: date, duration: int) -> list[Slot]:
        buffer = settings.booking_buffer_minutes
        therapist_zone = get_zone(therapist.default_timezone)

        windows = (
            self.db.query(TherapistAvailability)
            .filter(
                TherapistAvailability.therapist_id == therapist.id,
                TherapistAvailability.day_of_week == day_of_week(day),
                TherapistAvailability.is_active.is_(True),
            )
            .order_by(TherapistAvailability.start_time.asc())
            .all()
        )
        exceptions = (
            self.db.query(AvailabilityException)
            .filter(AvailabilityException.therapist_id == therapist.id, AvailabilityException.date == day)
            .all()
        )

        day_start = datetime.combine(day, time(0, 0), tzinfo=timezone.utc)
        bookings = (
            self.db.query(Booking)
            .filter(
                Booking.therapist_id == therapist.id,
                Booking.status.in_(LIVE_BOOKING_STATUSES),
                Booking.start_time < day_start + timedelta(days=2),
                Booking.end_time > day_start - timedelta(days=1),
            )
            .all()
        )
        busy = [(b.start_time, b.end_time + timedelta(minutes=buffer)) for b in bookings]

        blocked_all_day = False
        blocked = []
        for exc in exceptions:
            if exc.type != ExceptionType.BLOCKED:
                continue
            if not exc.start_time or not exc.end_time:
                blocked_all_day = True
            else:
                blocked.append((
                    local_instant(day, exc.start_time, therapist_zone),
                    local_instant(day, exc.end_time, therapist_zone),
                ))

        def is_free(slot: Slot) -> bool:
            return not any(slot.overlaps(s, e) for s, e in busy)

        result: list[Slot] = []
        if not blocked_all_day:
            for window in windows:
                zone = get_zone(window.timezone)
                for slot in generate_window(
                    local_instant(day, window.start_time, zone),
                    local_instant(day, window.end_time, zone),
                    duration,
                    buffer,
                ):
                    if any(slot.overlaps(s, e) for s, e in blocked):
                        continue
                    if is_free(slot):
                        result.append(slot)

        starts = {slot.start for slot in result}
        for exc in exceptions:
            if exc.type != ExceptionType.AVAILABLE or not exc.start_time or not exc.end_time:
                continue
            for slot in generate_window(
                local_instant(day, exc.start_time, therapist_zone),
                local_instant(day, exc.end_time, therapist_zone),
                duration,
                buffer,
            ):
                if slot.start not in starts and is_free(slot):
                    result.append(slot)
                    starts.add(slot.start)

        result.sort(key=lambda s: s.start)
        logger.debug(f"{len(result)} slots for therapist {therapist.id} on {day}")
        return result
