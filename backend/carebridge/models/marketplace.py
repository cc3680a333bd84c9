"""
Therapist marketplace models: directory profiles, session types, recurring
availability, bookings, and post-session ratings.
"""

import enum
import uuid

from sqlalchemy import (
    Column, Uuid, String, Integer, Float, Boolean, Date, Text, ForeignKey,
    CheckConstraint, UniqueConstraint, Index, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class ExceptionType(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    BLOCKED = "BLOCKED"


class BookingStatus(str, enum.Enum):
    PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED_BY_PATIENT = "CANCELLED_BY_PATIENT"
    CANCELLED_BY_THERAPIST = "CANCELLED_BY_THERAPIST"


# Bookings in these states occupy the therapist's calendar.
LIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING_ACCEPTANCE,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
)


class RaterType(str, enum.Enum):
    PATIENT = "PATIENT"
    THERAPIST = "THERAPIST"


# =============================================================================
# Organization Model
# =============================================================================


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    commission_percentage = Column(Float, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    therapists = relationship("TherapistProfile", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name})>"


# =============================================================================
# TherapistProfile Model
# =============================================================================


class TherapistProfile(Base):
    """
    Public-facing therapist record.

    Cases, case therapist assignments, availability and bookings reference
    this row's id rather than the owning user's id.
    """

    __tablename__ = "therapist_profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(200), nullable=True)
    bio = Column(Text, nullable=True)
    specialties = Column(JSONType(), nullable=False, default=list)
    credentials = Column(JSONType(), nullable=False, default=list)
    years_experience = Column(Integer, nullable=True)
    default_timezone = Column(String(64), nullable=False, default="UTC")

    is_active = Column(Boolean, nullable=False, default=True)
    accepting_bookings = Column(Boolean, nullable=False, default=True)
    commission_percentage = Column(Float, nullable=True)

    average_rating = Column(Float, nullable=False, default=0.0)
    total_ratings = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="therapist_profile")
    organization = relationship("Organization", back_populates="therapists")
    availability = relationship("TherapistAvailability", back_populates="therapist", cascade="all, delete-orphan")
    exceptions = relationship("AvailabilityException", back_populates="therapist", cascade="all, delete-orphan")
    pricing = relationship("SessionPricing", back_populates="therapist", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<TherapistProfile(id={self.id}, user_id={self.user_id})>"


# =============================================================================
# Session Types & Pricing
# =============================================================================


class SessionType(Base):
    __tablename__ = "session_types"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # minutes
    default_price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_session_type_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<SessionType(id={self.id}, name={self.name}, duration={self.duration})>"


class SessionPricing(Base):
    __tablename__ = "session_pricing"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id", ondelete="CASCADE"), nullable=False)
    session_type_id = Column(Uuid(as_uuid=True), ForeignKey("session_types.id", ondelete="CASCADE"), nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    therapist = relationship("TherapistProfile", back_populates="pricing")
    session_type = relationship("SessionType")

    __table_args__ = (
        UniqueConstraint("therapist_id", "session_type_id", name="uq_session_pricing_therapist_type"),
    )


# =============================================================================
# Availability
# =============================================================================


class TherapistAvailability(Base):
    """Weekly recurring window. Times are ``HH:MM`` in ``timezone``."""

    __tablename__ = "therapist_availability"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    therapist = relationship("TherapistProfile", back_populates="availability")

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_of_week"),
    )


class AvailabilityException(Base):
    __tablename__ = "availability_exceptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    type = Column(SQLEnum(ExceptionType, name="exception_type", values_callable=enum_values), nullable=False)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    therapist = relationship("TherapistProfile", back_populates="exceptions")


# =============================================================================
# Booking Model
# =============================================================================


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id", ondelete="CASCADE"), nullable=False)
    session_type_id = Column(Uuid(as_uuid=True), ForeignKey("session_types.id"), nullable=False)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)

    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    duration = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(BookingStatus, name="booking_status", values_callable=enum_values),
        nullable=False,
        default=BookingStatus.PENDING_ACCEPTANCE,
    )

    # Pricing snapshot at booking time
    subtotal = Column(Float, nullable=False)
    platform_fee = Column(Float, nullable=False)
    platform_fee_percentage = Column(Float, nullable=False)
    therapist_amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    patient_notes = Column(Text, nullable=True)

    acceptance_deadline = Column(UTCDateTime(), nullable=True)
    therapist_accepted_at = Column(UTCDateTime(), nullable=True)
    therapist_rejected_at = Column(UTCDateTime(), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)

    # Reminder bookkeeping keyed by window name ("24h", "1h", "15m")
    reminders_sent = Column(JSONType(), nullable=False, default=list)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    patient = relationship("User", foreign_keys=[patient_id])
    therapist = relationship("TherapistProfile", foreign_keys=[therapist_id])
    session_type = relationship("SessionType")
    ratings = relationship("SessionRating", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_bookings_therapist_start", "therapist_id", "start_time"),
        Index("ix_bookings_status_start", "status", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, status={self.status.value}, start={self.start_time})>"


# =============================================================================
# SessionRating Model
# =============================================================================


class SessionRating(Base):
    __tablename__ = "session_ratings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    rated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rater_type = Column(SQLEnum(RaterType, name="rater_type", values_callable=enum_values), nullable=False)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    review = Column(Text, nullable=True)
    professionalism_rating = Column(Integer, nullable=True)
    communication_rating = Column(Integer, nullable=True)
    helpfulness_rating = Column(Integer, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    booking = relationship("Booking", back_populates="ratings")
    rater = relationship("User")

    __table_args__ = (
        UniqueConstraint("booking_id", "rated_by", name="uq_session_rating_booking_rater"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_session_rating_range"),
    )
