"""
Therapy session records and per-goal progress entries.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Integer, Float, Text, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class SessionNoteFormat(str, enum.Enum):
    SOAP = "SOAP"
    DAP = "DAP"
    NARRATIVE = "NARRATIVE"


class NoteStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SIGNED = "SIGNED"


# =============================================================================
# CaseSession Model
# =============================================================================


class CaseSession(Base):
    """
    One delivered (or scheduled) session on a case.

    ``therapist_id`` is the user who recorded the session. Once
    ``note_status`` is SIGNED the note is read-only.
    """

    __tablename__ = "case_sessions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id", ondelete="SET NULL"), unique=True, nullable=True)

    scheduled_at = Column(UTCDateTime(), nullable=False, index=True)
    session_type = Column(String(100), nullable=True)
    location = Column(String(200), nullable=True)
    actual_duration = Column(Integer, nullable=True)  # minutes
    attendance_status = Column(
        SQLEnum(AttendanceStatus, name="attendance_status", values_callable=enum_values),
        nullable=False,
        default=AttendanceStatus.PRESENT,
    )

    raw_notes = Column(Text, nullable=True)
    note_format = Column(
        SQLEnum(SessionNoteFormat, name="session_note_format", values_callable=enum_values),
        nullable=False,
        default=SessionNoteFormat.SOAP,
    )
    structured_notes = Column(JSONType(), nullable=True)
    ai_summary = Column(Text, nullable=True)
    note_status = Column(
        SQLEnum(NoteStatus, name="note_status", values_callable=enum_values),
        nullable=False,
        default=NoteStatus.DRAFT,
    )
    signed_at = Column(UTCDateTime(), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="sessions")
    therapist = relationship("User")
    booking = relationship("Booking")
    goal_progress = relationship("SessionGoalProgress", back_populates="session", cascade="all, delete-orphan")
    billing = relationship("CaseBilling", back_populates="session", uselist=False)


# =============================================================================
# SessionGoalProgress Model
# =============================================================================


class SessionGoalProgress(Base):
    __tablename__ = "session_goal_progress"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("case_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    goal_id = Column(Uuid(as_uuid=True), ForeignKey("iep_goals.id", ondelete="CASCADE"), nullable=False, index=True)
    progress_note = Column(Text, nullable=True)
    progress_value = Column(Float, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    session = relationship("CaseSession", back_populates="goal_progress")
    goal = relationship("IEPGoal")

    __table_args__ = (
        UniqueConstraint("session_id", "goal_id", name="uq_session_goal_progress"),
    )
