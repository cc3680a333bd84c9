"""
Developmental screening assessments.

A parent screens one child with the questionnaire for an age group. Tier 1
covers every domain; domains it flags get a Tier 2 follow-up. The parent
may share the result with therapists, who can read it and, with ANNOTATE
access, attach notes.
"""

import enum
import uuid

from sqlalchemy import (
    Column, Uuid, String, Integer, Float, Boolean, ForeignKey, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


class AssessmentStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    TIER1_COMPLETE = "TIER1_COMPLETE"
    TIER2_REQUIRED = "TIER2_REQUIRED"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"


class AnswerType(str, enum.Enum):
    YES = "YES"
    SOMETIMES = "SOMETIMES"
    NOT_SURE = "NOT_SURE"
    NO = "NO"


class AccessLevel(str, enum.Enum):
    VIEW = "VIEW"
    ANNOTATE = "ANNOTATE"


# =============================================================================
# Assessment Model
# =============================================================================


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    child_id = Column(Uuid(as_uuid=True), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    age_group = Column(String(30), nullable=False)

    status = Column(
        SQLEnum(AssessmentStatus, name="assessment_status", values_callable=enum_values),
        nullable=False,
        default=AssessmentStatus.IN_PROGRESS,
    )
    tier1_completed = Column(Boolean, nullable=False, default=False)
    tier2_completed = Column(Boolean, nullable=False, default=False)
    tier1_completed_at = Column(UTCDateTime(), nullable=True)
    tier2_completed_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    expires_at = Column(UTCDateTime(), nullable=True)

    # {domainId: {riskIndex, status, tier2Required, tier2Reason}}
    domain_scores = Column(JSONType(), nullable=True)
    flagged_domains = Column(JSONType(), nullable=False, default=list)
    overall_score = Column(Float, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    child = relationship("Child")
    responses = relationship(
        "AssessmentResponse",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentResponse.tier",
    )
    shares = relationship("AssessmentShare", back_populates="assessment", cascade="all, delete-orphan")

    @property
    def response_count(self) -> int:
        return len(self.responses)

    def __repr__(self) -> str:
        return f"<Assessment(id={self.id}, child_id={self.child_id}, status={self.status})>"


class AssessmentResponse(Base):
    __tablename__ = "assessment_responses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(
        Uuid(as_uuid=True), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    tier = Column(Integer, nullable=False)
    domain = Column(String(50), nullable=False)
    question_id = Column(String(50), nullable=False)
    answer = Column(SQLEnum(AnswerType, name="answer_type", values_callable=enum_values), nullable=False)
    score = Column(Float, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    assessment = relationship("Assessment", back_populates="responses")

    __table_args__ = (
        UniqueConstraint("assessment_id", "question_id", name="uq_assessment_responses_question"),
    )


# =============================================================================
# AssessmentShare Model
# =============================================================================


class AssessmentShare(Base):
    """
    A parent's grant of read access to one therapist user.

    Revoking deactivates the row; sharing again reactivates it.
    """

    __tablename__ = "assessment_shares"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id = Column(
        Uuid(as_uuid=True), ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    shared_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    shared_with_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    access_level = Column(
        SQLEnum(AccessLevel, name="assessment_access_level", values_callable=enum_values),
        nullable=False,
        default=AccessLevel.VIEW,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    # {"notes": [{id, notes, domain, question_id, section_id, metadata, created_at, created_by}]}
    annotations = Column(JSONType(), nullable=True)
    shared_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    assessment = relationship("Assessment", back_populates="shares")
    shared_by = relationship("User", foreign_keys=[shared_by_id])
    shared_with = relationship("User", foreign_keys=[shared_with_id])

    __table_args__ = (
        UniqueConstraint("assessment_id", "shared_with_id", name="uq_assessment_shares_recipient"),
    )
