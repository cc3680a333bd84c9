"""
Individualized Education Program models, reusable templates and the goal bank.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Integer, Float, Boolean, Date, Text, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class IEPStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    APPROVED = "APPROVED"
    ARCHIVED = "ARCHIVED"


class GoalStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    ACHIEVED = "ACHIEVED"
    DISCONTINUED = "DISCONTINUED"


# =============================================================================
# IEP Model
# =============================================================================


class IEP(Base):
    """
    Versioned plan attached to a case.

    A new version archives its predecessor and copies the goals forward;
    ``previous_version_id`` links the chain.
    """

    __tablename__ = "ieps"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    status = Column(SQLEnum(IEPStatus, name="iep_status", values_callable=enum_values), nullable=False, default=IEPStatus.DRAFT)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    template_id = Column(Uuid(as_uuid=True), ForeignKey("iep_templates.id", ondelete="SET NULL"), nullable=True)
    previous_version_id = Column(Uuid(as_uuid=True), ForeignKey("ieps.id", ondelete="SET NULL"), nullable=True)

    review_date = Column(Date, nullable=True)
    accommodations = Column(JSONType(), nullable=True)
    services_tracking = Column(JSONType(), nullable=True)
    meeting_notes = Column(JSONType(), nullable=True)

    approved_by_therapist_at = Column(UTCDateTime(), nullable=True)
    approved_by_parent_at = Column(UTCDateTime(), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="ieps")
    created_by = relationship("User")
    template = relationship("IEPTemplate", back_populates="ieps")
    goals = relationship("IEPGoal", back_populates="iep", cascade="all, delete-orphan", order_by="IEPGoal.order")

    __table_args__ = (
        Index("ix_ieps_case_version", "case_id", "version", unique=True),
    )

    def __repr__(self) -> str:
        return f"<IEP(id={self.id}, case={self.case_id}, version={self.version}, status={self.status.value})>"


class IEPGoal(Base):
    __tablename__ = "iep_goals"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    iep_id = Column(Uuid(as_uuid=True), ForeignKey("ieps.id", ondelete="CASCADE"), nullable=False, index=True)
    domain = Column(String(50), nullable=False)
    goal_text = Column(Text, nullable=False)
    target_date = Column(Date, nullable=True)
    baseline_screening_id = Column(String(100), nullable=True)
    linked_screening_indicators = Column(JSONType(), nullable=True)
    current_progress = Column(Float, nullable=False, default=0)
    status = Column(SQLEnum(GoalStatus, name="goal_status", values_callable=enum_values), nullable=False, default=GoalStatus.NOT_STARTED)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    iep = relationship("IEP", back_populates="goals")


# =============================================================================
# Templates & Goal Bank
# =============================================================================


class IEPTemplate(Base):
    __tablename__ = "iep_templates"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(JSONType(), nullable=False, default=dict)
    is_global = Column(Boolean, nullable=False, default=False)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    created_by = relationship("User")
    ieps = relationship("IEP", back_populates="template")


class GoalBankItem(Base):
    __tablename__ = "goal_bank_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    domain = Column(String(50), nullable=False, index=True)
    condition = Column(String(100), nullable=True)
    goal_text = Column(Text, nullable=False)
    is_global = Column(Boolean, nullable=False, default=False)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
