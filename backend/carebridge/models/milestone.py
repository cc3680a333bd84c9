"""
Developmental milestone plans. Versioned per case like IEPs.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Integer, Boolean, Date, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, enum_values, utcnow


class MilestonePlanStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class MilestoneStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    EMERGING = "EMERGING"
    IN_PROGRESS = "IN_PROGRESS"
    ACHIEVED = "ACHIEVED"


class MilestonePlan(Base):
    __tablename__ = "milestone_plans"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    status = Column(
        SQLEnum(MilestonePlanStatus, name="milestone_plan_status", values_callable=enum_values),
        nullable=False,
        default=MilestonePlanStatus.DRAFT,
    )
    shared_with_parent = Column(Boolean, nullable=False, default=False)
    previous_version_id = Column(Uuid(as_uuid=True), ForeignKey("milestone_plans.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="milestone_plans")
    milestones = relationship(
        "Milestone",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="Milestone.order",
    )


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id = Column(Uuid(as_uuid=True), ForeignKey("milestone_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    domain = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    expected_age = Column(String(50), nullable=True)
    target_date = Column(Date, nullable=True)
    linked_screening_id = Column(String(100), nullable=True)
    status = Column(
        SQLEnum(MilestoneStatus, name="milestone_status", values_callable=enum_values),
        nullable=False,
        default=MilestoneStatus.NOT_STARTED,
    )
    achieved_at = Column(UTCDateTime(), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    plan = relationship("MilestonePlan", back_populates="milestones")
