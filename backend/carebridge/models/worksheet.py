"""
Therapy worksheets and their assignment to parents.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Text, Date, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


class WorksheetAssignmentStatus(str, enum.Enum):
    ASSIGNED = "ASSIGNED"
    VIEWED = "VIEWED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Worksheet(Base):
    __tablename__ = "worksheets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    domain = Column(String(50), nullable=True)
    content = Column(JSONType(), nullable=False, default=dict)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    created_by = relationship("User")


class WorksheetAssignment(Base):
    __tablename__ = "worksheet_assignments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    worksheet_id = Column(Uuid(as_uuid=True), ForeignKey("worksheets.id", ondelete="CASCADE"), nullable=False)
    assigned_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    child_id = Column(Uuid(as_uuid=True), ForeignKey("children.id", ondelete="CASCADE"), nullable=False)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)

    status = Column(
        SQLEnum(WorksheetAssignmentStatus, name="worksheet_assignment_status", values_callable=enum_values),
        nullable=False,
        default=WorksheetAssignmentStatus.ASSIGNED,
    )
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    parent_notes = Column(Text, nullable=True)
    viewed_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    worksheet = relationship("Worksheet")
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    child = relationship("Child")
