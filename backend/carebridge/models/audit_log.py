"""
Case audit log database model.

Every mutation on a case or one of its child records appends a row here.
The rows double as the case timeline shown to therapists.
"""

import uuid
from typing import Optional, Any
from uuid import UUID

from sqlalchemy import Column, Uuid, String, ForeignKey, Index
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, utcnow


# =============================================================================
# Case Audit Log Model
# =============================================================================

class CaseAuditLog(Base):
    """
    Append-only record of case activity.

    Attributes:
        id: UUID primary key
        case_id: Case the action belongs to
        user_id: User who performed the action
        action: Action identifier, e.g. ``CASE_CREATED`` or ``SESSION_SIGNED``
        entity_type: Model name of the affected record
        entity_id: ID of the affected record
        changes: Small JSON payload describing the change
        created_at: Timestamp of action

    Note:
        ``changes`` carries field names, ids and status values only. Note
        bodies and diagnoses are never copied into it.
    """

    __tablename__ = "case_audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False)
    changes = Column(JSONType(), nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    case = relationship("Case", back_populates="audit_logs")
    user = relationship("User")

    __table_args__ = (
        Index("ix_case_audit_logs_case_created", "case_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CaseAuditLog(id={self.id}, "
            f"case={self.case_id}, "
            f"action={self.action}, "
            f"entity={self.entity_type}:{self.entity_id})>"
        )

    @classmethod
    def create_entry(
        cls,
        case_id: UUID,
        user_id: Optional[UUID],
        action: str,
        entity_type: str,
        entity_id: UUID,
        changes: Optional[dict[str, Any]] = None,
    ) -> "CaseAuditLog":
        """
        Factory method to create an audit log entry (not saved to DB).
        """
        return cls(
            case_id=case_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
        )
