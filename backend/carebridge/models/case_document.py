"""
Case documents and their shares with parents or other users.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, enum_values, utcnow


class CaseDocumentType(str, enum.Enum):
    ASSESSMENT = "ASSESSMENT"
    PROGRESS_REPORT = "PROGRESS_REPORT"
    TREATMENT_PLAN = "TREATMENT_PLAN"
    DISCHARGE_SUMMARY = "DISCHARGE_SUMMARY"
    REFERRAL = "REFERRAL"
    OTHER = "OTHER"


class CaseDocument(Base):
    __tablename__ = "case_documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(CaseDocumentType, name="case_document_type", values_callable=enum_values), nullable=False)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=True)
    file_url = Column(String(1000), nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="documents")
    created_by = relationship("User")
    shares = relationship("DocumentShare", back_populates="document", cascade="all, delete-orphan")


class DocumentShare(Base):
    """
    Grants a user read access to a case document.

    A share without ``document_id`` covers the case as a whole.
    """

    __tablename__ = "document_shares"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("case_documents.id", ondelete="CASCADE"), nullable=True)
    shared_with_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    revoked_at = Column(UTCDateTime(), nullable=True)

    case = relationship("Case")
    document = relationship("CaseDocument", back_populates="shares")
    shared_with = relationship("User", foreign_keys=[shared_with_id])
    shared_by = relationship("User", foreign_keys=[shared_by_id])
