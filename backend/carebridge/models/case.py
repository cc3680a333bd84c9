"""
Case management core models.

A case links one child to a primary therapist. Additional therapists join
through ``CaseTherapist`` rows that carry a role and a permission map.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Text, LargeBinary, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class CaseStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    ON_HOLD = "ON_HOLD"
    DISCHARGED = "DISCHARGED"
    ARCHIVED = "ARCHIVED"


class CaseTherapistRole(str, enum.Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"
    CONSULTANT = "CONSULTANT"
    SUPERVISOR = "SUPERVISOR"


FULL_PERMISSIONS = {"can_edit": True, "can_view_notes": True, "can_manage_goals": True}
DEFAULT_PERMISSIONS = {"can_edit": False, "can_view_notes": True, "can_manage_goals": False}


# =============================================================================
# Case Model
# =============================================================================


class Case(Base):
    __tablename__ = "cases"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_number = Column(String(20), unique=True, nullable=False, index=True)
    child_id = Column(Uuid(as_uuid=True), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    primary_therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id"), nullable=False, index=True)
    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)

    status = Column(SQLEnum(CaseStatus, name="case_status", values_callable=enum_values), nullable=False, default=CaseStatus.ACTIVE)
    diagnosis = Column(Text, nullable=True)
    referral_source = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    opened_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    discharged_at = Column(UTCDateTime(), nullable=True)
    discharge_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    child = relationship("Child")
    primary_therapist = relationship("TherapistProfile", foreign_keys=[primary_therapist_id])
    therapists = relationship("CaseTherapist", back_populates="case", cascade="all, delete-orphan")
    internal_notes = relationship("CaseInternalNote", back_populates="case", cascade="all, delete-orphan")
    sessions = relationship("CaseSession", back_populates="case", cascade="all, delete-orphan")
    ieps = relationship("IEP", back_populates="case", cascade="all, delete-orphan")
    milestone_plans = relationship("MilestonePlan", back_populates="case", cascade="all, delete-orphan")
    documents = relationship("CaseDocument", back_populates="case", cascade="all, delete-orphan")
    consents = relationship("CaseConsent", back_populates="case", cascade="all, delete-orphan")
    billing_records = relationship("CaseBilling", back_populates="case", cascade="all, delete-orphan")
    audit_logs = relationship("CaseAuditLog", back_populates="case", cascade="all, delete-orphan")

    @property
    def active_therapists(self) -> list["CaseTherapist"]:
        return [t for t in self.therapists if t.removed_at is None]

    def __repr__(self) -> str:
        return f"<Case(id={self.id}, number={self.case_number}, status={self.status.value})>"


# =============================================================================
# CaseTherapist Model
# =============================================================================


class CaseTherapist(Base):
    """Therapist assignment. Removal is soft: ``removed_at`` is set."""

    __tablename__ = "case_therapists"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    therapist_id = Column(Uuid(as_uuid=True), ForeignKey("therapist_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(
        SQLEnum(CaseTherapistRole, name="case_therapist_role", values_callable=enum_values),
        nullable=False,
        default=CaseTherapistRole.SECONDARY,
    )
    permissions = Column(JSONType(), nullable=False, default=lambda: dict(DEFAULT_PERMISSIONS))
    added_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    removed_at = Column(UTCDateTime(), nullable=True)

    case = relationship("Case", back_populates="therapists")
    therapist = relationship("TherapistProfile")

    __table_args__ = (
        Index("ix_case_therapists_case_therapist", "case_id", "therapist_id", unique=True),
    )

    def has_permission(self, name: str) -> bool:
        return bool((self.permissions or {}).get(name))


# =============================================================================
# CaseInternalNote Model
# =============================================================================


class CaseInternalNote(Base):
    """
    Therapist-only note on a case.

    The body is stored Fernet-encrypted; use ``core.security.encrypt_text`` /
    ``decrypt_text`` at the service boundary.
    """

    __tablename__ = "case_internal_notes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content_encrypted = Column(LargeBinary, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    case = relationship("Case", back_populates="internal_notes")
    author = relationship("User")
