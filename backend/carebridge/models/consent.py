"""
Consent records granted on a case.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Uuid, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, enum_values, utcnow


class ConsentType(str, enum.Enum):
    TREATMENT = "TREATMENT"
    SHARING = "SHARING"
    ASSESSMENT = "ASSESSMENT"
    PHOTO_VIDEO = "PHOTO_VIDEO"
    TELEHEALTH = "TELEHEALTH"
    RESEARCH = "RESEARCH"


REQUIRED_CONSENT_TYPES = (ConsentType.TREATMENT, ConsentType.SHARING, ConsentType.ASSESSMENT)


class CaseConsent(Base):
    __tablename__ = "case_consents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(ConsentType, name="consent_type", values_callable=enum_values), nullable=False)
    granted_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    granted_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    valid_until = Column(UTCDateTime(), nullable=True)
    revoked_at = Column(UTCDateTime(), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    case = relationship("Case", back_populates="consents")
    granted_by = relationship("User")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.valid_until is not None and self.valid_until <= now

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.revoked_at is None and not self.is_expired(now)
