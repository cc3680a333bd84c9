"""
Billing records for delivered case sessions.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Float, Date, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, enum_values, utcnow


class BillingStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    WRITTEN_OFF = "WRITTEN_OFF"


class CaseBilling(Base):
    __tablename__ = "case_billing"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid(as_uuid=True), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("case_sessions.id", ondelete="SET NULL"), unique=True, nullable=True)
    amount = Column(Float, nullable=False)
    service_code = Column(String(20), nullable=True)
    invoice_url = Column(String(1000), nullable=True)
    status = Column(SQLEnum(BillingStatus, name="billing_status", values_callable=enum_values), nullable=False, default=BillingStatus.PENDING)
    due_date = Column(Date, nullable=True)
    paid_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="billing_records")
    session = relationship("CaseSession", back_populates="billing")
