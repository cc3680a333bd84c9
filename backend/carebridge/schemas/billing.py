"""
Case billing schemas.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.billing import BillingStatus


class BillingCreate(BaseModel):
    amount: float = Field(..., ge=0)
    session_id: Optional[UUID] = None
    service_code: Optional[str] = Field(default=None, max_length=20)
    invoice_url: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[date] = None


class BillingUpdate(BaseModel):
    amount: Optional[float] = Field(default=None, ge=0)
    status: Optional[BillingStatus] = None
    service_code: Optional[str] = Field(default=None, max_length=20)
    invoice_url: Optional[str] = Field(default=None, max_length=1000)
    due_date: Optional[date] = None


class BillingResponse(BaseModel):
    id: UUID
    case_id: UUID
    session_id: Optional[UUID] = None
    amount: float
    service_code: Optional[str] = None
    invoice_url: Optional[str] = None
    status: BillingStatus
    due_date: Optional[date] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BillingSummary(BaseModel):
    total_billed: float
    total_paid: float
    total_pending: float
    total_overdue: float
    record_count: int


class BillingListResponse(BaseModel):
    items: List[BillingResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False
    summary: BillingSummary
