"""
Case consent schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from ..models.consent import ConsentType


class ConsentCreate(BaseModel):
    type: ConsentType
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None


class ConsentResponse(BaseModel):
    id: UUID
    case_id: UUID
    type: ConsentType
    granted_by_id: UUID
    granted_at: datetime
    valid_until: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    notes: Optional[str] = None
    is_active: bool = False
    is_expired: bool = False
    is_revoked: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class ExpiringConsent(BaseModel):
    id: UUID
    type: ConsentType
    valid_until: datetime


class ComplianceResponse(BaseModel):
    is_compliant: bool
    missing_consents: List[ConsentType]
    active_consents: int
    expiring_soon: List[ExpiringConsent]
