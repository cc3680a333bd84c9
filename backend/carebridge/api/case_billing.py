"""
Case billing endpoints.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import require_case_access
from ..core.database import get_db
from ..models.billing import BillingStatus
from ..schemas.billing import BillingCreate, BillingUpdate, BillingResponse, BillingListResponse
from ..services.case_access import CaseAccess
from ..services.case_billing import CaseBillingService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases/{case_id}/billing", tags=["Case Billing"])


@router.post("", response_model=BillingResponse, status_code=status.HTTP_201_CREATED)
async def create_billing(
    payload: BillingCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseBillingService(db).create_billing(access, payload.model_dump())


@router.get("", response_model=BillingListResponse)
async def list_billing(
    billing_status: Optional[BillingStatus] = Query(default=None, alias="status"),
    cursor: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    """Records newest first plus totals over the whole case."""
    return CaseBillingService(db).list_billing(access, billing_status, cursor, limit)


@router.patch("/{billing_id}", response_model=BillingResponse)
async def update_billing(
    billing_id: UUID,
    payload: BillingUpdate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseBillingService(db).update_billing(access, billing_id, payload.model_dump(exclude_unset=True))
