"""
IEP endpoints, IEP templates and the shared goal bank.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, require_case_access, require_role
from ..core.database import get_db
from ..models.iep import IEPStatus
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.iep import (
    IEPCreate,
    IEPUpdate,
    IEPApproveRequest,
    IEPResponse,
    IEPGoalCreate,
    IEPGoalBulkCreate,
    IEPGoalUpdate,
    IEPGoalResponse,
    IEPTemplateCreate,
    IEPTemplateUpdate,
    IEPTemplateResponse,
    GoalBankItemCreate,
    GoalBankItemResponse,
)
from ..services.case_access import CaseAccess
from ..services.ieps import IEPService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases/{case_id}/ieps", tags=["IEPs"])
templates_router = APIRouter(prefix="/api/iep-templates", tags=["IEP Templates"])
goal_bank_router = APIRouter(prefix="/api/goal-bank", tags=["Goal Bank"])


# =============================================================================
# IEPs
# =============================================================================

@router.post("", response_model=IEPResponse, status_code=status.HTTP_201_CREATED)
async def create_iep(
    payload: IEPCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    """Create the next IEP version, optionally from a template and with goals."""
    return IEPService(db).create_iep(access, payload.model_dump())


@router.get("", response_model=List[IEPResponse])
async def list_ieps(
    iep_status: Optional[IEPStatus] = Query(default=None, alias="status"),
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return IEPService(db).list_ieps(access, iep_status)


@router.get("/{iep_id}", response_model=IEPResponse)
async def get_iep(
    iep_id: UUID,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return IEPService(db).get_iep(access, iep_id)


@router.patch("/{iep_id}", response_model=IEPResponse)
async def update_iep(
    iep_id: UUID,
    payload: IEPUpdate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return IEPService(db).update_iep(access, iep_id, payload.model_dump(exclude_unset=True))


@router.post("/{iep_id}/approve", response_model=IEPResponse)
async def approve_iep(
    iep_id: UUID,
    payload: IEPApproveRequest,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    """Parents approve with role=parent; therapists with edit rights use role=therapist."""
    return IEPService(db).approve_iep(access, iep_id, payload.role)


@router.post("/{iep_id}/new-version", response_model=IEPResponse, status_code=status.HTTP_201_CREATED)
async def create_new_iep_version(
    iep_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return IEPService(db).create_new_version(access, iep_id)


# =============================================================================
# Goals
# =============================================================================

@router.post("/{iep_id}/goals", response_model=IEPGoalResponse, status_code=status.HTTP_201_CREATED)
async def add_goal(
    iep_id: UUID,
    payload: IEPGoalCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return IEPService(db).add_goal(access, iep_id, payload.model_dump())


@router.post("/{iep_id}/goals/bulk", response_model=List[IEPGoalResponse], status_code=status.HTTP_201_CREATED)
async def add_goals_bulk(
    iep_id: UUID,
    payload: IEPGoalBulkCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return IEPService(db).add_goals_bulk(access, iep_id, [g.model_dump() for g in payload.goals])


@router.patch("/{iep_id}/goals/{goal_id}", response_model=IEPGoalResponse)
async def update_goal(
    iep_id: UUID,
    goal_id: UUID,
    payload: IEPGoalUpdate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return IEPService(db).update_goal(access, iep_id, goal_id, payload.model_dump(exclude_unset=True))


@router.delete("/{iep_id}/goals/{goal_id}", response_model=MessageResponse)
async def delete_goal(
    iep_id: UUID,
    goal_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    IEPService(db).delete_goal(access, iep_id, goal_id)
    return MessageResponse(message="Goal deleted")


# =============================================================================
# Templates
# =============================================================================

@templates_router.get("", response_model=List[IEPTemplateResponse])
async def list_templates(
    organization_id: Optional[UUID] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Global templates, the caller's own, and their organization's."""
    return IEPService(db).list_templates(user, organization_id)


@templates_router.post("", response_model=IEPTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    payload: IEPTemplateCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return IEPService(db).create_template(user, payload.model_dump())


@templates_router.get("/{template_id}", response_model=IEPTemplateResponse, dependencies=[Depends(get_current_user)])
async def get_template(template_id: UUID, db: Session = Depends(get_db)):
    return IEPService(db).get_template(template_id)


@templates_router.patch("/{template_id}", response_model=IEPTemplateResponse)
async def update_template(
    template_id: UUID,
    payload: IEPTemplateUpdate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return IEPService(db).update_template(user, template_id, payload.model_dump(exclude_unset=True))


@templates_router.delete("/{template_id}", response_model=MessageResponse)
async def delete_template(
    template_id: UUID,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    IEPService(db).delete_template(user, template_id)
    return MessageResponse(message="Template deleted")


# =============================================================================
# Goal Bank
# =============================================================================

@goal_bank_router.get("", response_model=List[GoalBankItemResponse], dependencies=[Depends(get_current_user)])
async def search_goal_bank(
    domain: Optional[str] = None,
    condition: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return IEPService(db).search_goal_bank(domain, condition, search, limit)


@goal_bank_router.post("", response_model=GoalBankItemResponse, status_code=status.HTTP_201_CREATED)
async def create_goal_bank_item(
    payload: GoalBankItemCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return IEPService(db).create_goal_bank_item(user, payload.model_dump())
