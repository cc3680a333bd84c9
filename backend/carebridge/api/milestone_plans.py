"""
Milestone plan endpoints, nested under a case.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.auth import require_case_access
from ..core.database import get_db
from ..schemas.common import MessageResponse
from ..schemas.milestone import (
    MilestoneCreate,
    MilestoneBulkCreate,
    MilestoneUpdate,
    MilestoneResponse,
    MilestonePlanCreate,
    MilestonePlanUpdate,
    MilestonePlanResponse,
)
from ..services.case_access import CaseAccess
from ..services.milestone_plans import MilestonePlanService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases/{case_id}/milestone-plans", tags=["Milestone Plans"])


@router.post("", response_model=MilestonePlanResponse, status_code=status.HTTP_201_CREATED)
async def create_plan(
    payload: MilestonePlanCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return MilestonePlanService(db).create_plan(access, payload.model_dump())


@router.get("", response_model=List[MilestonePlanResponse])
async def list_plans(
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    """Parents only see plans shared with them."""
    return MilestonePlanService(db).list_plans(access)


@router.get("/{plan_id}", response_model=MilestonePlanResponse)
async def get_plan(
    plan_id: UUID,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return MilestonePlanService(db).get_plan(access, plan_id)


@router.patch("/{plan_id}", response_model=MilestonePlanResponse)
async def update_plan(
    plan_id: UUID,
    payload: MilestonePlanUpdate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return MilestonePlanService(db).update_plan(access, plan_id, payload.model_dump(exclude_unset=True))


@router.post("/{plan_id}/new-version", response_model=MilestonePlanResponse, status_code=status.HTTP_201_CREATED)
async def create_new_plan_version(
    plan_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return MilestonePlanService(db).create_new_version(access, plan_id)


# =============================================================================
# Milestones
# =============================================================================

@router.post("/{plan_id}/milestones", response_model=MilestoneResponse, status_code=status.HTTP_201_CREATED)
async def add_milestone(
    plan_id: UUID,
    payload: MilestoneCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return MilestonePlanService(db).add_milestone(access, plan_id, payload.model_dump())


@router.post("/{plan_id}/milestones/bulk", response_model=List[MilestoneResponse], status_code=status.HTTP_201_CREATED)
async def add_milestones_bulk(
    plan_id: UUID,
    payload: MilestoneBulkCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    items = [m.model_dump() for m in payload.milestones]
    return MilestonePlanService(db).add_milestones_bulk(access, plan_id, items)


@router.patch("/{plan_id}/milestones/{milestone_id}", response_model=MilestoneResponse)
async def update_milestone(
    plan_id: UUID,
    milestone_id: UUID,
    payload: MilestoneUpdate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return MilestonePlanService(db).update_milestone(
        access, plan_id, milestone_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/{plan_id}/milestones/{milestone_id}", response_model=MessageResponse)
async def delete_milestone(
    plan_id: UUID,
    milestone_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    MilestonePlanService(db).delete_milestone(access, plan_id, milestone_id)
    return MessageResponse(message="Milestone deleted")
