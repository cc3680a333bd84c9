"""
Worksheet endpoints: therapists author worksheets and assign them to parents.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, require_role
from ..core.database import get_db
from ..models.user import User
from ..models.worksheet import WorksheetAssignmentStatus
from ..schemas.worksheet import (
    WorksheetCreate,
    WorksheetResponse,
    AssignmentCreate,
    AssignmentUpdate,
    AssignmentResponse,
    AssignmentPage,
)
from ..services.worksheets import WorksheetService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/worksheets", tags=["Worksheets"])


@router.post("", response_model=WorksheetResponse, status_code=status.HTTP_201_CREATED)
async def create_worksheet(
    payload: WorksheetCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return WorksheetService(db).create_worksheet(user, payload.model_dump())


@router.get("", response_model=List[WorksheetResponse])
async def list_my_worksheets(
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return WorksheetService(db).list_my_worksheets(user)


# =============================================================================
# Assignments
# =============================================================================

@router.get("/assignments/sent", response_model=AssignmentPage)
async def list_sent_assignments(
    assignment_status: Optional[WorksheetAssignmentStatus] = Query(default=None, alias="status"),
    child_id: Optional[UUID] = None,
    case_id: Optional[UUID] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return WorksheetService(db).list_sent(user, assignment_status, child_id, case_id, page, limit)


@router.get("/assignments/received", response_model=AssignmentPage)
async def list_received_assignments(
    assignment_status: Optional[WorksheetAssignmentStatus] = Query(default=None, alias="status"),
    child_id: Optional[UUID] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(require_role("parent")),
    db: Session = Depends(get_db),
):
    return WorksheetService(db).list_received(user, assignment_status, child_id, page, limit)


@router.get("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """The assignee's first read marks the assignment VIEWED."""
    return WorksheetService(db).get_assignment(user, assignment_id)


@router.patch("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: UUID,
    payload: AssignmentUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return WorksheetService(db).update_assignment(user, assignment_id, payload.model_dump(exclude_unset=True))


@router.get("/{worksheet_id}", response_model=WorksheetResponse, dependencies=[Depends(get_current_user)])
async def get_worksheet(worksheet_id: UUID, db: Session = Depends(get_db)):
    return WorksheetService(db).get_worksheet(worksheet_id)


@router.post("/{worksheet_id}/assign", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def assign_worksheet(
    worksheet_id: UUID,
    payload: AssignmentCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    data["worksheet_id"] = worksheet_id
    return WorksheetService(db).assign(user, data)
