"""
Case management endpoints.

Every ``/{case_id}`` route resolves the caller's case access first via
``require_case_access``. Parents of the case child get read-only access;
therapists need an active assignment; status, therapist and transfer
changes need the primary therapist.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, require_case_access, require_role
from ..core.database import get_db
from ..core.exceptions import ForbiddenError
from ..models.case import CaseStatus
from ..models.user import User
from ..schemas.case import (
    CaseCreate,
    CaseStatusUpdate,
    CaseResponse,
    CaseListResponse,
    CaseDetailResponse,
    CaseTherapistAdd,
    CaseTherapistUpdate,
    CaseTherapistResponse,
    TransferRequest,
    InternalNoteCreate,
    InternalNoteResponse,
    TimelineResponse,
)
from ..schemas.common import MessageResponse
from ..schemas.profile import ChildResponse
from ..services.case_access import CaseAccess
from ..services.cases import CaseService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["Cases"])


# =============================================================================
# Cases
# =============================================================================

@router.post(
    "",
    response_model=CaseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_case(
    payload: CaseCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    """Open a case for a child. The caller becomes the primary therapist."""
    return CaseService(db).create_case(
        user,
        child_id=payload.child_id,
        diagnosis=payload.diagnosis,
        referral_source=payload.referral_source,
        notes=payload.notes,
        organization_id=payload.organization_id,
    )


@router.get("", response_model=CaseListResponse)
async def list_cases(
    case_status: Optional[CaseStatus] = Query(default=None, alias="status"),
    child_id: Optional[UUID] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    cursor: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CaseService(db).list_cases(user, case_status, child_id, search, cursor, limit)


@router.get("/patients", response_model=List[ChildResponse])
async def list_patients(
    search: Optional[str] = Query(default=None, max_length=100),
    user: User = Depends(require_role("therapist")),
    db: Session = Depends(get_db),
):
    """Children of parents who have booked the calling therapist."""
    return CaseService(db).therapist_patients(user, search)


@router.get("/{case_id}", response_model=CaseDetailResponse)
async def get_case(
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseService(db).get_case_detail(access)


@router.patch("/{case_id}/status", response_model=CaseResponse)
async def update_case_status(
    payload: CaseStatusUpdate,
    access: CaseAccess = Depends(require_case_access("manage")),
    db: Session = Depends(get_db),
):
    return CaseService(db).update_status(access, payload.status, payload.discharge_reason)


# =============================================================================
# Case Therapists
# =============================================================================

@router.get("/{case_id}/therapists", response_model=List[CaseTherapistResponse])
async def list_case_therapists(
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseService(db).list_therapists(access)


@router.post(
    "/{case_id}/therapists",
    response_model=CaseTherapistResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_case_therapist(
    payload: CaseTherapistAdd,
    access: CaseAccess = Depends(require_case_access("manage")),
    db: Session = Depends(get_db),
):
    return CaseService(db).add_therapist(access, payload.therapist_id, payload.role, payload.permissions)


@router.patch("/{case_id}/therapists/{therapist_id}", response_model=CaseTherapistResponse)
async def update_case_therapist(
    therapist_id: UUID,
    payload: CaseTherapistUpdate,
    access: CaseAccess = Depends(require_case_access("manage")),
    db: Session = Depends(get_db),
):
    return CaseService(db).update_therapist(access, therapist_id, payload.role, payload.permissions)


@router.delete("/{case_id}/therapists/{therapist_id}", response_model=MessageResponse)
async def remove_case_therapist(
    therapist_id: UUID,
    access: CaseAccess = Depends(require_case_access("manage")),
    db: Session = Depends(get_db),
):
    CaseService(db).remove_therapist(access, therapist_id)
    return MessageResponse(message="Therapist removed from case")


@router.post("/{case_id}/transfer", response_model=CaseResponse)
async def transfer_case(
    payload: TransferRequest,
    access: CaseAccess = Depends(require_case_access("manage")),
    db: Session = Depends(get_db),
):
    return CaseService(db).transfer_case(access, payload.new_primary_therapist_id)


# =============================================================================
# Internal Notes
# =============================================================================

def _require_notes_access(access: CaseAccess) -> None:
    if not access.can_view_notes:
        raise ForbiddenError("No permission to view internal notes")


@router.get("/{case_id}/internal-notes", response_model=List[InternalNoteResponse])
async def list_internal_notes(
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    _require_notes_access(access)
    return CaseService(db).list_internal_notes(access)


@router.post(
    "/{case_id}/internal-notes",
    response_model=InternalNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_internal_note(
    payload: InternalNoteCreate,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    _require_notes_access(access)
    return CaseService(db).add_internal_note(access, payload.content)


# =============================================================================
# Timeline
# =============================================================================

@router.get("/{case_id}/timeline", response_model=TimelineResponse)
async def case_timeline(
    cursor: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseService(db).timeline(access, cursor, limit)
