"""
Case session endpoints: notes, signing, goal progress and AI summaries.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import require_case_access
from ..core.database import get_db
from ..models.case_session import AttendanceStatus
from ..schemas.case_session import (
    CaseSessionCreate,
    CaseSessionUpdate,
    CaseSessionResponse,
    CaseSessionListResponse,
    GoalProgressCreate,
    GoalProgressBulk,
    GoalProgressResponse,
    SessionSummaryResponse,
    EnhanceNotesRequest,
    EnhanceNotesResponse,
)
from ..services.ai import AIService, get_ai_service
from ..services.case_access import CaseAccess
from ..services.case_sessions import CaseSessionService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases/{case_id}/sessions", tags=["Case Sessions"])


@router.post("", response_model=CaseSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: CaseSessionCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseSessionService(db).create(access, payload.model_dump())


@router.get("", response_model=CaseSessionListResponse)
async def list_sessions(
    attendance_status: Optional[AttendanceStatus] = None,
    cursor: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseSessionService(db).list_sessions(access, attendance_status, cursor, limit)


@router.get("/{session_id}", response_model=CaseSessionResponse)
async def get_session(
    session_id: UUID,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseSessionService(db).get(access, session_id)


@router.patch("/{session_id}", response_model=CaseSessionResponse)
async def update_session(
    session_id: UUID,
    payload: CaseSessionUpdate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    """Edit a draft note. Signed notes are read-only."""
    return CaseSessionService(db).update(access, session_id, payload.model_dump(exclude_unset=True))


@router.post("/{session_id}/sign", response_model=CaseSessionResponse)
async def sign_session(
    session_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseSessionService(db).sign(access, session_id)


# =============================================================================
# Goal Progress
# =============================================================================

@router.post(
    "/{session_id}/goal-progress",
    response_model=GoalProgressResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_goal_progress(
    session_id: UUID,
    payload: GoalProgressCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseSessionService(db).log_goal_progress(
        access, session_id, payload.goal_id, payload.progress_note, payload.progress_value,
    )


@router.post(
    "/{session_id}/goal-progress/bulk",
    response_model=List[GoalProgressResponse],
    status_code=status.HTTP_201_CREATED,
)
async def log_goal_progress_bulk(
    session_id: UUID,
    payload: GoalProgressBulk,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    entries = [entry.model_dump() for entry in payload.entries]
    return CaseSessionService(db).log_goal_progress_bulk(access, session_id, entries)


# =============================================================================
# AI
# =============================================================================

@router.post("/{session_id}/ai-summary", response_model=SessionSummaryResponse)
async def generate_ai_summary(
    session_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai_service),
):
    return CaseSessionService(db, ai=ai).generate_ai_summary(access, session_id)


@router.post("/{session_id}/enhance-notes", response_model=EnhanceNotesResponse)
async def enhance_notes(
    session_id: UUID,
    payload: EnhanceNotesRequest,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai_service),
):
    return CaseSessionService(db, ai=ai).enhance_notes(access, session_id, payload.text)
