"""
Case, case therapist, internal note and timeline schemas.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.case import CaseStatus, CaseTherapistRole
from ..models.case_session import AttendanceStatus, NoteStatus
from ..models.iep import GoalStatus, IEPStatus
from .profile import ChildSummary
from .user import UserSummary


# =============================================================================
# Therapists
# =============================================================================

class TherapistSummary(BaseModel):
    id: UUID
    user_id: UUID
    title: Optional[str] = None
    user: Optional[UserSummary] = None

    model_config = {"from_attributes": True}


class CaseTherapistAdd(BaseModel):
    therapist_id: UUID = Field(..., description="TherapistProfile id")
    role: CaseTherapistRole = CaseTherapistRole.SECONDARY
    permissions: Optional[Dict[str, bool]] = None


class CaseTherapistUpdate(BaseModel):
    role: Optional[CaseTherapistRole] = None
    permissions: Optional[Dict[str, bool]] = None


class CaseTherapistResponse(BaseModel):
    id: UUID
    case_id: UUID
    therapist_id: UUID
    role: CaseTherapistRole
    permissions: Dict[str, bool]
    added_at: datetime
    removed_at: Optional[datetime] = None
    therapist: Optional[TherapistSummary] = None

    model_config = {"from_attributes": True}


class TransferRequest(BaseModel):
    new_primary_therapist_id: UUID


# =============================================================================
# Cases
# =============================================================================

class CaseCreate(BaseModel):
    child_id: UUID
    diagnosis: Optional[str] = None
    referral_source: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = None
    organization_id: Optional[UUID] = None


class CaseStatusUpdate(BaseModel):
    status: CaseStatus
    discharge_reason: Optional[str] = None


class CaseResponse(BaseModel):
    id: UUID
    case_number: str
    child_id: UUID
    primary_therapist_id: UUID
    organization_id: Optional[UUID] = None
    status: CaseStatus
    diagnosis: Optional[str] = None
    referral_source: Optional[str] = None
    notes: Optional[str] = None
    opened_at: datetime
    discharged_at: Optional[datetime] = None
    discharge_reason: Optional[str] = None
    child: Optional[ChildSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CaseListResponse(BaseModel):
    items: List[CaseResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False


class SessionBrief(BaseModel):
    id: UUID
    scheduled_at: datetime
    session_type: Optional[str] = None
    attendance_status: Optional[AttendanceStatus] = None
    note_status: NoteStatus

    model_config = {"from_attributes": True}


class GoalBrief(BaseModel):
    id: UUID
    domain: str
    goal_text: str
    current_progress: float
    status: GoalStatus

    model_config = {"from_attributes": True}


class IEPBrief(BaseModel):
    id: UUID
    version: int
    status: IEPStatus
    review_date: Optional[date] = None
    goals: List[GoalBrief] = []

    model_config = {"from_attributes": True}


class CaseAccessInfo(BaseModel):
    role: str
    is_primary: bool
    can_edit: bool
    can_view_notes: bool


class CaseDetailResponse(BaseModel):
    case: CaseResponse
    child: Optional[ChildSummary] = None
    therapists: List[CaseTherapistResponse] = []
    counts: Dict[str, int]
    latest_iep: Optional[IEPBrief] = None
    next_session: Optional[SessionBrief] = None
    recent_sessions: List[SessionBrief] = []
    access: CaseAccessInfo

    model_config = {"from_attributes": True}


# =============================================================================
# Internal Notes & Timeline
# =============================================================================

class InternalNoteCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class InternalNoteResponse(BaseModel):
    id: UUID
    case_id: UUID
    author_id: UUID
    author_name: Optional[str] = None
    content: str
    created_at: datetime


class AuditLogResponse(BaseModel):
    id: UUID
    case_id: UUID
    user_id: Optional[UUID] = None
    action: str
    entity_type: str
    entity_id: UUID
    changes: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TimelineResponse(BaseModel):
    items: List[AuditLogResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False
