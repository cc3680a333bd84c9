"""
Case session and goal progress schemas.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.case_session import AttendanceStatus, NoteStatus, SessionNoteFormat


class CaseSessionCreate(BaseModel):
    scheduled_at: datetime
    booking_id: Optional[UUID] = None
    session_type: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=200)
    actual_duration: Optional[int] = Field(default=None, ge=0, le=600)
    attendance_status: Optional[AttendanceStatus] = None
    raw_notes: Optional[str] = None
    note_format: Optional[SessionNoteFormat] = None
    structured_notes: Optional[Dict[str, Any]] = None


class CaseSessionUpdate(BaseModel):
    scheduled_at: Optional[datetime] = None
    session_type: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=200)
    actual_duration: Optional[int] = Field(default=None, ge=0, le=600)
    attendance_status: Optional[AttendanceStatus] = None
    raw_notes: Optional[str] = None
    note_format: Optional[SessionNoteFormat] = None
    structured_notes: Optional[Dict[str, Any]] = None


class GoalProgressCreate(BaseModel):
    goal_id: UUID
    progress_note: Optional[str] = None
    progress_value: Optional[float] = Field(default=None, ge=0, le=100)


class GoalProgressBulk(BaseModel):
    entries: List[GoalProgressCreate] = Field(..., min_length=1)


class GoalProgressResponse(BaseModel):
    id: UUID
    session_id: UUID
    goal_id: UUID
    progress_note: Optional[str] = None
    progress_value: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CaseSessionResponse(BaseModel):
    id: UUID
    case_id: UUID
    therapist_id: UUID
    booking_id: Optional[UUID] = None
    scheduled_at: datetime
    session_type: Optional[str] = None
    location: Optional[str] = None
    actual_duration: Optional[int] = None
    attendance_status: Optional[AttendanceStatus] = None
    raw_notes: Optional[str] = None
    note_format: Optional[SessionNoteFormat] = None
    structured_notes: Optional[Dict[str, Any]] = None
    ai_summary: Optional[str] = None
    note_status: NoteStatus
    signed_at: Optional[datetime] = None
    goal_progress: List[GoalProgressResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CaseSessionListResponse(BaseModel):
    items: List[CaseSessionResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False


class SessionSummaryResponse(BaseModel):
    session_id: UUID
    summary: str
    format: str
    ai_generated: bool


class EnhanceNotesRequest(BaseModel):
    text: Optional[str] = Field(default=None, max_length=20000)


class EnhanceNotesResponse(BaseModel):
    enhanced: str
    ai_generated: bool
