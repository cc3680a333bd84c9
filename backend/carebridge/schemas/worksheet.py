"""
Worksheet and worksheet assignment schemas.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.worksheet import WorksheetAssignmentStatus
from .profile import ChildSummary


class WorksheetCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    domain: Optional[str] = Field(default=None, max_length=50)
    content: Dict[str, Any] = {}


class WorksheetResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    domain: Optional[str] = None
    content: Dict[str, Any]
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignmentCreate(BaseModel):
    assigned_to_id: UUID
    child_id: UUID
    case_id: Optional[UUID] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class AssignmentUpdate(BaseModel):
    status: Optional[WorksheetAssignmentStatus] = None
    parent_notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: UUID
    worksheet_id: UUID
    assigned_by_id: UUID
    assigned_to_id: UUID
    child_id: UUID
    case_id: Optional[UUID] = None
    status: WorksheetAssignmentStatus
    due_date: Optional[date] = None
    notes: Optional[str] = None
    parent_notes: Optional[str] = None
    viewed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    worksheet: Optional[WorksheetResponse] = None
    child: Optional[ChildSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignmentPage(BaseModel):
    data: List[AssignmentResponse]
    total: int
    page: int
    limit: int
    has_more: bool
