"""
IEP, IEP goal, template and goal bank schemas.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.iep import GoalStatus, IEPStatus


# =============================================================================
# Goals
# =============================================================================

class IEPGoalCreate(BaseModel):
    domain: str = Field(..., min_length=1, max_length=50)
    goal_text: str = Field(..., min_length=1)
    target_date: Optional[date] = None
    baseline_screening_id: Optional[str] = Field(default=None, max_length=100)
    linked_screening_indicators: Optional[Dict[str, Any]] = None
    order: Optional[int] = Field(default=None, ge=0)


class IEPGoalBulkCreate(BaseModel):
    goals: List[IEPGoalCreate] = Field(..., min_length=1)


class IEPGoalUpdate(BaseModel):
    domain: Optional[str] = Field(default=None, min_length=1, max_length=50)
    goal_text: Optional[str] = Field(default=None, min_length=1)
    target_date: Optional[date] = None
    baseline_screening_id: Optional[str] = Field(default=None, max_length=100)
    linked_screening_indicators: Optional[Dict[str, Any]] = None
    current_progress: Optional[float] = Field(default=None, ge=0, le=100)
    status: Optional[GoalStatus] = None
    order: Optional[int] = Field(default=None, ge=0)


class IEPGoalResponse(BaseModel):
    id: UUID
    iep_id: UUID
    domain: str
    goal_text: str
    target_date: Optional[date] = None
    baseline_screening_id: Optional[str] = None
    linked_screening_indicators: Optional[Dict[str, Any]] = None
    current_progress: float
    status: GoalStatus
    order: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# IEPs
# =============================================================================

class IEPCreate(BaseModel):
    template_id: Optional[UUID] = None
    review_date: Optional[date] = None
    accommodations: Optional[Dict[str, Any]] = None
    services_tracking: Optional[Dict[str, Any]] = None
    meeting_notes: Optional[Dict[str, Any]] = None
    goals: List[IEPGoalCreate] = []


class IEPUpdate(BaseModel):
    status: Optional[IEPStatus] = None
    review_date: Optional[date] = None
    accommodations: Optional[Dict[str, Any]] = None
    services_tracking: Optional[Dict[str, Any]] = None
    meeting_notes: Optional[Dict[str, Any]] = None


class IEPApproveRequest(BaseModel):
    role: Literal["therapist", "parent"]


class IEPResponse(BaseModel):
    id: UUID
    case_id: UUID
    version: int
    status: IEPStatus
    created_by_id: UUID
    template_id: Optional[UUID] = None
    previous_version_id: Optional[UUID] = None
    review_date: Optional[date] = None
    accommodations: Optional[Dict[str, Any]] = None
    services_tracking: Optional[Dict[str, Any]] = None
    meeting_notes: Optional[Dict[str, Any]] = None
    approved_by_therapist_at: Optional[datetime] = None
    approved_by_parent_at: Optional[datetime] = None
    goals: List[IEPGoalResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Templates & Goal Bank
# =============================================================================

class IEPTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    content: Dict[str, Any] = {}
    is_global: bool = False
    organization_id: Optional[UUID] = None


class IEPTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    content: Optional[Dict[str, Any]] = None


class IEPTemplateResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    content: Dict[str, Any]
    is_global: bool
    organization_id: Optional[UUID] = None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GoalBankItemCreate(BaseModel):
    domain: str = Field(..., min_length=1, max_length=50)
    goal_text: str = Field(..., min_length=1)
    condition: Optional[str] = Field(default=None, max_length=100)
    is_global: bool = False
    organization_id: Optional[UUID] = None


class GoalBankItemResponse(BaseModel):
    id: UUID
    domain: str
    condition: Optional[str] = None
    goal_text: str
    is_global: bool
    organization_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}
