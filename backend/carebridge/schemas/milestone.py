"""
Milestone plan schemas.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.milestone import MilestonePlanStatus, MilestoneStatus


class MilestoneCreate(BaseModel):
    domain: str = Field(..., min_length=1, max_length=50)
    description: str = Field(..., min_length=1)
    expected_age: Optional[str] = Field(default=None, max_length=50)
    target_date: Optional[date] = None
    linked_screening_id: Optional[str] = Field(default=None, max_length=100)
    status: Optional[MilestoneStatus] = None
    order: Optional[int] = Field(default=None, ge=0)


class MilestoneBulkCreate(BaseModel):
    milestones: List[MilestoneCreate] = Field(..., min_length=1)


class MilestoneUpdate(BaseModel):
    domain: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, min_length=1)
    expected_age: Optional[str] = Field(default=None, max_length=50)
    target_date: Optional[date] = None
    linked_screening_id: Optional[str] = Field(default=None, max_length=100)
    status: Optional[MilestoneStatus] = None
    order: Optional[int] = Field(default=None, ge=0)


class MilestoneResponse(BaseModel):
    id: UUID
    plan_id: UUID
    domain: str
    description: str
    expected_age: Optional[str] = None
    target_date: Optional[date] = None
    linked_screening_id: Optional[str] = None
    status: MilestoneStatus
    achieved_at: Optional[datetime] = None
    order: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MilestonePlanCreate(BaseModel):
    shared_with_parent: bool = False
    milestones: List[MilestoneCreate] = []


class MilestonePlanUpdate(BaseModel):
    status: Optional[MilestonePlanStatus] = None
    shared_with_parent: Optional[bool] = None


class MilestonePlanResponse(BaseModel):
    id: UUID
    case_id: UUID
    version: int
    status: MilestonePlanStatus
    shared_with_parent: bool
    previous_version_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    milestones: List[MilestoneResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
