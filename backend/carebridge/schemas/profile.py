"""
Parent profile, child and condition schemas.
"""

from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from ..models.profile import (
    ConditionType, DiagnosisStatus, Gender, SchoolType, Severity, TherapyType,
)


# =============================================================================
# Conditions
# =============================================================================

class ConditionBase(BaseModel):
    specific_diagnosis: Optional[str] = Field(default=None, max_length=200)
    severity: Optional[Severity] = None
    diagnosed_at: Optional[date] = None
    diagnosed_by: Optional[str] = Field(default=None, max_length=200)
    current_therapies: List[TherapyType] = []
    medications: List[str] = []
    primary_challenges: Optional[str] = None
    strengths: Optional[str] = None
    notes: Optional[str] = None


class ConditionCreate(ConditionBase):
    condition_type: ConditionType


class ConditionCreateRequest(ConditionCreate):
    child_id: UUID


class ConditionUpdate(BaseModel):
    condition_type: Optional[ConditionType] = None
    specific_diagnosis: Optional[str] = Field(default=None, max_length=200)
    severity: Optional[Severity] = None
    diagnosed_at: Optional[date] = None
    diagnosed_by: Optional[str] = Field(default=None, max_length=200)
    current_therapies: Optional[List[TherapyType]] = None
    medications: Optional[List[str]] = None
    primary_challenges: Optional[str] = None
    strengths: Optional[str] = None
    notes: Optional[str] = None


class ConditionResponse(ConditionBase):
    id: UUID
    child_id: UUID
    condition_type: ConditionType
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Children
# =============================================================================

class ChildCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    nickname: Optional[str] = Field(default=None, max_length=50)
    date_of_birth: date
    gender: Gender
    school_type: Optional[SchoolType] = None
    grade: Optional[str] = Field(default=None, max_length=50)
    has_condition: bool = False
    diagnosis_status: Optional[DiagnosisStatus] = None
    primary_language: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)


class ChildUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    nickname: Optional[str] = Field(default=None, max_length=50)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    school_type: Optional[SchoolType] = None
    grade: Optional[str] = Field(default=None, max_length=50)
    has_condition: Optional[bool] = None
    diagnosis_status: Optional[DiagnosisStatus] = None
    primary_language: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)


class ChildResponse(BaseModel):
    id: UUID
    profile_id: UUID
    first_name: str
    nickname: Optional[str] = None
    date_of_birth: date
    gender: Gender
    school_type: Optional[SchoolType] = None
    grade: Optional[str] = None
    has_condition: bool
    diagnosis_status: Optional[DiagnosisStatus] = None
    primary_language: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    conditions: List[ConditionResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ChildSummary(BaseModel):
    id: UUID
    first_name: str
    nickname: Optional[str] = None
    date_of_birth: date
    gender: Gender

    model_config = {"from_attributes": True}


# =============================================================================
# Profile
# =============================================================================

class ProfileFields(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=200)
    relationship_to_child: Optional[str] = Field(default=None, max_length=50)
    phone_number: Optional[str] = Field(default=None, max_length=30)
    email: Optional[EmailStr] = None
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    occupation: Optional[str] = Field(default=None, max_length=100)
    education_level: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=2000)


class ProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    full_name: Optional[str] = None
    relationship_to_child: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    occupation: Optional[str] = None
    education_level: Optional[str] = None
    bio: Optional[str] = None
    onboarding_completed: bool
    completeness_score: int
    last_completed_at: Optional[datetime] = None
    children: List[ChildResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Completeness & Onboarding
# =============================================================================

class SectionScoreResponse(BaseModel):
    score: int
    max_score: int
    completed: bool
    items: Optional[Dict[str, bool]] = None
    count: Optional[int] = None


class CompletenessResponse(BaseModel):
    total_score: int
    sections: Dict[str, SectionScoreResponse]
    last_updated: Optional[datetime] = None


class RecalculateResponse(BaseModel):
    completeness_score: int
    last_completed_at: Optional[datetime] = None


class OnboardingStatusResponse(BaseModel):
    needs_onboarding: bool
    completeness_score: int
