"""
Developmental screening schemas.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.assessment import AccessLevel, AnswerType, AssessmentStatus
from .profile import ChildSummary
from .user import UserSummary


class AssessmentCreate(BaseModel):
    child_id: UUID
    age_group: str = Field(..., min_length=1, max_length=30)


class AssessmentResponse(BaseModel):
    id: UUID
    child_id: UUID
    age_group: str
    status: AssessmentStatus
    tier1_completed: bool
    tier2_completed: bool
    tier1_completed_at: Optional[datetime] = None
    tier2_completed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    domain_scores: Optional[Dict[str, Any]] = None
    flagged_domains: List[str] = []
    overall_score: Optional[float] = None
    response_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssessmentDetail(AssessmentResponse):
    child: ChildSummary


# =============================================================================
# Questionnaires and answers
# =============================================================================

class QuestionnaireDomain(BaseModel):
    domain_id: str
    domain_name: str
    description: str
    questions: List[Dict[str, Any]]


class QuestionnaireResponse(BaseModel):
    age_group: str
    display_name: str
    estimated_time: str
    flagged_domains: Optional[List[str]] = None
    domains: List[QuestionnaireDomain]


class AnswerItem(BaseModel):
    question_id: str = Field(..., min_length=1, max_length=50)
    answer: AnswerType


class AnswersSubmit(BaseModel):
    responses: List[AnswerItem] = Field(..., min_length=1)


class DomainScoreResponse(BaseModel):
    domain_id: str
    domain_name: str
    risk_index: float
    status: str
    tier2_required: bool
    tier2_reason: Optional[str] = None
    red_flag_violations: List[str] = []


class Tier1Result(BaseModel):
    tier2_required: bool
    flagged_domains: List[str]
    domain_scores: List[DomainScoreResponse]
    overall_score: float
    assessment: AssessmentResponse


class Tier2Result(BaseModel):
    completed: bool
    assessment: AssessmentResponse


# =============================================================================
# Sharing
# =============================================================================

class ShareCreate(BaseModel):
    therapist_id: UUID
    access_level: AccessLevel = AccessLevel.VIEW


class ShareResponse(BaseModel):
    id: UUID
    assessment_id: UUID
    shared_by_id: UUID
    shared_with_id: UUID
    access_level: AccessLevel
    is_active: bool
    annotations: Optional[Dict[str, Any]] = None
    shared_at: datetime

    model_config = {"from_attributes": True}


class SharedAssessment(ShareResponse):
    assessment: AssessmentDetail
    shared_by: UserSummary


class AnnotationCreate(BaseModel):
    notes: str = Field(..., min_length=1, max_length=5000)
    domain: Optional[str] = None
    question_id: Optional[str] = None
    section_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# Reports
# =============================================================================

class ReportDomain(BaseModel):
    domain_id: str
    domain_name: str
    risk_index: float
    status: str
    zone: str
    tier2_required: bool
    tier2_reason: Optional[str] = None
    interpretation: str
    recommendations: List[Dict[str, str]]


class ReportAnswer(BaseModel):
    id: UUID
    tier: int
    domain: str
    question_id: str
    answer: AnswerType
    score: float
    question: Optional[str] = None


class ReportSummary(BaseModel):
    id: UUID
    status: AssessmentStatus
    completed_at: Optional[datetime] = None
    overall_score: Optional[float] = None


class ReportChild(BaseModel):
    id: UUID
    first_name: str
    date_of_birth: date


class AssessmentReport(BaseModel):
    assessment: ReportSummary
    child: ReportChild
    age_group: str
    domain_scores: List[ReportDomain]
    recommendations: List[str]
    responses: List[ReportAnswer]
    developmental_age_equivalent: str
    overall_interpretation: str


class HistoryDomain(BaseModel):
    name: str
    domain_id: str
    score: int
    max_score: int


class HistoryEntry(BaseModel):
    id: UUID
    completed_at: datetime
    total_score: float
    domains: List[HistoryDomain]


class AssessmentHistory(BaseModel):
    child_id: UUID
    child_name: str
    results: List[HistoryEntry]
