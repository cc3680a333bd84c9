"""
Developmental screening endpoints.

Parents run and share screenings for their own children; therapists read
the ones shared with them.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, require_role
from ..core.database import get_db
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.assessment import (
    AnnotationCreate,
    AnswersSubmit,
    AssessmentCreate,
    AssessmentDetail,
    AssessmentHistory,
    AssessmentReport,
    AssessmentResponse,
    QuestionnaireResponse,
    SharedAssessment,
    ShareCreate,
    ShareResponse,
    Tier1Result,
    Tier2Result,
)
from ..services.assessments import AssessmentService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assessments", tags=["Assessments"])


def _answers(payload: AnswersSubmit) -> list:
    return [item.model_dump() for item in payload.responses]


@router.post("", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assessment(
    payload: AssessmentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).create(user, payload.child_id, payload.age_group)


@router.get("/child/{child_id}", response_model=List[AssessmentResponse])
async def list_child_assessments(
    child_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).list_for_child(user, child_id)


@router.get("/history/{child_id}", response_model=AssessmentHistory)
async def get_child_history(
    child_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).history(user, child_id)


@router.get("/shared-with-me/all", response_model=List[SharedAssessment])
async def list_shared_with_me(
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).shared_with_me(user)


@router.get("/{assessment_id}", response_model=AssessmentDetail)
async def get_assessment(
    assessment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).get(user, assessment_id)


@router.delete("/{assessment_id}", response_model=MessageResponse)
async def delete_assessment(
    assessment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AssessmentService(db).delete(user, assessment_id)
    return MessageResponse(message="Assessment deleted")


# =============================================================================
# Questionnaires and answers
# =============================================================================

@router.get("/{assessment_id}/questionnaire/tier1", response_model=QuestionnaireResponse)
async def get_tier1_questionnaire(
    assessment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).tier1_questionnaire(user, assessment_id)


@router.get("/{assessment_id}/questionnaire/tier2", response_model=QuestionnaireResponse)
async def get_tier2_questionnaire(
    assessment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).tier2_questionnaire(user, assessment_id)


@router.post("/{assessment_id}/responses/tier1", response_model=Tier1Result)
async def submit_tier1(
    assessment_id: UUID,
    payload: AnswersSubmit,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).submit_tier1(user, assessment_id, _answers(payload))


@router.post("/{assessment_id}/responses/tier2", response_model=Tier2Result)
async def submit_tier2(
    assessment_id: UUID,
    payload: AnswersSubmit,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).submit_tier2(user, assessment_id, _answers(payload))


# =============================================================================
# Sharing
# =============================================================================

@router.post("/{assessment_id}/share", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
async def share_assessment(
    assessment_id: UUID,
    payload: ShareCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).share(user, assessment_id, payload.therapist_id, payload.access_level)


@router.delete("/{assessment_id}/share/{therapist_user_id}", response_model=MessageResponse)
async def revoke_share(
    assessment_id: UUID,
    therapist_user_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AssessmentService(db).revoke_share(user, assessment_id, therapist_user_id)
    return MessageResponse(message="Share revoked")


@router.post("/{assessment_id}/annotations", response_model=ShareResponse)
async def add_annotation(
    assessment_id: UUID,
    payload: AnnotationCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).add_annotation(user, assessment_id, payload.model_dump())


@router.get("/{assessment_id}/report", response_model=AssessmentReport)
async def get_report(
    assessment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AssessmentService(db).report(user, assessment_id)
