"""
Parent profile, children and conditions, completeness and onboarding.

Every mutating call here recomputes and persists the completeness score.
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
from ..schemas.profile import (
    ProfileFields,
    ProfileResponse,
    ChildCreate,
    ChildUpdate,
    ChildResponse,
    ConditionCreateRequest,
    ConditionUpdate,
    ConditionResponse,
    CompletenessResponse,
    RecalculateResponse,
    OnboardingStatusResponse,
)
from ..services.profile import ProfileService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["Profile"])


# =============================================================================
# Profile
# =============================================================================

@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return the caller's profile, creating it on first access."""
    return ProfileService(db).get_profile(user)


@router.post("/me", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_my_profile(
    payload: ProfileFields,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).create_profile(user, payload.model_dump(exclude_unset=True))


@router.put("/me", response_model=ProfileResponse)
async def update_my_profile(
    payload: ProfileFields,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).update_profile(user, payload.model_dump(exclude_unset=True))


# =============================================================================
# Completeness & Onboarding
# =============================================================================

@router.get("/completeness/me", response_model=CompletenessResponse)
async def get_completeness(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).get_breakdown(user)


@router.post("/completeness/recalculate", response_model=RecalculateResponse)
async def recalculate_completeness(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).recalculate(user)


@router.post("/onboarding/complete", response_model=ProfileResponse)
async def complete_onboarding(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).complete_onboarding(user)


@router.get("/onboarding/status", response_model=OnboardingStatusResponse)
async def onboarding_status(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).onboarding_status(user)


# =============================================================================
# Children
# =============================================================================

@router.get("/children", response_model=List[ChildResponse])
async def list_children(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).list_children(user)


@router.post("/child", response_model=ChildResponse, status_code=status.HTTP_201_CREATED)
async def add_child(
    payload: ChildCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).add_child(user, payload.model_dump())


@router.get("/child/{child_id}", response_model=ChildResponse)
async def get_child(
    child_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).get_child(user, child_id)


@router.put("/child/{child_id}", response_model=ChildResponse)
async def update_child(
    child_id: UUID,
    payload: ChildUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).update_child(user, child_id, payload.model_dump(exclude_unset=True))


@router.delete("/child/{child_id}", response_model=MessageResponse)
async def delete_child(
    child_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ProfileService(db).delete_child(user, child_id)
    return MessageResponse(message="Child deleted")


# =============================================================================
# Conditions
# =============================================================================

@router.get("/child/{child_id}/conditions", response_model=List[ConditionResponse])
async def list_conditions(
    child_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).list_conditions(user, child_id)


@router.post("/child/condition", response_model=ConditionResponse, status_code=status.HTTP_201_CREATED)
async def add_condition(
    payload: ConditionCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = payload.model_dump(exclude={"child_id"})
    return ProfileService(db).add_condition(user, payload.child_id, data)


@router.put("/child/condition/{condition_id}", response_model=ConditionResponse)
async def update_condition(
    condition_id: UUID,
    payload: ConditionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ProfileService(db).update_condition(user, condition_id, payload.model_dump(exclude_unset=True))


@router.delete("/child/condition/{condition_id}", response_model=MessageResponse)
async def delete_condition(
    condition_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ProfileService(db).delete_condition(user, condition_id)
    return MessageResponse(message="Condition deleted")


# =============================================================================
# Staff lookup
# =============================================================================

@router.get(
    "/{user_id}",
    response_model=ProfileResponse,
    dependencies=[Depends(require_role("therapist", "moderator"))],
)
async def get_profile_by_user(user_id: UUID, db: Session = Depends(get_db)):
    return ProfileService(db).get_profile_by_user_id(user_id)
