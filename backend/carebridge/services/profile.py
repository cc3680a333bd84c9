"""
Parent profile, children and condition management.

Every mutating operation recomputes the completeness score and stamps
``last_completed_at`` in the same commit.
"""

import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.profile import UserProfile, Child, ChildCondition
from ..models.user import User
from .completeness import calculate_breakdown, calculate_score


logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "full_name", "relationship_to_child", "phone_number", "email", "city",
    "state", "country", "occupation", "education_level", "bio",
)


class ProfileService:
    """Profile, child and condition operations for the signed-in parent."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _load_profile(self, user_id: UUID) -> Optional[UserProfile]:
        return (
            self.db.query(UserProfile)
            .options(selectinload(UserProfile.children).selectinload(Child.conditions))
            .filter(UserProfile.user_id == user_id)
            .first()
        )

    def _refresh_score(self, profile: UserProfile) -> None:
        profile.completeness_score = calculate_score(profile)
        profile.last_completed_at = utcnow()

    def _require_profile(self, user: User) -> UserProfile:
        profile = self._load_profile(user.id)
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    @staticmethod
    def _check_birth_date(value: Optional[date]) -> None:
        if value is not None and value > date.today():
            raise BadRequestError("Date of birth cannot be in the future")

    # =========================================================================
    # Profile
    # =========================================================================

    def get_profile(self, user: User) -> UserProfile:
        """
        Return the caller's profile, creating or healing it on the way.

        A missing profile is seeded from the user's name and email. An
        existing profile missing either value is healed from the user.
        """
        profile = self._load_profile(user.id)
        changed = False

        if profile is None:
            profile = UserProfile(user_id=user.id, full_name=user.name, email=user.email)
            profile.children = []
            self.db.add(profile)
            changed = True
            logger.info(f"Created profile for user {user.id}")
        else:
            if not profile.full_name and user.name:
                profile.full_name = user.name
                changed = True
            if not profile.email and user.email:
                profile.email = user.email
                changed = True

        if changed:
            with transaction(self.db):
                self._refresh_score(profile)

        return profile

    def get_profile_by_user_id(self, user_id: UUID) -> UserProfile:
        profile = self._load_profile(user_id)
        if not profile:
            raise NotFoundError("Profile not found")
        return profile

    def create_profile(self, user: User, data: dict[str, Any]) -> UserProfile:
        """Create the profile, or overwrite the given fields of an existing one."""
        profile = self._load_profile(user.id)
        if profile is None:
            profile = UserProfile(user_id=user.id)
            profile.children = []
            self.db.add(profile)

        for key in PROFILE_FIELDS:
            if key in data:
                setattr(profile, key, data[key])
        if not profile.full_name:
            profile.full_name = user.name
        if not profile.email:
            profile.email = user.email

        with transaction(self.db):
            self._refresh_score(profile)
        return profile

    def update_profile(self, user: User, data: dict[str, Any]) -> UserProfile:
        profile = self.get_profile(user)
        for key in PROFILE_FIELDS:
            if key in data:
                setattr(profile, key, data[key])

        with transaction(self.db):
            self._refresh_score(profile)
        return profile

    def get_breakdown(self, user: User) -> dict[str, Any]:
        return calculate_breakdown(self._load_profile(user.id)).to_dict()

    def recalculate(self, user: User) -> dict[str, Any]:
        profile = self._require_profile(user)
        with transaction(self.db):
            self._refresh_score(profile)
        return {
            "completeness_score": profile.completeness_score,
            "last_completed_at": profile.last_completed_at,
        }

    def complete_onboarding(self, user: User) -> UserProfile:
        profile = self.get_profile(user)
        with transaction(self.db):
            profile.onboarding_completed = True
            self._refresh_score(profile)
        return profile

    def onboarding_status(self, user: User) -> dict[str, Any]:
        profile = self._load_profile(user.id)
        if profile is None:
            return {"needs_onboarding": True, "completeness_score": 0}
        return {
            "needs_onboarding": not profile.onboarding_completed,
            "completeness_score": profile.completeness_score,
        }

    # =========================================================================
    # Children
    # =========================================================================

    def list_children(self, user: User) -> list[Child]:
        return list(self.get_profile(user).children)

    def get_child(self, user: User, child_id: UUID) -> Child:
        child = (
            self.db.query(Child)
            .join(UserProfile, Child.profile_id == UserProfile.id)
            .filter(Child.id == child_id, UserProfile.user_id == user.id)
            .first()
        )
        if not child:
            raise NotFoundError("Child not found or does not belong to this user")
        return child

    def add_child(self, user: User, data: dict[str, Any]) -> Child:
        self._check_birth_date(data.get("date_of_birth"))
        profile = self.get_profile(user)

        child = Child(**data)
        profile.children.append(child)

        with transaction(self.db):
            self._refresh_score(profile)
        logger.info(f"Child {child.id} added to profile {profile.id}")
        return child

    def update_child(self, user: User, child_id: UUID, data: dict[str, Any]) -> Child:
        child = self.get_child(user, child_id)
        self._check_birth_date(data.get("date_of_birth"))

        for key, value in data.items():
            setattr(child, key, value)

        with transaction(self.db):
            self._refresh_score(child.profile)
        return child

    def delete_child(self, user: User, child_id: UUID) -> None:
        child = self.get_child(user, child_id)
        profile = child.profile

        with transaction(self.db):
            profile.children.remove(child)
            self.db.delete(child)
            self._refresh_score(profile)
        logger.info(f"Child {child_id} removed from profile {profile.id}")

    # =========================================================================
    # Conditions
    # =========================================================================

    def list_conditions(self, user: User, child_id: UUID) -> list[ChildCondition]:
        return list(self.get_child(user, child_id).conditions)

    def get_condition(self, user: User, condition_id: UUID) -> ChildCondition:
        condition = (
            self.db.query(ChildCondition)
            .join(Child, ChildCondition.child_id == Child.id)
            .join(UserProfile, Child.profile_id == UserProfile.id)
            .filter(ChildCondition.id == condition_id, UserProfile.user_id == user.id)
            .first()
        )
        if not condition:
            raise NotFoundError("Condition not found or does not belong to this user")
        return condition

    def add_condition(self, user: User, child_id: UUID, data: dict[str, Any]) -> ChildCondition:
        child = self.get_child(user, child_id)

        condition = ChildCondition(**data)
        child.conditions.append(condition)
        child.has_condition = True

        with transaction(self.db):
            self._refresh_score(child.profile)
        return condition

    def update_condition(self, user: User, condition_id: UUID, data: dict[str, Any]) -> ChildCondition:
        condition = self.get_condition(user, condition_id)
        for key, value in data.items():
            setattr(condition, key, value)

        with transaction(self.db):
            self._refresh_score(condition.child.profile)
        return condition

    def delete_condition(self, user: User, condition_id: UUID) -> None:
        condition = self.get_condition(user, condition_id)
        child = condition.child

        with transaction(self.db):
            child.conditions.remove(condition)
            self.db.delete(condition)
            if not child.conditions:
                child.has_condition = False
            self._refresh_score(child.profile)
