"""
Case access resolution.

Every case-scoped route resolves the caller's relationship to the case
before touching it. The outcome is a ``CaseAccess`` describing who the
caller is on this case and what they may do.

Access levels:
- view: read case data
- edit: write sessions, goals, documents and other case records
- manage: status changes, therapist assignment and transfer
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenError, NotFoundError
from ..models.case import Case, CaseTherapist
from ..models.marketplace import TherapistProfile
from ..models.user import User, UserRole


logger = logging.getLogger(__name__)

ACCESS_LEVELS = ("view", "edit", "manage")


@dataclass
class CaseAccess:
    """Resolved access of one user on one case."""
    case: Case
    user: User
    role: str  # "admin", "parent" or "therapist"
    therapist_profile: Optional[TherapistProfile] = None
    assignment: Optional[CaseTherapist] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_parent(self) -> bool:
        return self.role == "parent"

    @property
    def is_primary(self) -> bool:
        return (
            self.therapist_profile is not None
            and self.case.primary_therapist_id == self.therapist_profile.id
        )

    @property
    def can_edit(self) -> bool:
        if self.is_admin or self.is_primary:
            return True
        return self.assignment is not None and self.assignment.has_permission("can_edit")

    @property
    def can_manage(self) -> bool:
        return self.is_admin or self.is_primary

    @property
    def can_view_notes(self) -> bool:
        if self.is_parent:
            return False
        if self.can_edit:
            return True
        return self.assignment is not None and self.assignment.has_permission("can_view_notes")

    @property
    def can_manage_goals(self) -> bool:
        if self.is_admin or self.is_primary:
            return True
        return self.assignment is not None and self.assignment.has_permission("can_manage_goals")


def _parent_user_id(case: Case) -> Optional[UUID]:
    child = case.child
    if child is None or child.profile is None:
        return None
    return child.profile.user_id


def resolve_case_access(db: Session, user: User, case_id: UUID, level: str = "view") -> CaseAccess:
    """
    Resolve and enforce ``user``'s access to ``case_id`` at ``level``.

    Raises:
        NotFoundError: the case does not exist
        ForbiddenError: the user lacks the requested level
    """
    if level not in ACCESS_LEVELS:
        raise ValueError(f"Unknown case access level: {level}")

    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFoundError("Case not found")

    if user.role == UserRole.ADMIN:
        return CaseAccess(case=case, user=user, role="admin")

    if _parent_user_id(case) == user.id:
        if level != "view":
            raise ForbiddenError("Parents cannot modify case data directly")
        return CaseAccess(case=case, user=user, role="parent")

    therapist = user.therapist_profile
    if therapist is None:
        raise ForbiddenError("No access to this case")

    assignment = (
        db.query(CaseTherapist)
        .filter(
            CaseTherapist.case_id == case.id,
            CaseTherapist.therapist_id == therapist.id,
            CaseTherapist.removed_at.is_(None),
        )
        .first()
    )
    access = CaseAccess(
        case=case,
        user=user,
        role="therapist",
        therapist_profile=therapist,
        assignment=assignment,
    )

    if not access.is_primary and assignment is None:
        logger.warning(f"User {user.id} denied access to case {case.id}: not assigned")
        raise ForbiddenError("Not assigned to this case")

    if level == "manage" and not access.can_manage:
        raise ForbiddenError("Only primary therapist can perform this action")

    if level == "edit" and not access.can_edit:
        raise ForbiddenError("No edit permission on this case")

    return access
