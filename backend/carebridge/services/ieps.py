"""
IEP (individualised education plan) service.

IEPs are versioned per case. A new version archives the current one and
copies its goals. Templates and the goal bank are shared libraries scoped
by owner, organization or the global flag.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.iep import IEP, IEPGoal, IEPTemplate, GoalBankItem, IEPStatus
from ..models.user import User
from .audit import AuditService
from .case_access import CaseAccess


logger = logging.getLogger(__name__)

IEP_UPDATE_FIELDS = ("status", "review_date", "accommodations", "services_tracking", "meeting_notes")
GOAL_FIELDS = (
    "domain", "goal_text", "target_date", "baseline_screening_id",
    "linked_screening_indicators", "current_progress", "status", "order",
)
APPROVAL_ROLES = ("therapist", "parent")


class IEPService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # =========================================================================
    # IEPs
    # =========================================================================

    def _get(self, access: CaseAccess, iep_id: UUID) -> IEP:
        iep = (
            self.db.query(IEP)
            .options(selectinload(IEP.goals))
            .filter(IEP.id == iep_id, IEP.case_id == access.case.id)
            .first()
        )
        if not iep:
            raise NotFoundError("IEP not found")
        return iep

    def _latest(self, case_id: UUID) -> Optional[IEP]:
        return (
            self.db.query(IEP)
            .filter(IEP.case_id == case_id)
            .order_by(IEP.version.desc())
            .first()
        )

    def create_iep(self, access: CaseAccess, data: dict[str, Any]) -> IEP:
        template_id = data.get("template_id")
        if template_id and not self.db.query(IEPTemplate.id).filter(IEPTemplate.id == template_id).first():
            raise NotFoundError("Template not found")

        latest = self._latest(access.case.id)
        iep = IEP(
            case_id=access.case.id,
            version=(latest.version + 1) if latest else 1,
            previous_version_id=latest.id if latest else None,
            status=IEPStatus.DRAFT,
            created_by_id=access.user.id,
            template_id=template_id,
            review_date=data.get("review_date"),
            accommodations=data.get("accommodations"),
            services_tracking=data.get("services_tracking"),
            meeting_notes=data.get("meeting_notes"),
        )
        for order, goal_data in enumerate(data.get("goals") or [], start=1):
            goal_data = dict(goal_data)
            goal_data.setdefault("order", order)
            iep.goals.append(IEPGoal(**{k: v for k, v in goal_data.items() if k in GOAL_FIELDS and v is not None}))

        with transaction(self.db):
            self.db.add(iep)
            self.db.flush()
            self.audit.log(access.case.id, access.user.id, "IEP_CREATED", "IEP", iep.id, {"version": iep.version})

        return iep

    def list_ieps(self, access: CaseAccess, status: Optional[IEPStatus] = None) -> list[IEP]:
        query = (
            self.db.query(IEP)
            .options(selectinload(IEP.goals))
            .filter(IEP.case_id == access.case.id)
        )
        if status:
            query = query.filter(IEP.status == status)
        return query.order_by(IEP.version.desc()).all()

    def get_iep(self, access: CaseAccess, iep_id: UUID) -> IEP:
        return self._get(access, iep_id)

    def update_iep(self, access: CaseAccess, iep_id: UUID, data: dict[str, Any]) -> IEP:
        iep = self._get(access, iep_id)
        changed = [k for k in data if k in IEP_UPDATE_FIELDS]

        with transaction(self.db):
            for key in changed:
                setattr(iep, key, data[key])
            self.audit.log(access.case.id, access.user.id, "IEP_UPDATED", "IEP", iep.id, {"fields": changed})
        return iep

    def approve_iep(self, access: CaseAccess, iep_id: UUID, role: str) -> IEP:
        """
        Record a therapist or parent approval.

        The IEP becomes APPROVED once both sides have approved.
        """
        if role not in APPROVAL_ROLES:
            raise BadRequestError("Role must be therapist or parent")
        if role == "parent" and not (access.is_parent or access.is_admin):
            raise ForbiddenError("Only the child's parent can approve as parent")
        if role == "therapist" and not access.can_edit:
            raise ForbiddenError("No edit permission on this case")

        iep = self._get(access, iep_id)
        now = utcnow()

        if role == "therapist":
            if iep.approved_by_therapist_at:
                raise BadRequestError("Already approved by therapist")
            iep.approved_by_therapist_at = now
        else:
            if iep.approved_by_parent_at:
                raise BadRequestError("Already approved by parent")
            iep.approved_by_parent_at = now

        with transaction(self.db):
            if iep.approved_by_therapist_at and iep.approved_by_parent_at:
                iep.status = IEPStatus.APPROVED
            self.audit.log(access.case.id, access.user.id, f"IEP_APPROVED_BY_{role.upper()}", "IEP", iep.id)

        return iep

    def create_new_version(self, access: CaseAccess, iep_id: UUID) -> IEP:
        """Archive ``iep_id`` and create version + 1 with copies of its goals."""
        current = self._get(access, iep_id)
        latest = self._latest(access.case.id)

        new_iep = IEP(
            case_id=access.case.id,
            version=latest.version + 1,
            previous_version_id=current.id,
            status=IEPStatus.DRAFT,
            created_by_id=access.user.id,
            template_id=current.template_id,
            review_date=current.review_date,
            accommodations=current.accommodations,
            services_tracking=current.services_tracking,
        )
        for goal in current.goals:
            new_iep.goals.append(
                IEPGoal(
                    domain=goal.domain,
                    goal_text=goal.goal_text,
                    target_date=goal.target_date,
                    baseline_screening_id=goal.baseline_screening_id,
                    linked_screening_indicators=goal.linked_screening_indicators,
                    current_progress=goal.current_progress,
                    status=goal.status,
                    order=goal.order,
                )
            )

        with transaction(self.db):
            current.status = IEPStatus.ARCHIVED
            self.db.add(new_iep)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "IEP_NEW_VERSION", "IEP", new_iep.id,
                {"from_version": current.version, "to_version": new_iep.version},
            )

        logger.info(f"IEP v{new_iep.version} created for case {access.case.id}")
        return new_iep

    # =========================================================================
    # Goals
    # =========================================================================

    def _next_order(self, iep_id: UUID) -> int:
        last = self.db.query(func.max(IEPGoal.order)).filter(IEPGoal.iep_id == iep_id).scalar()
        return (last or 0) + 1

    def _get_goal(self, access: CaseAccess, iep_id: UUID, goal_id: UUID) -> IEPGoal:
        goal = (
            self.db.query(IEPGoal)
            .join(IEP, IEPGoal.iep_id == IEP.id)
            .filter(IEPGoal.id == goal_id, IEPGoal.iep_id == iep_id, IEP.case_id == access.case.id)
            .first()
        )
        if not goal:
            raise NotFoundError("Goal not found")
        return goal

    def add_goal(self, access: CaseAccess, iep_id: UUID, data: dict[str, Any]) -> IEPGoal:
        iep = self._get(access, iep_id)
        values = {k: v for k, v in data.items() if k in GOAL_FIELDS and v is not None}
        values.setdefault("order", self._next_order(iep.id))

        goal = IEPGoal(**values)
        with transaction(self.db):
            iep.goals.append(goal)
            self.db.flush()
            self.audit.log(access.case.id, access.user.id, "GOAL_ADDED", "IEPGoal", goal.id, {"iep_id": str(iep.id)})
        return goal

    def add_goals_bulk(self, access: CaseAccess, iep_id: UUID, goals: list[dict[str, Any]]) -> list[IEPGoal]:
        iep = self._get(access, iep_id)
        next_order = self._next_order(iep.id)

        created: list[IEPGoal] = []
        for data in goals:
            values = {k: v for k, v in data.items() if k in GOAL_FIELDS and v is not None}
            if "order" not in values:
                values["order"] = next_order
                next_order += 1
            created.append(IEPGoal(**values))

        with transaction(self.db):
            iep.goals.extend(created)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "GOALS_BULK_ADDED", "IEP", iep.id,
                {"count": len(created)},
            )
        return created

    def update_goal(self, access: CaseAccess, iep_id: UUID, goal_id: UUID, data: dict[str, Any]) -> IEPGoal:
        goal = self._get_goal(access, iep_id, goal_id)
        changed = [k for k in data if k in GOAL_FIELDS]

        with transaction(self.db):
            for key in changed:
                setattr(goal, key, data[key])
            self.audit.log(access.case.id, access.user.id, "GOAL_UPDATED", "IEPGoal", goal.id, {"fields": changed})
        return goal

    def delete_goal(self, access: CaseAccess, iep_id: UUID, goal_id: UUID) -> None:
        goal = self._get_goal(access, iep_id, goal_id)
        with transaction(self.db):
            self.db.delete(goal)
            self.audit.log(access.case.id, access.user.id, "GOAL_DELETED", "IEPGoal", goal_id)

    # =========================================================================
    # Templates
    # =========================================================================

    def list_templates(self, user: User, organization_id: Optional[UUID] = None) -> list[IEPTemplate]:
        conditions = [IEPTemplate.is_global.is_(True), IEPTemplate.created_by_id == user.id]
        if organization_id:
            conditions.append(IEPTemplate.organization_id == organization_id)
        return (
            self.db.query(IEPTemplate)
            .filter(or_(*conditions))
            .order_by(IEPTemplate.name.asc())
            .all()
        )

    def create_template(self, user: User, data: dict[str, Any]) -> IEPTemplate:
        template = IEPTemplate(
            name=data["name"],
            description=data.get("description"),
            content=data.get("content") or {},
            is_global=bool(data.get("is_global")),
            organization_id=data.get("organization_id"),
            created_by_id=user.id,
        )
        with transaction(self.db):
            self.db.add(template)
        return template

    def get_template(self, template_id: UUID) -> IEPTemplate:
        template = self.db.query(IEPTemplate).filter(IEPTemplate.id == template_id).first()
        if not template:
            raise NotFoundError("Template not found")
        return template

    def update_template(self, user: User, template_id: UUID, data: dict[str, Any]) -> IEPTemplate:
        template = self.get_template(template_id)
        if template.created_by_id != user.id:
            raise BadRequestError("Can only edit your own templates")

        with transaction(self.db):
            if data.get("name"):
                template.name = data["name"]
            if "description" in data:
                template.description = data["description"]
            if data.get("content"):
                template.content = data["content"]
        return template

    def delete_template(self, user: User, template_id: UUID) -> None:
        template = self.get_template(template_id)
        if template.created_by_id != user.id and not template.is_global:
            raise BadRequestError("Can only delete your own templates")

        usage = self.db.query(func.count(IEP.id)).filter(IEP.template_id == template.id).scalar()
        if usage:
            raise BadRequestError(f"Cannot delete template: {usage} IEP(s) are using it")

        with transaction(self.db):
            self.db.delete(template)

    # =========================================================================
    # Goal bank
    # =========================================================================

    def search_goal_bank(
        self,
        domain: Optional[str] = None,
        condition: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
    ) -> list[GoalBankItem]:
        query = self.db.query(GoalBankItem)
        if domain:
            query = query.filter(func.lower(GoalBankItem.domain) == domain.lower())
        if condition:
            query = query.filter(func.lower(GoalBankItem.condition) == condition.lower())
        if search:
            query = query.filter(func.lower(GoalBankItem.goal_text).like(f"%{search.lower()}%"))
        return query.order_by(GoalBankItem.domain.asc()).limit(max(1, min(limit, 100))).all()

    def create_goal_bank_item(self, user: User, data: dict[str, Any]) -> GoalBankItem:
        item = GoalBankItem(
            domain=data["domain"],
            condition=data.get("condition"),
            goal_text=data["goal_text"],
            is_global=bool(data.get("is_global")),
            organization_id=data.get("organization_id"),
            created_by_id=user.id,
        )
        with transaction(self.db):
            self.db.add(item)
        return item
