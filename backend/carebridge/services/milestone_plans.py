"""
Developmental milestone plans.

Plans are versioned per case like IEPs. Parents only see plans that have
been shared with them.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.milestone import MilestonePlan, Milestone, MilestonePlanStatus, MilestoneStatus
from .audit import AuditService
from .case_access import CaseAccess


logger = logging.getLogger(__name__)

MILESTONE_FIELDS = (
    "domain", "description", "expected_age", "target_date",
    "linked_screening_id", "status", "order",
)


class MilestonePlanService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def _get(self, access: CaseAccess, plan_id: UUID) -> MilestonePlan:
        query = (
            self.db.query(MilestonePlan)
            .options(selectinload(MilestonePlan.milestones))
            .filter(MilestonePlan.id == plan_id, MilestonePlan.case_id == access.case.id)
        )
        if access.is_parent:
            query = query.filter(MilestonePlan.shared_with_parent.is_(True))
        plan = query.first()
        if not plan:
            raise NotFoundError("Milestone plan not found")
        return plan

    def _latest_version(self, case_id: UUID) -> int:
        return self.db.query(func.max(MilestonePlan.version)).filter(MilestonePlan.case_id == case_id).scalar() or 0

    def create_plan(self, access: CaseAccess, data: Optional[dict[str, Any]] = None) -> MilestonePlan:
        data = data or {}
        latest = (
            self.db.query(MilestonePlan)
            .filter(MilestonePlan.case_id == access.case.id)
            .order_by(MilestonePlan.version.desc())
            .first()
        )
        plan = MilestonePlan(
            case_id=access.case.id,
            version=(latest.version + 1) if latest else 1,
            previous_version_id=latest.id if latest else None,
            status=MilestonePlanStatus.DRAFT,
            shared_with_parent=bool(data.get("shared_with_parent")),
            created_by_id=access.user.id,
        )
        for order, item in enumerate(data.get("milestones") or [], start=1):
            values = {k: v for k, v in item.items() if k in MILESTONE_FIELDS and v is not None}
            values.setdefault("order", order)
            plan.milestones.append(Milestone(**values))

        with transaction(self.db):
            self.db.add(plan)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "MILESTONE_PLAN_CREATED", "MilestonePlan", plan.id,
                {"version": plan.version},
            )
        return plan

    def list_plans(self, access: CaseAccess) -> list[MilestonePlan]:
        query = (
            self.db.query(MilestonePlan)
            .options(selectinload(MilestonePlan.milestones))
            .filter(MilestonePlan.case_id == access.case.id)
        )
        if access.is_parent:
            query = query.filter(MilestonePlan.shared_with_parent.is_(True))
        return query.order_by(MilestonePlan.version.desc()).all()

    def get_plan(self, access: CaseAccess, plan_id: UUID) -> MilestonePlan:
        return self._get(access, plan_id)

    def update_plan(self, access: CaseAccess, plan_id: UUID, data: dict[str, Any]) -> MilestonePlan:
        plan = self._get(access, plan_id)
        changed = [k for k in ("status", "shared_with_parent") if data.get(k) is not None]

        with transaction(self.db):
            for key in changed:
                setattr(plan, key, data[key])
            self.audit.log(
                access.case.id, access.user.id, "MILESTONE_PLAN_UPDATED", "MilestonePlan", plan.id,
                {"fields": changed},
            )
        return plan

    def create_new_version(self, access: CaseAccess, plan_id: UUID) -> MilestonePlan:
        current = self._get(access, plan_id)

        new_plan = MilestonePlan(
            case_id=access.case.id,
            version=self._latest_version(access.case.id) + 1,
            previous_version_id=current.id,
            status=MilestonePlanStatus.DRAFT,
            shared_with_parent=current.shared_with_parent,
            created_by_id=access.user.id,
        )
        for m in current.milestones:
            new_plan.milestones.append(
                Milestone(
                    domain=m.domain,
                    description=m.description,
                    expected_age=m.expected_age,
                    target_date=m.target_date,
                    linked_screening_id=m.linked_screening_id,
                    status=m.status,
                    achieved_at=m.achieved_at,
                    order=m.order,
                )
            )

        with transaction(self.db):
            current.status = MilestonePlanStatus.ARCHIVED
            self.db.add(new_plan)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "MILESTONE_PLAN_NEW_VERSION", "MilestonePlan", new_plan.id,
                {"from_version": current.version, "to_version": new_plan.version},
            )
        return new_plan

    # =========================================================================
    # Milestones
    # =========================================================================

    def _next_order(self, plan_id: UUID) -> int:
        last = self.db.query(func.max(Milestone.order)).filter(Milestone.plan_id == plan_id).scalar()
        return (last or 0) + 1

    @staticmethod
    def _build(values: dict[str, Any]) -> Milestone:
        milestone = Milestone(**values)
        if milestone.status == MilestoneStatus.ACHIEVED and milestone.achieved_at is None:
            milestone.achieved_at = utcnow()
        return milestone

    def add_milestone(self, access: CaseAccess, plan_id: UUID, data: dict[str, Any]) -> Milestone:
        plan = self._get(access, plan_id)
        values = {k: v for k, v in data.items() if k in MILESTONE_FIELDS and v is not None}
        values.setdefault("order", self._next_order(plan.id))
        milestone = self._build(values)

        with transaction(self.db):
            plan.milestones.append(milestone)
            self.db.flush()
            self.audit.log(access.case.id, access.user.id, "MILESTONE_ADDED", "Milestone", milestone.id)
        return milestone

    def add_milestones_bulk(self, access: CaseAccess, plan_id: UUID, items: list[dict[str, Any]]) -> list[Milestone]:
        plan = self._get(access, plan_id)
        next_order = self._next_order(plan.id)

        created: list[Milestone] = []
        for data in items:
            values = {k: v for k, v in data.items() if k in MILESTONE_FIELDS and v is not None}
            if "order" not in values:
                values["order"] = next_order
                next_order += 1
            created.append(self._build(values))

        with transaction(self.db):
            plan.milestones.extend(created)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "MILESTONES_BULK_ADDED", "MilestonePlan", plan.id,
                {"count": len(created)},
            )
        return created

    def _get_milestone(self, access: CaseAccess, plan_id: UUID, milestone_id: UUID) -> Milestone:
        milestone = (
            self.db.query(Milestone)
            .join(MilestonePlan, Milestone.plan_id == MilestonePlan.id)
            .filter(
                Milestone.id == milestone_id,
                Milestone.plan_id == plan_id,
                MilestonePlan.case_id == access.case.id,
            )
            .first()
        )
        if not milestone:
            raise NotFoundError("Milestone not found")
        return milestone

    def update_milestone(
        self,
        access: CaseAccess,
        plan_id: UUID,
        milestone_id: UUID,
        data: dict[str, Any],
    ) -> Milestone:
        milestone = self._get_milestone(access, plan_id, milestone_id)
        changed = [k for k in data if k in MILESTONE_FIELDS]

        with transaction(self.db):
            for key in changed:
                setattr(milestone, key, data[key])
            if data.get("status") == MilestoneStatus.ACHIEVED:
                milestone.achieved_at = utcnow()
            self.audit.log(
                access.case.id, access.user.id, "MILESTONE_UPDATED", "Milestone", milestone.id,
                {"fields": changed},
            )
        return milestone

    def delete_milestone(self, access: CaseAccess, plan_id: UUID, milestone_id: UUID) -> None:
        milestone = self._get_milestone(access, plan_id, milestone_id)
        with transaction(self.db):
            self.db.delete(milestone)
            self.audit.log(access.case.id, access.user.id, "MILESTONE_DELETED", "Milestone", milestone_id)
