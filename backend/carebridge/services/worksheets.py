"""
Worksheets and worksheet assignments.

Therapists author worksheets and assign them to a parent for one child.
The parent's first view moves the assignment to VIEWED; completing it
notifies the assigning therapist by push.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.case import Case
from ..models.profile import Child
from ..models.user import User, UserRole
from ..models.worksheet import Worksheet, WorksheetAssignment, WorksheetAssignmentStatus
from .pagination import paginate_by_page


logger = logging.getLogger(__name__)

ASSIGNMENT_PAGE_LIMIT = 12


class WorksheetService:
    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Worksheets
    # =========================================================================

    def create_worksheet(self, user: User, data: dict[str, Any]) -> Worksheet:
        worksheet = Worksheet(
            title=data["title"],
            description=data.get("description"),
            domain=data.get("domain"),
            content=data.get("content") or {},
            created_by_id=user.id,
        )
        with transaction(self.db):
            self.db.add(worksheet)
        return worksheet

    def list_my_worksheets(self, user: User) -> list[Worksheet]:
        return (
            self.db.query(Worksheet)
            .filter(Worksheet.created_by_id == user.id)
            .order_by(Worksheet.created_at.desc())
            .all()
        )

    def get_worksheet(self, worksheet_id: UUID) -> Worksheet:
        worksheet = self.db.query(Worksheet).filter(Worksheet.id == worksheet_id).first()
        if not worksheet:
            raise NotFoundError("Worksheet not found")
        return worksheet

    # =========================================================================
    # Assignments
    # =========================================================================

    def assign(self, user: User, data: dict[str, Any]) -> WorksheetAssignment:
        worksheet = self.get_worksheet(data["worksheet_id"])

        assignee = self.db.query(User).filter(User.id == data["assigned_to_id"]).first()
        if not assignee or assignee.role != UserRole.PARENT:
            raise BadRequestError("Worksheets can only be assigned to parents")

        child = self.db.query(Child).filter(Child.id == data["child_id"]).first()
        if not child:
            raise NotFoundError("Child not found")

        case_id = data.get("case_id")
        if case_id and not self.db.query(Case.id).filter(Case.id == case_id).first():
            raise NotFoundError("Case not found")

        assignment = WorksheetAssignment(
            worksheet_id=worksheet.id,
            assigned_by_id=user.id,
            assigned_to_id=assignee.id,
            child_id=child.id,
            case_id=case_id,
            due_date=data.get("due_date"),
            notes=data.get("notes"),
            status=WorksheetAssignmentStatus.ASSIGNED,
        )
        with transaction(self.db):
            self.db.add(assignment)

        self._notify(
            assignee.id,
            "New worksheet assigned",
            f"{user.name} assigned \"{worksheet.title}\"",
            {"type": "worksheet_assigned", "assignment_id": str(assignment.id)},
        )
        logger.info(f"Worksheet {worksheet.id} assigned to user {assignee.id}")
        return assignment

    def _page(self, query, status: Optional[WorksheetAssignmentStatus], page: int, limit: Optional[int]):
        if status:
            query = query.filter(WorksheetAssignment.status == status)
        query = query.options(
            selectinload(WorksheetAssignment.worksheet),
            selectinload(WorksheetAssignment.child),
        ).order_by(WorksheetAssignment.created_at.desc())

        result = paginate_by_page(query, page, limit or ASSIGNMENT_PAGE_LIMIT)
        return {
            "data": result["items"],
            "total": result["total"],
            "page": result["page"],
            "limit": result["limit"],
            "has_more": result["has_more"],
        }

    def list_sent(
        self,
        user: User,
        status: Optional[WorksheetAssignmentStatus] = None,
        child_id: Optional[UUID] = None,
        case_id: Optional[UUID] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict[str, Any]:
        query = self.db.query(WorksheetAssignment).filter(WorksheetAssignment.assigned_by_id == user.id)
        if child_id:
            query = query.filter(WorksheetAssignment.child_id == child_id)
        if case_id:
            query = query.filter(WorksheetAssignment.case_id == case_id)
        return self._page(query, status, page, limit)

    def list_received(
        self,
        user: User,
        status: Optional[WorksheetAssignmentStatus] = None,
        child_id: Optional[UUID] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict[str, Any]:
        query = self.db.query(WorksheetAssignment).filter(WorksheetAssignment.assigned_to_id == user.id)
        if child_id:
            query = query.filter(WorksheetAssignment.child_id == child_id)
        return self._page(query, status, page, limit)

    def _get_assignment(self, assignment_id: UUID) -> WorksheetAssignment:
        assignment = (
            self.db.query(WorksheetAssignment)
            .options(selectinload(WorksheetAssignment.worksheet), selectinload(WorksheetAssignment.child))
            .filter(WorksheetAssignment.id == assignment_id)
            .first()
        )
        if not assignment:
            raise NotFoundError("Assignment not found")
        return assignment

    def get_assignment(self, user: User, assignment_id: UUID) -> WorksheetAssignment:
        """
        Read an assignment. Only the assignee, the assigner and staff may read.

        The assignee's first read moves ASSIGNED to VIEWED.
        """
        assignment = self._get_assignment(assignment_id)
        is_assignee = assignment.assigned_to_id == user.id
        if not (is_assignee or assignment.assigned_by_id == user.id or user.is_staff):
            raise ForbiddenError("You do not have access to this assignment")

        if is_assignee and assignment.status == WorksheetAssignmentStatus.ASSIGNED:
            with transaction(self.db):
                assignment.status = WorksheetAssignmentStatus.VIEWED
                assignment.viewed_at = utcnow()

        return assignment

    def update_assignment(self, user: User, assignment_id: UUID, data: dict[str, Any]) -> WorksheetAssignment:
        assignment = self._get_assignment(assignment_id)
        if assignment.assigned_to_id != user.id:
            raise ForbiddenError("Only the assignee can update this assignment")

        new_status = data.get("status")
        completed_now = False
        with transaction(self.db):
            if new_status is not None:
                assignment.status = new_status
                if new_status == WorksheetAssignmentStatus.VIEWED and assignment.viewed_at is None:
                    assignment.viewed_at = utcnow()
                if new_status == WorksheetAssignmentStatus.COMPLETED and assignment.completed_at is None:
                    assignment.completed_at = utcnow()
                    completed_now = True
            if "parent_notes" in data:
                assignment.parent_notes = data["parent_notes"]

        if completed_now:
            self._notify(
                assignment.assigned_by_id,
                "Worksheet completed",
                f"{user.name} completed \"{assignment.worksheet.title}\"",
                {"type": "worksheet_completed", "assignment_id": str(assignment.id)},
            )
        return assignment

    @staticmethod
    def _notify(user_id: UUID, title: str, body: str, data: dict[str, Any]) -> None:
        try:
            from ..tasks.notification_tasks import send_push_notification

            send_push_notification.delay(str(user_id), title, body, data)
        except Exception as e:
            logger.error(f"Failed to queue push notification: {e}")
