"""
Case session notes and goal progress.

Sessions start as DRAFT notes and become read-only once signed. Goal
progress rows are upserted per (session, goal) and push the goal's
``current_progress`` and status forward.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.case_session import CaseSession, SessionGoalProgress, AttendanceStatus, NoteStatus
from ..models.iep import IEP, IEPGoal, GoalStatus
from ..models.marketplace import Booking
from .ai import AIService
from .audit import AuditService
from .case_access import CaseAccess
from .pagination import paginate_by_cursor


logger = logging.getLogger(__name__)

SESSION_FIELDS = (
    "scheduled_at", "session_type", "location", "actual_duration",
    "attendance_status", "raw_notes", "note_format", "structured_notes",
)


def apply_progress_to_goal(goal: IEPGoal, progress_value: Optional[float]) -> None:
    """
    Copy a logged progress value onto the goal.

    100 or more marks the goal ACHIEVED; anything strictly between 0 and
    100 marks it IN_PROGRESS.
    """
    if progress_value is None:
        return
    goal.current_progress = progress_value
    if progress_value >= 100:
        goal.status = GoalStatus.ACHIEVED
    elif progress_value > 0:
        goal.status = GoalStatus.IN_PROGRESS


class CaseSessionService:
    def __init__(self, db: Session, ai: Optional[AIService] = None):
        self.db = db
        self.audit = AuditService(db)
        self.ai = ai or AIService()

    def _get(self, access: CaseAccess, session_id: UUID) -> CaseSession:
        session = (
            self.db.query(CaseSession)
            .options(selectinload(CaseSession.goal_progress).selectinload(SessionGoalProgress.goal))
            .filter(CaseSession.id == session_id, CaseSession.case_id == access.case.id)
            .first()
        )
        if not session:
            raise NotFoundError("Session not found")
        return session

    def create(self, access: CaseAccess, data: dict[str, Any]) -> CaseSession:
        booking_id = data.get("booking_id")
        if booking_id:
            if not self.db.query(Booking.id).filter(Booking.id == booking_id).first():
                raise NotFoundError("Booking not found")
            linked = self.db.query(CaseSession.id).filter(CaseSession.booking_id == booking_id).first()
            if linked:
                raise BadRequestError("This booking is already linked to a session")

        session = CaseSession(
            case_id=access.case.id,
            therapist_id=access.user.id,
            booking_id=booking_id,
            note_status=NoteStatus.DRAFT,
            **{k: v for k, v in data.items() if k in SESSION_FIELDS and v is not None},
        )
        with transaction(self.db):
            self.db.add(session)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "SESSION_CREATED", "CaseSession", session.id,
                {"scheduled_at": session.scheduled_at.isoformat()},
            )

        logger.info(f"Session {session.id} created on case {access.case.id}")
        return session

    def list_sessions(
        self,
        access: CaseAccess,
        attendance_status: Optional[AttendanceStatus] = None,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        query = self.db.query(CaseSession).filter(CaseSession.case_id == access.case.id)
        if attendance_status:
            query = query.filter(CaseSession.attendance_status == attendance_status)
        return paginate_by_cursor(query, CaseSession, cursor, limit, order_column=CaseSession.scheduled_at)

    def get(self, access: CaseAccess, session_id: UUID) -> CaseSession:
        return self._get(access, session_id)

    def update(self, access: CaseAccess, session_id: UUID, data: dict[str, Any]) -> CaseSession:
        session = self._get(access, session_id)
        if session.note_status == NoteStatus.SIGNED:
            raise ForbiddenError("Cannot edit a signed session note")

        changed = [k for k in data if k in SESSION_FIELDS]
        with transaction(self.db):
            for key in changed:
                setattr(session, key, data[key])
            self.audit.log(
                access.case.id, access.user.id, "SESSION_UPDATED", "CaseSession", session.id,
                {"fields": changed},
            )
        return session

    def sign(self, access: CaseAccess, session_id: UUID) -> CaseSession:
        session = self._get(access, session_id)
        if session.note_status == NoteStatus.SIGNED:
            raise BadRequestError("Session note is already signed")

        with transaction(self.db):
            session.note_status = NoteStatus.SIGNED
            session.signed_at = utcnow()
            self.audit.log(access.case.id, access.user.id, "SESSION_SIGNED", "CaseSession", session.id)

        logger.info(f"Session {session.id} signed by user {access.user.id}")
        return session

    # =========================================================================
    # Goal progress
    # =========================================================================

    def _get_case_goal(self, access: CaseAccess, goal_id: UUID) -> IEPGoal:
        goal = (
            self.db.query(IEPGoal)
            .join(IEP, IEPGoal.iep_id == IEP.id)
            .filter(IEPGoal.id == goal_id, IEP.case_id == access.case.id)
            .first()
        )
        if not goal:
            raise NotFoundError("Goal not found for this case")
        return goal

    def _upsert_progress(
        self,
        session: CaseSession,
        goal: IEPGoal,
        progress_note: Optional[str],
        progress_value: Optional[float],
    ) -> SessionGoalProgress:
        entry = (
            self.db.query(SessionGoalProgress)
            .filter(SessionGoalProgress.session_id == session.id, SessionGoalProgress.goal_id == goal.id)
            .first()
        )
        if entry is None:
            entry = SessionGoalProgress(goal=goal, progress_note=progress_note, progress_value=progress_value)
            session.goal_progress.append(entry)
        else:
            if progress_note is not None:
                entry.progress_note = progress_note
            if progress_value is not None:
                entry.progress_value = progress_value

        apply_progress_to_goal(goal, progress_value)
        return entry

    def log_goal_progress(
        self,
        access: CaseAccess,
        session_id: UUID,
        goal_id: UUID,
        progress_note: Optional[str] = None,
        progress_value: Optional[float] = None,
    ) -> SessionGoalProgress:
        session = self._get(access, session_id)
        goal = self._get_case_goal(access, goal_id)

        with transaction(self.db):
            entry = self._upsert_progress(session, goal, progress_note, progress_value)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "GOAL_PROGRESS_LOGGED", "SessionGoalProgress", entry.id,
                {"goal_id": str(goal.id), "progress_value": progress_value},
            )
        return entry

    def log_goal_progress_bulk(
        self,
        access: CaseAccess,
        session_id: UUID,
        entries: list[dict[str, Any]],
    ) -> list[SessionGoalProgress]:
        """Apply each entry in order inside one transaction."""
        session = self._get(access, session_id)
        goals = [self._get_case_goal(access, e["goal_id"]) for e in entries]

        results: list[SessionGoalProgress] = []
        with transaction(self.db):
            for entry, goal in zip(entries, goals):
                results.append(
                    self._upsert_progress(session, goal, entry.get("progress_note"), entry.get("progress_value"))
                )
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "GOAL_PROGRESS_LOGGED", "CaseSession", session.id,
                {"goal_ids": [str(g.id) for g in goals]},
            )
        return results

    # =========================================================================
    # AI
    # =========================================================================

    def generate_ai_summary(self, access: CaseAccess, session_id: UUID) -> dict[str, Any]:
        session = self._get(access, session_id)
        if not session.raw_notes or not session.raw_notes.strip():
            raise NotFoundError("No raw notes to summarize for this session")

        goals = [
            {
                "domain": p.goal.domain,
                "goal_text": p.goal.goal_text,
                "progress_value": p.progress_value,
            }
            for p in session.goal_progress
            if p.goal is not None
        ]
        result = self.ai.summarize_session(
            session.raw_notes,
            session.note_format or "NARRATIVE",
            session_type=session.session_type,
            duration=session.actual_duration,
            goals=goals,
        )

        with transaction(self.db):
            session.ai_summary = result["summary"]
            self.audit.log(
                access.case.id, access.user.id, "AI_SUMMARY_GENERATED", "CaseSession", session.id,
                {"ai_generated": result["ai_generated"]},
            )

        return {"session_id": session.id, **result}

    def enhance_notes(self, access: CaseAccess, session_id: UUID, text: Optional[str] = None) -> dict[str, Any]:
        session = self._get(access, session_id)
        source = text if text is not None else session.raw_notes
        if not source or not source.strip():
            raise BadRequestError("No notes to enhance")
        return self.ai.enhance_clinical_text(source)
