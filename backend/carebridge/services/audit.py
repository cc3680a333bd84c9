"""
Case audit logging service.

Every mutation on a case or one of its records is appended to
``case_audit_logs``. The same rows are served back as the case timeline.

Entries are added to the caller's session and committed together with the
change they describe, so a rolled-back change never leaves an audit row.
"""

import logging
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from ..models.audit_log import CaseAuditLog
from .pagination import paginate_by_cursor


logger = logging.getLogger(__name__)


class AuditService:
    """
    Service for writing and reading case audit entries.

    Example usage:
        audit = AuditService(db)
        with transaction(db):
            db.add(session)
            audit.log(case.id, user.id, "SESSION_CREATED", "CaseSession", session.id)
    """

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        case_id: UUID,
        user_id: Optional[UUID],
        action: str,
        entity_type: str,
        entity_id: UUID,
        changes: Optional[dict[str, Any]] = None,
    ) -> CaseAuditLog:
        """
        Stage an audit entry on the current session.

        ``changes`` must hold field names, ids and status values only. Never
        pass note bodies or diagnoses.
        """
        entry = CaseAuditLog.create_entry(
            case_id=case_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
        )
        self.db.add(entry)
        logger.debug(f"Audit {action} on {entity_type}:{entity_id} (case {case_id})")
        return entry

    def timeline(
        self,
        case_id: UUID,
        cursor: Optional[Union[str, UUID]] = None,
        limit: Optional[int] = None,
    ) -> dict[str, Any]:
        """Cursor-paginated audit entries for a case, newest first."""
        query = (
            self.db.query(CaseAuditLog)
            .options(joinedload(CaseAuditLog.user))
            .filter(CaseAuditLog.case_id == case_id)
        )
        return paginate_by_cursor(query, CaseAuditLog, cursor, limit)
