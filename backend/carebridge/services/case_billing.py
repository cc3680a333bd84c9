"""
Per-session billing records for a case.
"""

import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.billing import CaseBilling, BillingStatus
from ..models.case_session import CaseSession
from .audit import AuditService
from .case_access import CaseAccess
from .pagination import paginate_by_cursor


logger = logging.getLogger(__name__)

BILLING_UPDATE_FIELDS = ("amount", "service_code", "invoice_url", "status", "due_date")


class CaseBillingService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def create_billing(self, access: CaseAccess, data: dict[str, Any]) -> CaseBilling:
        session_id = data.get("session_id")
        if session_id:
            session = (
                self.db.query(CaseSession.id)
                .filter(CaseSession.id == session_id, CaseSession.case_id == access.case.id)
                .first()
            )
            if not session:
                raise NotFoundError("Session not found for this case")
            if self.db.query(CaseBilling.id).filter(CaseBilling.session_id == session_id).first():
                raise BadRequestError("Billing record already exists for this session")

        if data["amount"] < 0:
            raise BadRequestError("Amount cannot be negative")

        record = CaseBilling(
            case_id=access.case.id,
            session_id=session_id,
            amount=data["amount"],
            service_code=data.get("service_code"),
            invoice_url=data.get("invoice_url"),
            due_date=data.get("due_date"),
            status=BillingStatus.PENDING,
        )
        with transaction(self.db):
            self.db.add(record)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "BILLING_CREATED", "CaseBilling", record.id,
                {"session_id": str(session_id) if session_id else None},
            )
        return record

    def summary(self, case_id: UUID) -> dict[str, Any]:
        rows = (
            self.db.query(CaseBilling.status, func.sum(CaseBilling.amount), func.count(CaseBilling.id))
            .filter(CaseBilling.case_id == case_id)
            .group_by(CaseBilling.status)
            .all()
        )
        totals = {status: float(total or 0) for status, total, _ in rows}
        return {
            "total_billed": round(sum(totals.values()), 2),
            "total_paid": round(totals.get(BillingStatus.PAID, 0.0), 2),
            "total_pending": round(
                totals.get(BillingStatus.PENDING, 0.0) + totals.get(BillingStatus.SUBMITTED, 0.0), 2
            ),
            "total_overdue": round(totals.get(BillingStatus.OVERDUE, 0.0), 2),
            "record_count": sum(count for _, _, count in rows),
        }

    def list_billing(
        self,
        access: CaseAccess,
        status: Optional[BillingStatus] = None,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        query = self.db.query(CaseBilling).filter(CaseBilling.case_id == access.case.id)
        if status:
            query = query.filter(CaseBilling.status == status)
        page = paginate_by_cursor(query, CaseBilling, cursor, limit)
        page["summary"] = self.summary(access.case.id)
        return page

    def update_billing(self, access: CaseAccess, billing_id: UUID, data: dict[str, Any]) -> CaseBilling:
        record = (
            self.db.query(CaseBilling)
            .filter(CaseBilling.id == billing_id, CaseBilling.case_id == access.case.id)
            .first()
        )
        if not record:
            raise NotFoundError("Billing record not found")

        changed = [k for k in data if k in BILLING_UPDATE_FIELDS and data[k] is not None]
        with transaction(self.db):
            for key in changed:
                setattr(record, key, data[key])
            if data.get("status") == BillingStatus.PAID and record.paid_at is None:
                record.paid_at = utcnow()
            self.audit.log(
                access.case.id, access.user.id, "BILLING_UPDATED", "CaseBilling", record.id,
                {"fields": changed},
            )
        return record

    def mark_overdue(self, today: Optional[date] = None) -> int:
        """Move PENDING records past their due date to OVERDUE."""
        today = today or utcnow().date()
        records = (
            self.db.query(CaseBilling)
            .filter(
                CaseBilling.status == BillingStatus.PENDING,
                CaseBilling.due_date.isnot(None),
                CaseBilling.due_date < today,
            )
            .all()
        )
        with transaction(self.db):
            for record in records:
                record.status = BillingStatus.OVERDUE
                self.audit.log(
                    record.case_id, None, "BILLING_OVERDUE", "CaseBilling", record.id,
                    {"due_date": record.due_date.isoformat()},
                )

        if records:
            logger.info(f"Marked {len(records)} billing records overdue")
        return len(records)
