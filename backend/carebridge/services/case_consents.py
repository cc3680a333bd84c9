"""
Case consents and compliance.

A consent is active while it is neither revoked nor past ``valid_until``.
A case is compliant when TREATMENT, SHARING and ASSESSMENT consents are
all active.
"""

import logging
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.consent import CaseConsent, ConsentType, REQUIRED_CONSENT_TYPES
from .audit import AuditService
from .case_access import CaseAccess


logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30


def consent_state(consent: CaseConsent, now=None) -> dict[str, bool]:
    now = now or utcnow()
    return {
        "is_active": consent.is_active(now),
        "is_expired": consent.is_expired(now),
        "is_revoked": consent.revoked_at is not None,
    }


class CaseConsentService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    @staticmethod
    def _check_can_record(access: CaseAccess) -> None:
        if not (access.is_parent or access.can_edit):
            raise ForbiddenError("No edit permission on this case")

    def create_consent(self, access: CaseAccess, data: dict[str, Any]) -> CaseConsent:
        self._check_can_record(access)
        consent_type: ConsentType = data["type"]
        now = utcnow()

        existing = (
            self.db.query(CaseConsent)
            .filter(
                CaseConsent.case_id == access.case.id,
                CaseConsent.type == consent_type,
                CaseConsent.granted_by_id == access.user.id,
                CaseConsent.revoked_at.is_(None),
            )
            .all()
        )
        if any(c.is_active(now) for c in existing):
            raise BadRequestError(f"Active {consent_type.value} consent already exists")

        valid_until = data.get("valid_until")
        if valid_until is not None and valid_until <= now:
            raise BadRequestError("validUntil must be in the future")

        consent = CaseConsent(
            case_id=access.case.id,
            type=consent_type,
            granted_by_id=access.user.id,
            granted_at=now,
            valid_until=valid_until,
            notes=data.get("notes"),
        )
        with transaction(self.db):
            self.db.add(consent)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "CONSENT_GRANTED", "CaseConsent", consent.id,
                {"type": consent_type.value},
            )
        return consent

    def list_consents(self, access: CaseAccess) -> list[CaseConsent]:
        return (
            self.db.query(CaseConsent)
            .filter(CaseConsent.case_id == access.case.id)
            .order_by(CaseConsent.granted_at.desc())
            .all()
        )

    def revoke_consent(self, access: CaseAccess, consent_id: UUID) -> CaseConsent:
        self._check_can_record(access)
        consent = (
            self.db.query(CaseConsent)
            .filter(CaseConsent.id == consent_id, CaseConsent.case_id == access.case.id)
            .first()
        )
        if not consent:
            raise NotFoundError("Consent not found")
        if consent.revoked_at is not None:
            raise BadRequestError("Consent already revoked")

        with transaction(self.db):
            consent.revoked_at = utcnow()
            self.audit.log(
                access.case.id, access.user.id, "CONSENT_REVOKED", "CaseConsent", consent.id,
                {"type": consent.type.value},
            )
        return consent

    def compliance(self, access: CaseAccess) -> dict[str, Any]:
        now = utcnow()
        soon = now + timedelta(days=EXPIRING_SOON_DAYS)
        active = [c for c in self.list_consents(access) if c.is_active(now)]
        active_types = {c.type for c in active}

        missing = [t.value for t in REQUIRED_CONSENT_TYPES if t not in active_types]
        expiring = [c for c in active if c.valid_until is not None and c.valid_until <= soon]

        return {
            "is_compliant": not missing,
            "missing_consents": missing,
            "active_consents": len(active),
            "expiring_soon": [
                {"id": c.id, "type": c.type.value, "valid_until": c.valid_until}
                for c in expiring
            ],
        }
