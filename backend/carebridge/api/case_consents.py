"""
Case consent endpoints and the compliance check.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.auth import require_case_access
from ..core.database import get_db
from ..core.types import utcnow
from ..models.consent import CaseConsent
from ..schemas.consent import ConsentCreate, ConsentResponse, ComplianceResponse
from ..services.case_access import CaseAccess
from ..services.case_consents import CaseConsentService, consent_state


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases/{case_id}/consents", tags=["Case Consents"])


def _with_state(consent: CaseConsent, now=None) -> ConsentResponse:
    response = ConsentResponse.model_validate(consent)
    return response.model_copy(update=consent_state(consent, now))


@router.post("", response_model=ConsentResponse, status_code=status.HTTP_201_CREATED)
async def create_consent(
    payload: ConsentCreate,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    """Grant a consent. The grantor is the caller."""
    consent = CaseConsentService(db).create_consent(access, payload.model_dump())
    return _with_state(consent)


@router.get("", response_model=List[ConsentResponse])
async def list_consents(
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    now = utcnow()
    return [_with_state(c, now) for c in CaseConsentService(db).list_consents(access)]


@router.get("/compliance", response_model=ComplianceResponse)
async def consent_compliance(
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseConsentService(db).compliance(access)


@router.post("/{consent_id}/revoke", response_model=ConsentResponse)
async def revoke_consent(
    consent_id: UUID,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    consent = CaseConsentService(db).revoke_consent(access, consent_id)
    return _with_state(consent)
