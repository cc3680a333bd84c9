"""
Case documents and document sharing.

A share without ``document_id`` grants a parent every document of the case.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, require_case_access
from ..core.database import get_db
from ..models.case_document import CaseDocumentType
from ..models.user import User
from ..schemas.case_document import (
    CaseDocumentCreate,
    CaseDocumentResponse,
    CaseDocumentListResponse,
    DocumentShareCreate,
    DocumentShareResponse,
)
from ..services.case_access import CaseAccess
from ..services.case_documents import CaseDocumentService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases/{case_id}/documents", tags=["Case Documents"])
shared_router = APIRouter(prefix="/api/parent", tags=["Case Documents"])


@router.post("", response_model=CaseDocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    payload: CaseDocumentCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseDocumentService(db).create_document(access, payload.model_dump())


@router.get("", response_model=CaseDocumentListResponse)
async def list_documents(
    doc_type: Optional[CaseDocumentType] = Query(default=None, alias="type"),
    cursor: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=100),
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseDocumentService(db).list_documents(access, doc_type, cursor, limit)


# Fixed paths go before /{document_id}
@router.get("/shares", response_model=List[DocumentShareResponse])
async def list_shares(
    include_revoked: bool = False,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseDocumentService(db).list_shares(access, include_revoked)


@router.post("/share", response_model=DocumentShareResponse, status_code=status.HTTP_201_CREATED)
async def share_documents(
    payload: DocumentShareCreate,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    share = CaseDocumentService(db).share(access, payload.shared_with_user_id, payload.document_id)
    logger.info(f"Case {access.case.id} documents shared with user {payload.shared_with_user_id}")
    return share


@router.delete("/shares/{share_id}", response_model=DocumentShareResponse)
async def revoke_share(
    share_id: UUID,
    access: CaseAccess = Depends(require_case_access("edit")),
    db: Session = Depends(get_db),
):
    return CaseDocumentService(db).revoke_share(access, share_id)


@router.get("/{document_id}", response_model=CaseDocumentResponse)
async def get_document(
    document_id: UUID,
    access: CaseAccess = Depends(require_case_access("view")),
    db: Session = Depends(get_db),
):
    return CaseDocumentService(db).get_document(access, document_id)


@shared_router.get("/shared-documents", response_model=List[DocumentShareResponse])
async def shared_with_me(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Active shares granted to the current user, across all cases."""
    return CaseDocumentService(db).shared_with_me(user)
