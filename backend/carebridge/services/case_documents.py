"""
Case documents and parent sharing.

A share either points at one document or, with no document, grants the
user access to the case's shared material as a whole. Revoking a share
stamps ``revoked_at``; rows are never deleted.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.case_document import CaseDocument, DocumentShare, CaseDocumentType
from ..models.user import User
from .audit import AuditService
from .case_access import CaseAccess
from .pagination import paginate_by_cursor


logger = logging.getLogger(__name__)


class CaseDocumentService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    def _active_shares(self, access: CaseAccess):
        return self.db.query(DocumentShare).filter(
            DocumentShare.case_id == access.case.id,
            DocumentShare.shared_with_id == access.user.id,
            DocumentShare.revoked_at.is_(None),
        )

    def _has_case_share(self, access: CaseAccess) -> bool:
        """A share without a document opens every document of the case."""
        return self._active_shares(access).filter(DocumentShare.document_id.is_(None)).first() is not None

    def create_document(self, access: CaseAccess, data: dict[str, Any]) -> CaseDocument:
        if not data.get("content") and not data.get("file_url"):
            raise BadRequestError("Either content or fileUrl must be provided")

        document = CaseDocument(
            case_id=access.case.id,
            type=data["type"],
            title=data["title"],
            content=data.get("content"),
            file_url=data.get("file_url"),
            created_by_id=access.user.id,
        )
        with transaction(self.db):
            self.db.add(document)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "DOCUMENT_CREATED", "CaseDocument", document.id,
                {"type": document.type.value},
            )
        return document

    def list_documents(
        self,
        access: CaseAccess,
        doc_type: Optional[CaseDocumentType] = None,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> dict[str, Any]:
        query = self.db.query(CaseDocument).filter(CaseDocument.case_id == access.case.id)
        if doc_type:
            query = query.filter(CaseDocument.type == doc_type)
        if access.is_parent and not self._has_case_share(access):
            shared_ids = self._active_shares(access).with_entities(DocumentShare.document_id)
            query = query.filter(CaseDocument.id.in_(shared_ids))
        return paginate_by_cursor(query, CaseDocument, cursor, limit)

    def get_document(self, access: CaseAccess, document_id: UUID) -> CaseDocument:
        document = (
            self.db.query(CaseDocument)
            .options(selectinload(CaseDocument.shares))
            .filter(CaseDocument.id == document_id, CaseDocument.case_id == access.case.id)
            .first()
        )
        if not document:
            raise NotFoundError("Document not found")
        if access.is_parent and not self._has_case_share(access) and not any(
            s.shared_with_id == access.user.id and s.revoked_at is None for s in document.shares
        ):
            raise NotFoundError("Document not found")
        return document

    # =========================================================================
    # Shares
    # =========================================================================

    def share(
        self,
        access: CaseAccess,
        shared_with_user_id: UUID,
        document_id: Optional[UUID] = None,
    ) -> DocumentShare:
        target = self.db.query(User).filter(User.id == shared_with_user_id).first()
        if not target:
            raise NotFoundError("User to share with not found")

        if document_id is not None:
            exists = (
                self.db.query(CaseDocument.id)
                .filter(CaseDocument.id == document_id, CaseDocument.case_id == access.case.id)
                .first()
            )
            if not exists:
                raise NotFoundError("Document not found")

        duplicate = (
            self.db.query(DocumentShare.id)
            .filter(
                DocumentShare.case_id == access.case.id,
                DocumentShare.shared_with_id == target.id,
                DocumentShare.document_id.is_(None) if document_id is None else DocumentShare.document_id == document_id,
                DocumentShare.revoked_at.is_(None),
            )
            .first()
        )
        if duplicate:
            raise BadRequestError("Already shared with this user")

        share = DocumentShare(
            case_id=access.case.id,
            document_id=document_id,
            shared_with_id=target.id,
            shared_by_id=access.user.id,
        )
        with transaction(self.db):
            self.db.add(share)
            self.db.flush()
            self.audit.log(
                access.case.id, access.user.id, "DOCUMENT_SHARED", "DocumentShare", share.id,
                {"document_id": str(document_id) if document_id else None, "shared_with_id": str(target.id)},
            )
        return share

    def revoke_share(self, access: CaseAccess, share_id: UUID) -> DocumentShare:
        share = (
            self.db.query(DocumentShare)
            .filter(DocumentShare.id == share_id, DocumentShare.case_id == access.case.id)
            .first()
        )
        if not share:
            raise NotFoundError("Share not found")
        if share.revoked_at is not None:
            raise BadRequestError("Share already revoked")

        with transaction(self.db):
            share.revoked_at = utcnow()
            self.audit.log(access.case.id, access.user.id, "SHARE_REVOKED", "DocumentShare", share.id)
        return share

    def list_shares(self, access: CaseAccess, include_revoked: bool = False) -> list[DocumentShare]:
        query = (
            self.db.query(DocumentShare)
            .options(selectinload(DocumentShare.shared_with), selectinload(DocumentShare.document))
            .filter(DocumentShare.case_id == access.case.id)
        )
        if not include_revoked:
            query = query.filter(DocumentShare.revoked_at.is_(None))
        return query.order_by(DocumentShare.created_at.desc()).all()

    def shared_with_me(self, user: User) -> list[DocumentShare]:
        """Active shares granted to ``user`` across every case."""
        return (
            self.db.query(DocumentShare)
            .options(selectinload(DocumentShare.document), selectinload(DocumentShare.shared_by))
            .filter(DocumentShare.shared_with_id == user.id, DocumentShare.revoked_at.is_(None))
            .order_by(DocumentShare.created_at.desc())
            .all()
        )
