"""
Case document and document share schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.case_document import CaseDocumentType
from .user import UserSummary


class CaseDocumentCreate(BaseModel):
    type: CaseDocumentType
    title: str = Field(..., min_length=1, max_length=300)
    content: Optional[str] = None
    file_url: Optional[str] = Field(default=None, max_length=1000)


class CaseDocumentResponse(BaseModel):
    id: UUID
    case_id: UUID
    type: CaseDocumentType
    title: str
    content: Optional[str] = None
    file_url: Optional[str] = None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CaseDocumentListResponse(BaseModel):
    items: List[CaseDocumentResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False


class DocumentShareCreate(BaseModel):
    shared_with_user_id: UUID
    document_id: Optional[UUID] = Field(
        default=None,
        description="Omit to share every document of the case"
    )


class DocumentShareResponse(BaseModel):
    id: UUID
    case_id: UUID
    document_id: Optional[UUID] = None
    shared_with_id: UUID
    shared_by_id: UUID
    created_at: datetime
    revoked_at: Optional[datetime] = None
    shared_with: Optional[UserSummary] = None
    document: Optional[CaseDocumentResponse] = None

    model_config = {"from_attributes": True}
