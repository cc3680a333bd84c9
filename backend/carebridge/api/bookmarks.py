"""
Bookmark endpoints for posts and questions.
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.database import get_db
from ..models.user import User
from ..schemas.community import (
    BookmarkToggleRequest,
    BookmarkStatus,
    BookmarkPage,
    BookmarkStats,
)
from ..services.bookmarks import BookmarkService


router = APIRouter(prefix="/api/bookmarks", tags=["Community"])


@router.post("/toggle", response_model=BookmarkStatus)
async def toggle_bookmark(
    payload: BookmarkToggleRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookmarkService(db).toggle(user, payload.post_id, payload.question_id)


@router.get("", response_model=BookmarkPage)
async def list_bookmarks(
    target_type: Optional[Literal["post", "question"]] = Query(default=None, alias="type"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookmarkService(db).list_bookmarks(user, target_type, page, limit)


@router.get("/status", response_model=BookmarkStatus)
async def bookmark_status(
    post_id: Optional[UUID] = None,
    question_id: Optional[UUID] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookmarkService(db).status(user, post_id, question_id)


@router.get("/stats", response_model=BookmarkStats)
async def bookmark_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookmarkService(db).stats(user)
