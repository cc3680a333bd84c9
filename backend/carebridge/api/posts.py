"""
Community posts, threaded comments and moderation reports.
"""

import logging
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, get_optional_user, require_role
from ..core.database import get_db
from ..models.community import PostType, ReportStatus
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.community import (
    PostCreate,
    PostUpdate,
    PostLockRequest,
    PostResponse,
    PostListResponse,
    CommentCreate,
    CommentUpdate,
    CommentResponse,
    CommentThreadResponse,
    VoteValue,
    VoteResult,
    BookmarkStatus,
    ReportCreate,
    ReportResolve,
    ReportResponse,
    ReportPage,
)
from ..services.bookmarks import BookmarkService
from ..services.comments import CommentService
from ..services.posts import PostService
from ..services.votes import VoteService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["Community"])
comments_router = APIRouter(prefix="/api/comments", tags=["Community"])
reports_router = APIRouter(prefix="/api/reports", tags=["Moderation"])


# =============================================================================
# Posts
# =============================================================================

@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).create_post(user, payload.model_dump())


@router.get("", response_model=PostListResponse)
async def list_posts(
    post_type: Optional[PostType] = Query(default=None, alias="type"),
    category: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    sort: Literal["recent", "popular", "trending"] = "recent",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Public feed. Signed-in callers also get their own vote and bookmark
    state on every post.
    """
    return PostService(db).list_posts(
        user,
        post_type=post_type.value if post_type else None,
        category=category,
        search=search,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: UUID,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return PostService(db).get_post(user, post_id)


@router.patch("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: UUID,
    payload: PostUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).update_post(user, post_id, payload.model_dump(exclude_unset=True))


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    PostService(db).delete_post(user, post_id)
    return MessageResponse(message="Post deleted")


@router.post("/{post_id}/lock", response_model=PostResponse)
async def lock_post(
    post_id: UUID,
    payload: PostLockRequest,
    user: User = Depends(require_role("moderator")),
    db: Session = Depends(get_db),
):
    return PostService(db).set_locked(user, post_id, payload.locked)


@router.post("/{post_id}/vote", response_model=VoteResult)
async def vote_on_post(
    post_id: UUID,
    payload: VoteValue,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    vote = VoteService(db).cast(user, payload.value, post_id=post_id)
    return VoteResult(removed=vote is None, vote=vote)


@router.post("/{post_id}/bookmark", response_model=BookmarkStatus)
async def bookmark_post(
    post_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookmarkService(db).toggle(user, post_id=post_id)


@router.post("/{post_id}/report", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def report_post(
    post_id: UUID,
    payload: ReportCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PostService(db).report(user, post_id, payload.reason, payload.details)


# =============================================================================
# Comments
# =============================================================================

@router.get("/{post_id}/comments", response_model=CommentThreadResponse)
async def comment_thread(
    post_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return CommentService(db).thread(post_id, page, limit)


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: UUID,
    payload: CommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CommentService(db).create(user, post_id, payload.content, payload.parent_id)


@comments_router.get("/{comment_id}", response_model=CommentResponse)
async def get_comment(comment_id: UUID, db: Session = Depends(get_db)):
    return CommentService(db).get(comment_id)


@comments_router.get("/{comment_id}/replies", response_model=List[CommentResponse])
async def comment_replies(comment_id: UUID, db: Session = Depends(get_db)):
    return CommentService(db).replies(comment_id)


@comments_router.patch("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: UUID,
    payload: CommentUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CommentService(db).update(user, comment_id, payload.content)


@comments_router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    CommentService(db).delete(user, comment_id)
    return MessageResponse(message="Comment deleted")


@comments_router.post("/{comment_id}/vote", response_model=VoteResult)
async def vote_on_comment(
    comment_id: UUID,
    payload: VoteValue,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    vote = VoteService(db).cast(user, payload.value, comment_id=comment_id)
    return VoteResult(removed=vote is None, vote=vote)


# =============================================================================
# Reports (moderators)
# =============================================================================

@reports_router.get("", response_model=ReportPage, dependencies=[Depends(require_role("moderator"))])
async def list_reports(
    report_status: Optional[ReportStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return PostService(db).list_reports(report_status.value if report_status else None, page, limit)


@reports_router.patch("/{report_id}", response_model=ReportResponse)
async def resolve_report(
    report_id: UUID,
    payload: ReportResolve,
    user: User = Depends(require_role("moderator")),
    db: Session = Depends(get_db),
):
    report = PostService(db).resolve_report(report_id, payload.status.value)
    logger.info(f"Report {report_id} marked {payload.status.value} by {user.id}")
    return report
