"""
Vote endpoints for posts and comments.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.database import get_db
from ..models.user import User
from ..schemas.community import VoteRequest, VoteResult, VoteCounts, VoteStats, VotePage
from ..services.votes import VoteService


router = APIRouter(prefix="/api/votes", tags=["Community"])


@router.post("", response_model=VoteResult)
async def cast_vote(
    payload: VoteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Same value again removes the vote; the other value switches it."""
    vote = VoteService(db).cast(user, payload.value, payload.post_id, payload.comment_id)
    return VoteResult(removed=vote is None, vote=vote)


@router.get("/target", response_model=VoteCounts)
async def target_votes(
    post_id: Optional[UUID] = None,
    comment_id: Optional[UUID] = None,
    db: Session = Depends(get_db),
):
    return VoteService(db).target_votes(post_id, comment_id)


@router.get("/me", response_model=VotePage)
async def my_votes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return VoteService(db).user_votes(user, page, limit)


@router.get("/me/stats", response_model=VoteStats)
async def my_vote_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return VoteService(db).user_stats(user)
