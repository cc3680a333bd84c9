"""
Community schemas: posts, threaded comments, votes, bookmarks and reports.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.community import PostType, ReportStatus
from .user import UserSummary


# =============================================================================
# Posts
# =============================================================================


class PostCreate(BaseModel):
    type: PostType = PostType.DISCUSSION
    title: str = Field(..., min_length=3, max_length=300)
    content: str = Field(..., min_length=1)
    category: Optional[str] = Field(default=None, max_length=100)
    tags: List[str] = Field(default=[], max_length=10)
    is_anonymous: bool = False


class PostUpdate(BaseModel):
    type: Optional[PostType] = None
    title: Optional[str] = Field(default=None, min_length=3, max_length=300)
    content: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[List[str]] = Field(default=None, max_length=10)


class PostLockRequest(BaseModel):
    locked: bool = True


class PostResponse(BaseModel):
    id: UUID
    type: PostType
    title: str
    content: str
    category: Optional[str] = None
    tags: List[str] = []
    is_anonymous: bool
    is_locked: bool
    author: Optional[UserSummary] = None
    upvotes: int
    downvotes: int
    view_count: int
    comment_count: int
    user_vote: Optional[int] = None
    is_bookmarked: bool = False
    created_at: datetime
    updated_at: datetime


class PostListResponse(BaseModel):
    posts: List[PostResponse]
    total: int
    page: int
    pages: int
    has_more: bool


# =============================================================================
# Comments
# =============================================================================


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    parent_id: Optional[UUID] = None


class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    id: UUID
    post_id: UUID
    parent_id: Optional[UUID] = None
    content: str
    author: Optional[UserSummary] = None
    upvotes: int
    downvotes: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CommentThreadItem(CommentResponse):
    replies: List[CommentResponse] = []


class CommentThreadResponse(BaseModel):
    items: List[CommentThreadItem]
    total: int
    page: int
    limit: int
    pages: int
    has_more: bool


# =============================================================================
# Votes
# =============================================================================


class VoteRequest(BaseModel):
    """Vote on exactly one post or one comment. Repeating a vote removes it."""

    value: Literal[1, -1]
    post_id: Optional[UUID] = None
    comment_id: Optional[UUID] = None

    @model_validator(mode="after")
    def exactly_one_target(self):
        if (self.post_id is None) == (self.comment_id is None):
            raise ValueError("Provide exactly one of post_id or comment_id")
        return self


class VoteValue(BaseModel):
    value: Literal[1, -1]


class VoteResponse(BaseModel):
    id: UUID
    user_id: UUID
    post_id: Optional[UUID] = None
    comment_id: Optional[UUID] = None
    value: int
    created_at: datetime

    model_config = {"from_attributes": True}


class VoteResult(BaseModel):
    removed: bool
    vote: Optional[VoteResponse] = None


class VoteCounts(BaseModel):
    upvotes: int
    downvotes: int
    total_votes: int
    score: int


class VoteStats(BaseModel):
    total_votes: int
    upvotes_given: int
    downvotes_given: int
    posts_voted: int
    comments_voted: int


class VotePage(BaseModel):
    items: List[VoteResponse]
    total: int
    page: int
    limit: int
    pages: int
    has_more: bool


# =============================================================================
# Bookmarks
# =============================================================================


class BookmarkToggleRequest(BaseModel):
    post_id: Optional[UUID] = None
    question_id: Optional[UUID] = None

    @model_validator(mode="after")
    def exactly_one_target(self):
        if (self.post_id is None) == (self.question_id is None):
            raise ValueError("Provide exactly one of post_id or question_id")
        return self


class BookmarkStatus(BaseModel):
    bookmarked: bool


class BookmarkResponse(BaseModel):
    id: UUID
    post_id: Optional[UUID] = None
    question_id: Optional[UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookmarkPage(BaseModel):
    items: List[BookmarkResponse]
    total: int
    page: int
    limit: int
    pages: int
    has_more: bool


class BookmarkStats(BaseModel):
    total: int
    posts: int
    questions: int


# =============================================================================
# Reports
# =============================================================================


class ReportCreate(BaseModel):
    reason: str = Field(..., min_length=1, max_length=100)
    details: Optional[str] = Field(default=None, max_length=2000)


class ReportResolve(BaseModel):
    status: ReportStatus


class ReportResponse(BaseModel):
    id: UUID
    post_id: UUID
    reporter_id: UUID
    reason: str
    details: Optional[str] = None
    status: ReportStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class ReportPage(BaseModel):
    items: List[ReportResponse]
    total: int
    page: int
    limit: int
    pages: int
    has_more: bool
