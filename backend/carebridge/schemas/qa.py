"""
Question & answer schemas.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from ..models.qa import QuestionStatus
from .user import UserSummary


class QuestionCreate(BaseModel):
    title: str = Field(..., min_length=10, max_length=300)
    content: str = Field(..., min_length=20)
    category: str = Field(default="General", max_length=100)
    tags: List[str] = []
    is_anonymous: bool = False


class QuestionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=10, max_length=300)
    content: Optional[str] = Field(default=None, min_length=20)
    category: Optional[str] = Field(default=None, max_length=100)
    tags: Optional[List[str]] = None


class QuestionClose(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class QuestionResponse(BaseModel):
    id: UUID
    title: str
    slug: str
    content: str
    category: str
    tags: List[str] = []
    is_anonymous: bool
    anonymous_name: Optional[str] = None
    author: Optional[UserSummary] = None
    status: QuestionStatus
    closed_reason: Optional[str] = None
    closed_at: Optional[datetime] = None
    view_count: int
    answer_count: int
    follower_count: int
    has_accepted_answer: bool
    last_activity_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def hide_anonymous_author(self):
        if self.is_anonymous:
            self.author = None
        return self


class QuestionPage(BaseModel):
    items: List[QuestionResponse]
    total: int
    page: int
    limit: int
    pages: int
    has_more: bool


class FollowResult(BaseModel):
    following: bool
    follower_count: int


class AnswerCreate(BaseModel):
    content: str = Field(..., min_length=20)


class AnswerUpdate(BaseModel):
    content: str = Field(..., min_length=20)


class AnswerResponse(BaseModel):
    id: UUID
    question_id: UUID
    content: str
    author: Optional[UserSummary] = None
    is_accepted: bool
    accepted_at: Optional[datetime] = None
    helpful_count: int
    not_helpful_count: int
    quality_score: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AnswerVoteRequest(BaseModel):
    vote_type: Literal["helpful", "not_helpful"]


class AnswerVoteResult(BaseModel):
    user_vote: Optional[Literal["helpful", "not_helpful"]] = None
    helpful_count: int
    not_helpful_count: int
    quality_score: int


class QuestionDetailResponse(QuestionResponse):
    answers: List[AnswerResponse] = []
    is_following: bool = False
