"""
Question & answer endpoints.
"""

import logging
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, get_optional_user
from ..core.database import get_db
from ..models.qa import QuestionStatus
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.community import BookmarkStatus
from ..schemas.qa import (
    QuestionCreate,
    QuestionUpdate,
    QuestionClose,
    QuestionResponse,
    QuestionDetailResponse,
    QuestionPage,
    FollowResult,
    AnswerCreate,
    AnswerUpdate,
    AnswerResponse,
    AnswerVoteRequest,
    AnswerVoteResult,
)
from ..services.answers import AnswerService
from ..services.bookmarks import BookmarkService
from ..services.questions import QuestionService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["Q&A"])
answers_router = APIRouter(prefix="/api/answers", tags=["Q&A"])

QuestionSort = Literal["recent", "active", "popular", "unanswered", "most-followed"]


# =============================================================================
# Questions
# =============================================================================

@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    payload: QuestionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuestionService(db).create(user, payload.model_dump())


@router.get("", response_model=QuestionPage)
async def list_questions(
    question_status: Optional[QuestionStatus] = Query(default=None, alias="status"),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    sort: QuestionSort = "recent",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return QuestionService(db).list_questions(
        status=question_status.value if question_status else None,
        category=category,
        tag=tag,
        search=search,
        sort=sort,
        page=page,
        limit=limit,
    )


@router.get("/{identifier}", response_model=QuestionDetailResponse)
async def get_question(
    identifier: str,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Fetch by id or slug, with answers (accepted first) and follow state."""
    questions = QuestionService(db)
    question = questions.get(identifier)
    detail = QuestionDetailResponse.model_validate(question)
    return detail.model_copy(update={
        "answers": [AnswerResponse.model_validate(a) for a in AnswerService(db).list_for_question(question.id)],
        "is_following": questions.is_following(user, question.id) if user else False,
    })


@router.patch("/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: UUID,
    payload: QuestionUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuestionService(db).update(user, question_id, payload.model_dump(exclude_unset=True))


@router.post("/{question_id}/close", response_model=QuestionResponse)
async def close_question(
    question_id: UUID,
    payload: QuestionClose,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuestionService(db).close(user, question_id, payload.reason)


@router.delete("/{question_id}", response_model=MessageResponse)
async def delete_question(
    question_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    QuestionService(db).delete(user, question_id)
    return MessageResponse(message="Question deleted")


@router.post("/{question_id}/follow", response_model=FollowResult)
async def toggle_follow(
    question_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuestionService(db).toggle_follow(user, question_id)


@router.post("/{question_id}/bookmark", response_model=BookmarkStatus)
async def bookmark_question(
    question_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookmarkService(db).toggle(user, question_id=question_id)


# =============================================================================
# Answers
# =============================================================================

@router.get("/{question_id}/answers", response_model=List[AnswerResponse])
async def list_answers(question_id: UUID, db: Session = Depends(get_db)):
    return AnswerService(db).list_for_question(question_id)


@router.post("/{question_id}/answers", response_model=AnswerResponse, status_code=status.HTTP_201_CREATED)
async def create_answer(
    question_id: UUID,
    payload: AnswerCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AnswerService(db).create(user, question_id, payload.content)


@router.post("/{question_id}/answers/{answer_id}/accept", response_model=AnswerResponse)
async def accept_answer(
    question_id: UUID,
    answer_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AnswerService(db).accept(user, question_id, answer_id)


@answers_router.patch("/{answer_id}", response_model=AnswerResponse)
async def update_answer(
    answer_id: UUID,
    payload: AnswerUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AnswerService(db).update(user, answer_id, payload.content)


@answers_router.delete("/{answer_id}", response_model=MessageResponse)
async def delete_answer(
    answer_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AnswerService(db).delete(user, answer_id)
    return MessageResponse(message="Answer deleted")


@answers_router.post("/{answer_id}/vote", response_model=AnswerVoteResult)
async def vote_on_answer(
    answer_id: UUID,
    payload: AnswerVoteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AnswerService(db).vote(user, answer_id, payload.vote_type)
