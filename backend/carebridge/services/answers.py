"""
Answers to community questions, acceptance and helpfulness votes.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.qa import Answer, AnswerVote, Question, QuestionStatus
from ..models.user import User


logger = logging.getLogger(__name__)

ANSWER_REPUTATION = 5
ACCEPTED_REPUTATION = 15
HELPFUL_VOTE_REPUTATION = 2

VOTE_VALUES = {"helpful": 1, "not_helpful": -1}


class AnswerService:
    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get(self, answer_id: UUID) -> Answer:
        answer = self.db.query(Answer).filter(Answer.id == answer_id).first()
        if not answer:
            raise NotFoundError("Answer not found")
        return answer

    def _get_question(self, question_id: UUID) -> Question:
        question = self.db.query(Question).filter(Question.id == question_id).first()
        if not question:
            raise NotFoundError("Question not found")
        return question

    def _adjust_reputation(self, user_id: UUID, delta: int) -> None:
        if not delta:
            return
        author = self.db.query(User).filter(User.id == user_id).first()
        if author:
            author.reputation = (author.reputation or 0) + delta

    def _recount_answers(self, question: Question) -> None:
        question.answer_count = self.db.query(Answer).filter(Answer.question_id == question.id).count()
        question.has_accepted_answer = (
            self.db.query(Answer.id)
            .filter(Answer.question_id == question.id, Answer.is_accepted.is_(True))
            .first()
            is not None
        )

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, user: User, question_id: UUID, content: str) -> Answer:
        question = self._get_question(question_id)
        if question.status == QuestionStatus.CLOSED:
            raise ForbiddenError("Question is closed")

        existing = (
            self.db.query(Answer.id)
            .filter(Answer.question_id == question_id, Answer.author_id == user.id)
            .first()
        )
        if existing:
            raise BadRequestError("You have already answered this question")

        answer = Answer(question_id=question_id, author_id=user.id, content=content)
        with transaction(self.db):
            self.db.add(answer)
            self.db.flush()
            self._recount_answers(question)
            question.last_activity_at = utcnow()
            self._adjust_reputation(user.id, ANSWER_REPUTATION)

        logger.info(f"Answer {answer.id} posted on question {question_id}")
        return answer

    def list_for_question(self, question_id: UUID) -> list[Answer]:
        self._get_question(question_id)
        return (
            self.db.query(Answer)
            .filter(Answer.question_id == question_id)
            .order_by(Answer.is_accepted.desc(), Answer.quality_score.desc(), Answer.created_at.asc())
            .all()
        )

    def update(self, user: User, answer_id: UUID, content: str) -> Answer:
        answer = self._get(answer_id)
        if answer.author_id != user.id:
            raise ForbiddenError("You can only edit your own answers")

        with transaction(self.db):
            answer.content = content
            answer.question.last_activity_at = utcnow()
        return answer

    def delete(self, user: User, answer_id: UUID) -> None:
        answer = self._get(answer_id)
        if answer.author_id != user.id:
            raise ForbiddenError("You can only delete your own answers")

        question = answer.question
        with transaction(self.db):
            self.db.delete(answer)
            self.db.flush()
            self._recount_answers(question)

    # =========================================================================
    # Acceptance
    # =========================================================================

    def accept(self, user: User, question_id: UUID, answer_id: UUID) -> Answer:
        question = self._get_question(question_id)
        if question.author_id != user.id:
            raise ForbiddenError("Only question author can accept answers")

        answer = self._get(answer_id)
        if answer.question_id != question_id:
            raise NotFoundError("Answer not found")
        if answer.is_accepted:
            return answer

        previous = (
            self.db.query(Answer)
            .filter(Answer.question_id == question_id, Answer.is_accepted.is_(True))
            .first()
        )

        with transaction(self.db):
            if previous:
                previous.is_accepted = False
                previous.accepted_at = None
                self._adjust_reputation(previous.author_id, -ACCEPTED_REPUTATION)

            answer.is_accepted = True
            answer.accepted_at = utcnow()
            question.has_accepted_answer = True
            question.last_activity_at = utcnow()
            self._adjust_reputation(answer.author_id, ACCEPTED_REPUTATION)

        logger.info(f"Answer {answer_id} accepted on question {question_id}")
        return answer

    # =========================================================================
    # Helpfulness Votes
    # =========================================================================

    def vote(self, user: User, answer_id: UUID, vote_type: str) -> dict[str, Any]:
        if vote_type not in VOTE_VALUES:
            raise BadRequestError("Vote must be 'helpful' or 'not_helpful'")
        value = VOTE_VALUES[vote_type]
        answer = self._get(answer_id)

        existing = (
            self.db.query(AnswerVote)
            .filter(AnswerVote.answer_id == answer_id, AnswerVote.user_id == user.id)
            .first()
        )

        current: Optional[int]
        delta = 0
        with transaction(self.db):
            if existing and existing.value == value:
                self.db.delete(existing)
                delta = -value * HELPFUL_VOTE_REPUTATION
                current = None
            elif existing:
                delta = (value - existing.value) * HELPFUL_VOTE_REPUTATION
                existing.value = value
                current = value
            else:
                self.db.add(AnswerVote(answer_id=answer_id, user_id=user.id, value=value))
                delta = value * HELPFUL_VOTE_REPUTATION
                current = value

            self.db.flush()
            rows = (
                self.db.query(AnswerVote.value, func.count(AnswerVote.id))
                .filter(AnswerVote.answer_id == answer_id)
                .group_by(AnswerVote.value)
                .all()
            )
            counts = {v: c for v, c in rows}
            answer.helpful_count = counts.get(1, 0)
            answer.not_helpful_count = counts.get(-1, 0)
            answer.quality_score = answer.helpful_count - answer.not_helpful_count

            if answer.author_id != user.id:
                self._adjust_reputation(answer.author_id, delta)

        return {
            "user_vote": {1: "helpful", -1: "not_helpful"}.get(current),
            "helpful_count": answer.helpful_count,
            "not_helpful_count": answer.not_helpful_count,
            "quality_score": answer.quality_score,
        }
