"""
Community questions: slugs, anonymous display names, follows.
"""

import logging
import math
import random
import re
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.exceptions import ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.qa import Question, QuestionFollow, QuestionStatus
from ..models.user import User
from .pagination import clamp_limit, paginate_by_page


logger = logging.getLogger(__name__)

MAX_TAGS = 10
MAX_SLUG_LENGTH = 100
ANONYMOUS_ADJECTIVES = ["Curious", "Concerned", "Caring", "Thoughtful", "Wondering"]

QUESTION_SORTS = {
    "recent": (Question.created_at.desc(),),
    "active": (Question.last_activity_at.desc(),),
    "popular": (Question.view_count.desc(), Question.created_at.desc()),
    "unanswered": (Question.created_at.desc(),),
    "most-followed": (Question.follower_count.desc(), Question.created_at.desc()),
}


def slugify(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")[:MAX_SLUG_LENGTH]
    return slug.rstrip("-") or "question"


def normalize_tags(tags: Optional[list[str]]) -> list[str]:
    cleaned = [t.strip() for t in (tags or []) if t and t.strip()]
    return list(dict.fromkeys(cleaned))[:MAX_TAGS]


def anonymous_name(user_id: Union[UUID, str]) -> str:
    return f"{random.choice(ANONYMOUS_ADJECTIVES)} Parent {str(user_id)[:8]}"


class QuestionService:
    def __init__(self, db: Session):
        self.db = db

    def _unique_slug(self, title: str) -> str:
        base = slugify(title)
        slug = base
        counter = 2
        while self.db.query(Question.id).filter(Question.slug == slug).first():
            slug = f"{base}-{counter}"
            counter += 1
        return slug

    def _get(self, question_id: UUID) -> Question:
        question = self.db.query(Question).filter(Question.id == question_id).first()
        if not question:
            raise NotFoundError("Question not found")
        return question

    def _get_owned(self, user: User, question_id: UUID) -> Question:
        question = self._get(question_id)
        if question.author_id != user.id:
            raise ForbiddenError("You can only modify your own questions")
        return question

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, user: User, data: dict[str, Any]) -> Question:
        is_anonymous = bool(data.get("is_anonymous"))
        question = Question(
            author_id=user.id,
            title=data["title"].strip(),
            slug=self._unique_slug(data["title"]),
            content=data["content"],
            category=data.get("category") or "General",
            tags=normalize_tags(data.get("tags")),
            is_anonymous=is_anonymous,
            anonymous_name=anonymous_name(user.id) if is_anonymous else None,
            last_activity_at=utcnow(),
        )
        with transaction(self.db):
            self.db.add(question)

        logger.info(f"Question {question.id} created ({question.slug})")
        return question

    def list_questions(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "recent",
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        sort = sort if sort in QUESTION_SORTS else "recent"
        query = self.db.query(Question)

        if status:
            query = query.filter(Question.status == QuestionStatus(status))
        if category and category != "all":
            query = query.filter(Question.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Question.title.ilike(pattern), Question.content.ilike(pattern)))
        if sort == "unanswered":
            query = query.filter(Question.answer_count == 0)

        if tag:
            # Tags are a JSON list; filtered in Python.
            rows = [q for q in query.order_by(*QUESTION_SORTS[sort]).all() if tag in (q.tags or [])]
            page = max(page or 1, 1)
            limit = clamp_limit(limit)
            start = (page - 1) * limit
            total = len(rows)
            return {
                "items": rows[start:start + limit],
                "total": total,
                "page": page,
                "limit": limit,
                "pages": math.ceil(total / limit) if total else 0,
                "has_more": page * limit < total,
            }

        return paginate_by_page(query.order_by(*QUESTION_SORTS[sort]), page, limit)

    def get(self, identifier: str) -> Question:
        """Look up by id or slug and count the view."""
        try:
            question_uuid = UUID(str(identifier))
        except ValueError:
            question_uuid = None

        question = None
        if question_uuid is not None:
            question = self.db.query(Question).filter(Question.id == question_uuid).first()
        if question is None:
            question = self.db.query(Question).filter(Question.slug == identifier).first()
        if question is None:
            raise NotFoundError("Question not found")

        with transaction(self.db):
            question.view_count = (question.view_count or 0) + 1
        return question

    def update(self, user: User, question_id: UUID, data: dict[str, Any]) -> Question:
        question = self._get_owned(user, question_id)
        with transaction(self.db):
            if data.get("title"):
                question.title = data["title"].strip()
            if data.get("content"):
                question.content = data["content"]
            if data.get("category"):
                question.category = data["category"]
            if data.get("tags") is not None:
                question.tags = normalize_tags(data["tags"])
            question.last_activity_at = utcnow()
        return question

    def close(self, user: User, question_id: UUID, reason: Optional[str] = None) -> Question:
        question = self._get_owned(user, question_id)
        with transaction(self.db):
            question.status = QuestionStatus.CLOSED
            question.closed_reason = reason
            question.closed_at = utcnow()
        return question

    def delete(self, user: User, question_id: UUID) -> None:
        question = self._get(question_id)
        if question.author_id != user.id and not user.is_staff:
            raise ForbiddenError("You can only delete your own questions")
        with transaction(self.db):
            self.db.delete(question)

    # =========================================================================
    # Follows
    # =========================================================================

    def toggle_follow(self, user: User, question_id: UUID) -> dict[str, Any]:
        question = self._get(question_id)
        existing = (
            self.db.query(QuestionFollow)
            .filter(QuestionFollow.question_id == question_id, QuestionFollow.user_id == user.id)
            .first()
        )

        with transaction(self.db):
            if existing:
                self.db.delete(existing)
            else:
                self.db.add(QuestionFollow(question_id=question_id, user_id=user.id))
            self.db.flush()
            question.follower_count = (
                self.db.query(QuestionFollow).filter(QuestionFollow.question_id == question_id).count()
            )

        return {"following": existing is None, "follower_count": question.follower_count}

    def is_following(self, user: User, question_id: UUID) -> bool:
        return (
            self.db.query(QuestionFollow.id)
            .filter(QuestionFollow.question_id == question_id, QuestionFollow.user_id == user.id)
            .first()
            is not None
        )
