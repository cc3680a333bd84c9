"""
Bookmarks on community posts and questions.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..models.community import Bookmark, Post
from ..models.qa import Question
from ..models.user import User
from .pagination import paginate_by_page


logger = logging.getLogger(__name__)


class BookmarkService:
    def __init__(self, db: Session):
        self.db = db

    def _check_target(self, post_id: Optional[UUID], question_id: Optional[UUID]) -> None:
        if bool(post_id) == bool(question_id):
            raise BadRequestError("Bookmark must target exactly one post or question")
        if post_id and not self.db.query(Post.id).filter(Post.id == post_id).first():
            raise NotFoundError("Post not found")
        if question_id and not self.db.query(Question.id).filter(Question.id == question_id).first():
            raise NotFoundError("Question not found")

    def _find(self, user: User, post_id: Optional[UUID], question_id: Optional[UUID]) -> Optional[Bookmark]:
        query = self.db.query(Bookmark).filter(Bookmark.user_id == user.id)
        if post_id:
            return query.filter(Bookmark.post_id == post_id).first()
        return query.filter(Bookmark.question_id == question_id).first()

    def toggle(self, user: User, post_id: Optional[UUID] = None, question_id: Optional[UUID] = None) -> dict[str, bool]:
        self._check_target(post_id, question_id)
        existing = self._find(user, post_id, question_id)

        with transaction(self.db):
            if existing:
                self.db.delete(existing)
            else:
                self.db.add(Bookmark(user_id=user.id, post_id=post_id, question_id=question_id))

        return {"bookmarked": existing is None}

    def status(self, user: User, post_id: Optional[UUID] = None, question_id: Optional[UUID] = None) -> dict[str, bool]:
        if bool(post_id) == bool(question_id):
            raise BadRequestError("Bookmark must target exactly one post or question")
        return {"bookmarked": self._find(user, post_id, question_id) is not None}

    def bookmarked_post_ids(self, user: User, post_ids: list[UUID]) -> set[UUID]:
        if not post_ids:
            return set()
        rows = (
            self.db.query(Bookmark.post_id)
            .filter(Bookmark.user_id == user.id, Bookmark.post_id.in_(post_ids))
            .all()
        )
        return {row[0] for row in rows}

    def list_bookmarks(self, user: User, target_type: Optional[str] = None, page: int = 1, limit: int = 20) -> dict[str, Any]:
        query = self.db.query(Bookmark).filter(Bookmark.user_id == user.id)
        if target_type == "post":
            query = query.filter(Bookmark.post_id.isnot(None))
        elif target_type == "question":
            query = query.filter(Bookmark.question_id.isnot(None))
        elif target_type:
            raise BadRequestError("type must be 'post' or 'question'")
        return paginate_by_page(query.order_by(Bookmark.created_at.desc()), page, limit)

    def stats(self, user: User) -> dict[str, int]:
        base = self.db.query(Bookmark).filter(Bookmark.user_id == user.id)
        posts = base.filter(Bookmark.post_id.isnot(None)).count()
        questions = base.filter(Bookmark.question_id.isnot(None)).count()
        return {"total": posts + questions, "posts": posts, "questions": questions}
