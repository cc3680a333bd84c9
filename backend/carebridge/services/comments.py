"""
Threaded comments on community posts.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..models.community import Post, PostComment
from ..models.user import User
from .pagination import paginate_by_page


logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self, db: Session):
        self.db = db

    def _get(self, comment_id: UUID) -> PostComment:
        comment = self.db.query(PostComment).filter(PostComment.id == comment_id).first()
        if not comment:
            raise NotFoundError("Comment not found")
        return comment

    def _recount(self, post_id: UUID) -> None:
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if post:
            post.comment_count = self.db.query(PostComment).filter(PostComment.post_id == post_id).count()

    def create(self, user: User, post_id: UUID, content: str, parent_id: Optional[UUID] = None) -> PostComment:
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if not post:
            raise NotFoundError("Post not found")
        if post.is_locked:
            raise ForbiddenError("This post is locked and cannot receive new comments")

        if parent_id:
            parent = self.db.query(PostComment).filter(PostComment.id == parent_id).first()
            if not parent:
                raise NotFoundError("Parent comment not found")
            if parent.post_id != post_id:
                raise ForbiddenError("Parent comment does not belong to this post")

        comment = PostComment(post_id=post_id, author_id=user.id, parent_id=parent_id, content=content)
        with transaction(self.db):
            self.db.add(comment)
            self.db.flush()
            self._recount(post_id)

        logger.debug(f"Comment {comment.id} added to post {post_id}")
        return comment

    def get(self, comment_id: UUID) -> PostComment:
        return self._get(comment_id)

    def update(self, user: User, comment_id: UUID, content: str) -> PostComment:
        comment = self._get(comment_id)
        if comment.author_id != user.id:
            raise ForbiddenError("You can only edit your own comments")

        with transaction(self.db):
            comment.content = content
        return comment

    def delete(self, user: User, comment_id: UUID) -> None:
        comment = self._get(comment_id)
        if comment.author_id != user.id and not user.is_staff:
            raise ForbiddenError("You can only delete your own comments")

        post_id = comment.post_id
        with transaction(self.db):
            self.db.delete(comment)
            self.db.flush()
            self._recount(post_id)

    def thread(self, post_id: UUID, page: int = 1, limit: int = 20) -> dict[str, Any]:
        """Top-level comments, newest first, each with its replies oldest first."""
        if not self.db.query(Post.id).filter(Post.id == post_id).first():
            raise NotFoundError("Post not found")

        query = (
            self.db.query(PostComment)
            .options(selectinload(PostComment.replies), selectinload(PostComment.author))
            .filter(PostComment.post_id == post_id, PostComment.parent_id.is_(None))
            .order_by(PostComment.created_at.desc())
        )
        return paginate_by_page(query, page, limit)

    def replies(self, comment_id: UUID) -> list[PostComment]:
        self._get(comment_id)
        return (
            self.db.query(PostComment)
            .filter(PostComment.parent_id == comment_id)
            .order_by(PostComment.created_at.asc())
            .all()
        )
