"""
Up/down votes on community posts and comments.

A vote is a toggle: repeating the same value removes it, the opposite
value switches it. Target counters are recounted from the votes table
inside the same transaction. The target author's reputation follows the
live vote: removing a vote reverses its award and switching swaps it.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import BadRequestError, NotFoundError
from ..core.transactions import transaction
from ..models.community import Post, PostComment, Vote
from ..models.user import User
from .pagination import paginate_by_page


logger = logging.getLogger(__name__)

# Reputation awarded to the target author: (upvote, downvote)
POST_REPUTATION = (10, -2)
COMMENT_REPUTATION = (5, -1)

VALID_VOTE_VALUES = (1, -1)


class VoteService:
    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_target(self, post_id: Optional[UUID], comment_id: Optional[UUID]):
        if bool(post_id) == bool(comment_id):
            raise BadRequestError("Vote must target exactly one post or comment")

        if post_id:
            post = self.db.query(Post).filter(Post.id == post_id).first()
            if not post:
                raise NotFoundError("Post not found")
            if post.is_locked:
                raise BadRequestError("Cannot vote on locked posts")
            return post

        comment = self.db.query(PostComment).filter(PostComment.id == comment_id).first()
        if not comment:
            raise NotFoundError("Comment not found")
        if comment.post and comment.post.is_locked:
            raise BadRequestError("Cannot vote on locked posts")
        return comment

    def _recount(self, target) -> None:
        column = Vote.post_id if isinstance(target, Post) else Vote.comment_id
        rows = (
            self.db.query(Vote.value, func.count(Vote.id))
            .filter(column == target.id)
            .group_by(Vote.value)
            .all()
        )
        counts = {value: count for value, count in rows}
        target.upvotes = counts.get(1, 0)
        target.downvotes = counts.get(-1, 0)

    def _award_reputation(self, target, voter: User, value: int, sign: int = 1) -> None:
        if target.author_id == voter.id:
            return
        author = self.db.query(User).filter(User.id == target.author_id).first()
        if not author:
            return
        up, down = POST_REPUTATION if isinstance(target, Post) else COMMENT_REPUTATION
        author.reputation = (author.reputation or 0) + sign * (up if value == 1 else down)

    # =========================================================================
    # Cast
    # =========================================================================

    def cast(
        self,
        user: User,
        value: int,
        post_id: Optional[UUID] = None,
        comment_id: Optional[UUID] = None,
    ) -> Optional[Vote]:
        """
        Create, switch or remove the caller's vote.

        Returns the vote, or None when the vote was removed.
        """
        if value not in VALID_VOTE_VALUES:
            raise BadRequestError("Vote value must be 1 or -1")

        target = self._load_target(post_id, comment_id)

        query = self.db.query(Vote).filter(Vote.user_id == user.id)
        if post_id:
            query = query.filter(Vote.post_id == post_id)
        else:
            query = query.filter(Vote.comment_id == comment_id)
        existing = query.first()

        result: Optional[Vote]
        with transaction(self.db):
            if existing and existing.value == value:
                self.db.delete(existing)
                self._award_reputation(target, user, value, sign=-1)
                result = None
            elif existing:
                self._award_reputation(target, user, existing.value, sign=-1)
                self._award_reputation(target, user, value)
                existing.value = value
                result = existing
            else:
                result = Vote(user_id=user.id, post_id=post_id, comment_id=comment_id, value=value)
                self.db.add(result)
                self._award_reputation(target, user, value)

            self.db.flush()
            self._recount(target)

        logger.debug(f"Vote {value:+d} by {user.id} on {'post' if post_id else 'comment'} {target.id}")
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def target_votes(self, post_id: Optional[UUID] = None, comment_id: Optional[UUID] = None) -> dict[str, int]:
        if post_id:
            target = self.db.query(Post).filter(Post.id == post_id).first()
            if not target:
                raise NotFoundError("Post not found")
        elif comment_id:
            target = self.db.query(PostComment).filter(PostComment.id == comment_id).first()
            if not target:
                raise NotFoundError("Comment not found")
        else:
            raise BadRequestError("Vote must target exactly one post or comment")

        return {
            "upvotes": target.upvotes,
            "downvotes": target.downvotes,
            "total_votes": target.upvotes + target.downvotes,
            "score": target.upvotes - target.downvotes,
        }

    def user_vote_for(self, user: User, post_ids: list[UUID]) -> dict[UUID, int]:
        """Map of post id to the caller's vote value for the given posts."""
        if not post_ids:
            return {}
        rows = (
            self.db.query(Vote.post_id, Vote.value)
            .filter(Vote.user_id == user.id, Vote.post_id.in_(post_ids))
            .all()
        )
        return {post_id: value for post_id, value in rows}

    def user_votes(self, user: User, page: int = 1, limit: int = 20) -> dict[str, Any]:
        query = self.db.query(Vote).filter(Vote.user_id == user.id).order_by(Vote.created_at.desc())
        return paginate_by_page(query, page, limit)

    def user_stats(self, user: User) -> dict[str, int]:
        votes = self.db.query(Vote).filter(Vote.user_id == user.id).all()
        return {
            "total_votes": len(votes),
            "upvotes_given": sum(1 for v in votes if v.value == 1),
            "downvotes_given": sum(1 for v in votes if v.value == -1),
            "posts_voted": sum(1 for v in votes if v.post_id),
            "comments_voted": sum(1 for v in votes if v.comment_id),
        }
