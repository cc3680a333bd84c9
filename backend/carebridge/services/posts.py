"""
Community posts and post reports.

Post list pages are cached in Redis for ``cache_ttl_posts`` seconds per
query. The cached payload is viewer-independent; each caller's vote and
bookmark state is layered on afterwards.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ..core.config import settings
from ..core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..models.community import Post, PostReport, PostType, ReportStatus
from ..models.user import User
from .bookmarks import BookmarkService
from .cache import get_cache
from .pagination import paginate_by_page
from .votes import VoteService


logger = logging.getLogger(__name__)

POST_SORTS = {
    "recent": (Post.created_at.desc(),),
    "popular": (Post.upvotes.desc(), Post.created_at.desc()),
    "trending": (Post.view_count.desc(), Post.upvotes.desc(), Post.created_at.desc()),
}

UPDATABLE_FIELDS = ("title", "content", "category", "tags", "type")


def serialize_post(post: Post) -> dict[str, Any]:
    """JSON-safe post dict. Anonymous posts hide their author."""
    author = None
    if not post.is_anonymous and post.author is not None:
        author = {"id": str(post.author.id), "name": post.author.name, "image": post.author.image}

    return {
        "id": str(post.id),
        "type": post.type.value,
        "title": post.title,
        "content": post.content,
        "category": post.category,
        "tags": list(post.tags or []),
        "is_anonymous": post.is_anonymous,
        "is_locked": post.is_locked,
        "author": author,
        "upvotes": post.upvotes,
        "downvotes": post.downvotes,
        "view_count": post.view_count,
        "comment_count": post.comment_count,
        "created_at": post.created_at.isoformat(),
        "updated_at": post.updated_at.isoformat(),
    }


class PostService:
    def __init__(self, db: Session):
        self.db = db
        self.cache = get_cache()

    def _get(self, post_id: UUID) -> Post:
        post = self.db.query(Post).filter(Post.id == post_id).first()
        if not post:
            raise NotFoundError("Post not found")
        return post

    def _annotate(self, user: Optional[User], posts: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if user is None:
            for post in posts:
                post["user_vote"] = None
                post["is_bookmarked"] = False
            return posts

        ids = [UUID(p["id"]) for p in posts]
        votes = VoteService(self.db).user_vote_for(user, ids)
        bookmarked = BookmarkService(self.db).bookmarked_post_ids(user, ids)
        for post in posts:
            post_id = UUID(post["id"])
            post["user_vote"] = votes.get(post_id)
            post["is_bookmarked"] = post_id in bookmarked
        return posts

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_post(self, user: User, data: dict[str, Any]) -> dict[str, Any]:
        post = Post(
            author_id=user.id,
            type=PostType(data.get("type") or PostType.DISCUSSION),
            title=data["title"].strip(),
            content=data["content"],
            category=data.get("category"),
            tags=list(dict.fromkeys(data.get("tags") or [])),
            is_anonymous=bool(data.get("is_anonymous")),
        )
        with transaction(self.db):
            self.db.add(post)
        self.db.refresh(post)

        self.cache.invalidate_posts()
        logger.info(f"Post {post.id} created by {user.id}")
        return self._annotate(user, [serialize_post(post)])[0]

    def list_posts(
        self,
        user: Optional[User],
        post_type: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "recent",
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        sort = sort if sort in POST_SORTS else "recent"
        key = self.cache.posts_key(
            type=post_type, category=category, search=search, sort=sort, page=page, limit=limit,
        )

        def compute() -> dict[str, Any]:
            query = self.db.query(Post).options(selectinload(Post.author))
            if post_type:
                query = query.filter(Post.type == PostType(post_type))
            if category:
                query = query.filter(Post.category == category)
            if search:
                pattern = f"%{search}%"
                query = query.filter(or_(Post.title.ilike(pattern), Post.content.ilike(pattern)))
            result = paginate_by_page(query.order_by(*POST_SORTS[sort]), page, limit)
            return {
                "posts": [serialize_post(p) for p in result["items"]],
                "total": result["total"],
                "page": result["page"],
                "pages": result["pages"],
                "has_more": result["has_more"],
            }

        payload = self.cache.get_or_compute(key, compute, ttl=settings.cache_ttl_posts)
        payload = dict(payload, posts=self._annotate(user, [dict(p) for p in payload["posts"]]))
        return payload

    def get_post(self, user: Optional[User], post_id: UUID) -> dict[str, Any]:
        post = self._get(post_id)
        with transaction(self.db):
            post.view_count = (post.view_count or 0) + 1
        return self._annotate(user, [serialize_post(post)])[0]

    def update_post(self, user: User, post_id: UUID, data: dict[str, Any]) -> dict[str, Any]:
        post = self._get(post_id)
        if post.author_id != user.id:
            raise ForbiddenError("You can only edit your own posts")

        with transaction(self.db):
            for field in UPDATABLE_FIELDS:
                if data.get(field) is not None:
                    value = data[field]
                    if field == "type":
                        value = PostType(value)
                    elif field == "tags":
                        value = list(dict.fromkeys(value))
                    setattr(post, field, value)

        self.cache.invalidate_posts()
        return self._annotate(user, [serialize_post(post)])[0]

    def delete_post(self, user: User, post_id: UUID) -> None:
        post = self._get(post_id)
        if post.author_id != user.id and not user.is_staff:
            raise ForbiddenError("You can only delete your own posts")

        with transaction(self.db):
            self.db.delete(post)

        self.cache.invalidate_posts()
        logger.info(f"Post {post_id} deleted by {user.id}")

    def set_locked(self, user: User, post_id: UUID, locked: bool) -> dict[str, Any]:
        if not user.is_staff:
            raise ForbiddenError("Only moderators can lock posts")
        post = self._get(post_id)
        with transaction(self.db):
            post.is_locked = locked
        self.cache.invalidate_posts()
        return self._annotate(user, [serialize_post(post)])[0]

    # =========================================================================
    # Reports
    # =========================================================================

    def report(self, user: User, post_id: UUID, reason: str, details: Optional[str] = None) -> PostReport:
        self._get(post_id)

        duplicate = (
            self.db.query(PostReport.id)
            .filter(
                PostReport.post_id == post_id,
                PostReport.reporter_id == user.id,
                PostReport.status == ReportStatus.PENDING,
            )
            .first()
        )
        if duplicate:
            raise ConflictError("You have already reported this post")

        report = PostReport(post_id=post_id, reporter_id=user.id, reason=reason, details=details)
        with transaction(self.db):
            self.db.add(report)

        logger.info(f"Post {post_id} reported by {user.id}: {reason}")
        return report

    def list_reports(self, status: Optional[str] = None, page: int = 1, limit: int = 20) -> dict[str, Any]:
        query = self.db.query(PostReport)
        if status:
            query = query.filter(PostReport.status == ReportStatus(status))
        return paginate_by_page(query.order_by(PostReport.created_at.desc()), page, limit)

    def resolve_report(self, report_id: UUID, status: str) -> PostReport:
        new_status = ReportStatus(status)
        if new_status == ReportStatus.PENDING:
            raise BadRequestError("Reports can only be marked REVIEWED or DISMISSED")
        report = self.db.query(PostReport).filter(PostReport.id == report_id).first()
        if not report:
            raise NotFoundError("Report not found")
        with transaction(self.db):
            report.status = new_status
        return report
