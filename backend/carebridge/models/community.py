"""
Community models: posts, threaded comments, votes, bookmarks and reports.
"""

import enum
import uuid

from sqlalchemy import (
    Column, Uuid, String, Integer, Boolean, Text, ForeignKey,
    UniqueConstraint, CheckConstraint, Index, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class PostType(str, enum.Enum):
    DISCUSSION = "DISCUSSION"
    QUESTION = "QUESTION"
    CASE_STUDY = "CASE_STUDY"
    RESOURCE = "RESOURCE"


class ReportStatus(str, enum.Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    DISMISSED = "DISMISSED"


# =============================================================================
# Post & Comment Models
# =============================================================================


class Post(Base):
    __tablename__ = "posts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(SQLEnum(PostType, name="post_type", values_callable=enum_values), nullable=False, default=PostType.DISCUSSION)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=True, index=True)
    tags = Column(JSONType(), nullable=False, default=list)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    is_locked = Column(Boolean, nullable=False, default=False)

    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    author = relationship("User")
    comments = relationship("PostComment", back_populates="post", cascade="all, delete-orphan")
    votes = relationship("Vote", back_populates="post", cascade="all, delete-orphan")
    bookmarks = relationship("Bookmark", back_populates="post", cascade="all, delete-orphan")
    reports = relationship("PostReport", back_populates="post", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, type={self.type.value})>"


class PostComment(Base):
    __tablename__ = "post_comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("post_comments.id", ondelete="CASCADE"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    upvotes = Column(Integer, nullable=False, default=0)
    downvotes = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    post = relationship("Post", back_populates="comments")
    author = relationship("User")
    replies = relationship(
        "PostComment",
        cascade="all, delete-orphan",
        order_by="PostComment.created_at",
    )
    votes = relationship("Vote", back_populates="comment", cascade="all, delete-orphan")


# =============================================================================
# Vote Model
# =============================================================================


class Vote(Base):
    """
    Up (+1) or down (-1) vote on exactly one post or one comment.
    """

    __tablename__ = "votes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=True)
    comment_id = Column(Uuid(as_uuid=True), ForeignKey("post_comments.id", ondelete="CASCADE"), nullable=True)
    value = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    post = relationship("Post", back_populates="votes")
    comment = relationship("PostComment", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_votes_user_post"),
        UniqueConstraint("user_id", "comment_id", name="uq_votes_user_comment"),
        CheckConstraint("value IN (-1, 1)", name="ck_votes_value"),
    )


# =============================================================================
# Bookmark Model
# =============================================================================


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=True)
    question_id = Column(Uuid(as_uuid=True), ForeignKey("questions.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    post = relationship("Post", back_populates="bookmarks")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_bookmarks_user_post"),
        UniqueConstraint("user_id", "question_id", name="uq_bookmarks_user_question"),
    )


# =============================================================================
# PostReport Model
# =============================================================================


class PostReport(Base):
    __tablename__ = "post_reports"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    reporter_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reason = Column(String(100), nullable=False)
    details = Column(Text, nullable=True)
    status = Column(SQLEnum(ReportStatus, name="report_status", values_callable=enum_values), nullable=False, default=ReportStatus.PENDING)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    post = relationship("Post", back_populates="reports")

    __table_args__ = (
        Index("ix_post_reports_post_reporter", "post_id", "reporter_id"),
    )
