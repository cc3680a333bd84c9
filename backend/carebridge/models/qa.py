"""
Question & answer models.
"""

import enum
import uuid

from sqlalchemy import (
    Column, Uuid, String, Integer, Boolean, Text, ForeignKey,
    UniqueConstraint, CheckConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import JSONType, UTCDateTime, enum_values, utcnow


class QuestionStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Question(Base):
    __tablename__ = "questions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, default="General")
    tags = Column(JSONType(), nullable=False, default=list)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    anonymous_name = Column(String(100), nullable=True)

    status = Column(SQLEnum(QuestionStatus, name="question_status", values_callable=enum_values), nullable=False, default=QuestionStatus.OPEN)
    closed_reason = Column(Text, nullable=True)
    closed_at = Column(UTCDateTime(), nullable=True)

    view_count = Column(Integer, nullable=False, default=0)
    answer_count = Column(Integer, nullable=False, default=0)
    follower_count = Column(Integer, nullable=False, default=0)
    has_accepted_answer = Column(Boolean, nullable=False, default=False)
    last_activity_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    author = relationship("User")
    answers = relationship("Answer", back_populates="question", cascade="all, delete-orphan")
    followers = relationship("QuestionFollow", back_populates="question", cascade="all, delete-orphan")


class QuestionFollow(Base):
    __tablename__ = "question_follows"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid(as_uuid=True), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    question = relationship("Question", back_populates="followers")

    __table_args__ = (
        UniqueConstraint("question_id", "user_id", name="uq_question_follows"),
    )


class Answer(Base):
    __tablename__ = "answers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid(as_uuid=True), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    is_accepted = Column(Boolean, nullable=False, default=False)
    accepted_at = Column(UTCDateTime(), nullable=True)
    helpful_count = Column(Integer, nullable=False, default=0)
    not_helpful_count = Column(Integer, nullable=False, default=0)
    quality_score = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    question = relationship("Question", back_populates="answers")
    author = relationship("User")
    votes = relationship("AnswerVote", back_populates="answer", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("question_id", "author_id", name="uq_answers_question_author"),
    )


class AnswerVote(Base):
    """+1 = helpful, -1 = not helpful."""

    __tablename__ = "answer_votes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    answer_id = Column(Uuid(as_uuid=True), ForeignKey("answers.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    value = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    answer = relationship("Answer", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("answer_id", "user_id", name="uq_answer_votes"),
        CheckConstraint("value IN (-1, 1)", name="ck_answer_votes_value"),
    )
