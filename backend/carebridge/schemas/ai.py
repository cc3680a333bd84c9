"""
AI assistant schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.community import PostType


class SummarizeRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)
    post_type: PostType = PostType.DISCUSSION


class SummarizeResponse(BaseModel):
    summary: str
    ai_generated: bool


class InsightsRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class InsightsResponse(BaseModel):
    insights: List[str]
    ai_generated: bool


class RedactRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class RedactResponse(BaseModel):
    original: int
    redacted: int
    content: str
    ai_generated: bool


class TagsRequest(BaseModel):
    title: str = Field(default="", max_length=300)
    content: str = Field(..., min_length=1, max_length=20000)
    post_type: PostType = PostType.DISCUSSION


class TagsResponse(BaseModel):
    tags: List[str]
    count: int
    ai_generated: bool


class AIHealthResponse(BaseModel):
    status: str
    ai_enabled: bool
    model: Optional[str] = None
    mode: str
