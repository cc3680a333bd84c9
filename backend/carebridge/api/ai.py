"""
AI assistant endpoints: post summaries, clinical insights, PII redaction
and tag suggestions.

Every endpoint answers even when the model is unreachable; ``ai_generated``
tells the caller whether the text came from the model or the fallback.
"""

from fastapi import APIRouter, Depends

from ..core.auth import get_current_user
from ..schemas.ai import (
    SummarizeRequest,
    SummarizeResponse,
    InsightsRequest,
    InsightsResponse,
    RedactRequest,
    RedactResponse,
    TagsRequest,
    TagsResponse,
    AIHealthResponse,
)
from ..services.ai import AIService, get_ai_service


router = APIRouter(prefix="/api/ai", tags=["AI"])


@router.post("/summarize", response_model=SummarizeResponse, dependencies=[Depends(get_current_user)])
async def summarize(payload: SummarizeRequest, ai: AIService = Depends(get_ai_service)):
    return ai.summarize_post(payload.content, payload.post_type.value)


@router.post("/insights", response_model=InsightsResponse, dependencies=[Depends(get_current_user)])
async def insights(payload: InsightsRequest, ai: AIService = Depends(get_ai_service)):
    return ai.extract_insights(payload.content)


@router.post("/redact", response_model=RedactResponse, dependencies=[Depends(get_current_user)])
async def redact(payload: RedactRequest, ai: AIService = Depends(get_ai_service)):
    result = ai.redact_sensitive_info(payload.content)
    return {
        "original": len(payload.content),
        "redacted": len(result["content"]),
        **result,
    }


@router.post("/tags", response_model=TagsResponse, dependencies=[Depends(get_current_user)])
async def tags(payload: TagsRequest, ai: AIService = Depends(get_ai_service)):
    result = ai.generate_smart_tags(payload.content, payload.title, payload.post_type.value)
    return {"tags": result["tags"], "count": len(result["tags"]), "ai_generated": result["ai_generated"]}


@router.get("/health", response_model=AIHealthResponse)
async def ai_health(ai: AIService = Depends(get_ai_service)):
    return ai.health()
