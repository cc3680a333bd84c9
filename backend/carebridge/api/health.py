"""
Health check endpoints for monitoring.

Provides health status for load balancers, monitoring systems,
and container orchestration health checks.

Endpoints:
- /health: Basic health check with database status
- /health/ready: Deep readiness check (DB, Redis, AI provider)
- /health/live: Simple alive check
- /api/admin/cache/clear: Drop cached directory, slot and post pages (admin)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..core.auth import require_role
from ..core.config import settings
from ..core.database import get_db
from ..schemas.common import HealthResponse
from ..services.ai import get_ai_service
from ..services.cache import get_cache


logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Returns the health status of the API and its database.",
)
async def health_check(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint for monitoring systems.

    Returns:
        HealthResponse with status and database connectivity
    """
    db_status = "connected"

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        db_response_time_ms = int((time.time() - start) * 1000)
        if db_response_time_ms > 100:
            logger.warning(f"Slow database response: {db_response_time_ms}ms")
    except Exception as e:
        db_status = "disconnected"
        logger.error(f"Database health check failed: {e}")

    return HealthResponse(
        status="healthy" if db_status == "connected" else "unhealthy",
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        environment=settings.environment,
    )


@router.get(
    "/health/ready",
    summary="Readiness Check",
    description="Deep readiness check. Returns 503 when the database is unreachable.",
)
async def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness check for container orchestration.

    Only the database gates readiness. Redis and the AI provider are
    reported but optional: caching and AI both degrade gracefully.
    """
    components: Dict[str, Any] = {}
    ready = True

    try:
        db.execute(text("SELECT 1"))
        components["database"] = {"status": "healthy", "connected": True}
    except Exception as e:
        logger.error(f"Readiness database check failed: {e}")
        components["database"] = {"status": "unhealthy", "connected": False, "error": str(e)[:100]}
        ready = False

    components["redis"] = get_cache().health_check()
    components["ai"] = get_ai_service().health()

    body = {
        "status": "ready" if ready else "not_ready",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "components": components,
    }
    if not ready:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body


@router.get(
    "/health/live",
    summary="Liveness Check",
    description="Simple liveness check to verify the API is running.",
)
async def liveness_check() -> dict:
    """Liveness check. Does NOT check dependencies."""
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# =============================================================================
# Admin Endpoints
# =============================================================================

@router.post(
    "/api/admin/cache/clear",
    summary="Clear Cache",
    description="Invalidate every cached directory, slot and post page (admin only).",
    dependencies=[Depends(require_role("admin"))],
)
async def clear_cache() -> Dict[str, Any]:
    get_cache().invalidate_all()
    logger.info("Cache cleared by admin")
    return {"success": True, "message": "Cache cleared"}
