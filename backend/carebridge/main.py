"""
CareBridge Backend - FastAPI Application Entry Point

Pediatric therapy platform: case management for therapists and families,
a community forum with Q&A, and a therapist booking marketplace.

Performance optimized with:
- Redis caching for directory, slot and feed lookups
- Response compression (gzip)
- Performance monitoring middleware
"""

import sys
import time
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .core.config import settings
from .core.database import engine, init_db, SessionLocal
from .core.exceptions import ServiceError
from .api import (
    health_router,
    auth_router,
    profile_router,
    cases_router,
    case_sessions_router,
    ieps_router,
    iep_templates_router,
    goal_bank_router,
    milestone_plans_router,
    case_documents_router,
    shared_documents_router,
    case_consents_router,
    case_billing_router,
    worksheets_router,
    assessments_router,
    posts_router,
    comments_router,
    reports_router,
    votes_router,
    bookmarks_router,
    questions_router,
    answers_router,
    marketplace_router,
    notifications_router,
    ai_router,
)
from .models.user import User
from .services.cache import get_cache


logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

HEALTH_PATHS = ("/health", "/health/ready", "/health/live")


# =============================================================================
# Rate Limiting Middleware
# =============================================================================

class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware using sliding window algorithm.

    Limits requests per IP address. Returns HTTP 429 when the limit is
    exceeded. Health checks are never limited.
    """

    def __init__(self, app, requests_per_minute: int = 60):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.window_size = 60  # seconds
        self.request_log: Dict[str, List[float]] = {}
        self._last_sweep = 0.0

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _sweep(self, cutoff: float) -> None:
        """Forget addresses with no request inside the window."""
        for ip in [ip for ip, log in self.request_log.items() if not log or log[-1] <= cutoff]:
            del self.request_log[ip]

    def _is_rate_limited(self, ip: str, now: Optional[float] = None) -> bool:
        current_time = time.time() if now is None else now
        cutoff = current_time - self.window_size
        if current_time - self._last_sweep >= self.window_size:
            self._sweep(cutoff)
            self._last_sweep = current_time

        log = [ts for ts in self.request_log.get(ip, []) if ts > cutoff]
        if len(log) >= self.requests_per_minute:
            self.request_log[ip] = log
            return True

        log.append(current_time)
        self.request_log[ip] = log
        return False

    async def dispatch(self, request: Request, call_next):
        if request.url.path in HEALTH_PATHS:
            return await call_next(request)

        client_ip = self._get_client_ip(request)

        if self._is_rate_limited(client_ip):
            logger.warning(f"Rate limit exceeded for {client_ip}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "success": False,
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please try again later. Limit: {self.requests_per_minute} requests per minute.",
                },
                headers={
                    "Retry-After": "60",
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        remaining = max(0, self.requests_per_minute - len(self.request_log.get(client_ip, [])))
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining"] = str(remaining)

        return response


# =============================================================================
# Performance Monitoring Middleware
# =============================================================================

class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Track API response times and log slow requests.

    Adds X-Response-Time header to all responses.
    """

    SLOW_REQUEST_THRESHOLD_MS = 500

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time_ms = (time.time() - start_time) * 1000
        response.headers["X-Response-Time"] = f"{process_time_ms:.2f}ms"

        if process_time_ms > self.SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time_ms:.2f}ms"
            )

        if settings.debug:
            logger.debug(f"{request.method} {request.url.path} - {process_time_ms:.2f}ms")

        return response


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Refuses to start in production with dev-default secrets, reports cache
    availability and optionally creates tables.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    # =========================================================================
    # PRODUCTION SECRET VALIDATION
    # =========================================================================
    insecure_secrets = []
    if settings.secret_key == "dev-secret-key-change-in-production":
        insecure_secrets.append("SECRET_KEY")
    if settings.encryption_key.rstrip("0") == "dev-encryption-key-32bytes!":
        insecure_secrets.append("ENCRYPTION_KEY")

    if insecure_secrets and settings.is_production:
        logger.critical(
            f"Insecure secrets in production: {', '.join(insecure_secrets)}. Refusing to start."
        )
        sys.exit(1)
    elif insecure_secrets:
        logger.warning(
            f"Dev-default secrets in use: {', '.join(insecure_secrets)}. "
            "Change them before deploying to production."
        )

    cache = get_cache()
    if cache.is_connected:
        logger.info("Redis cache connected")
    else:
        logger.info("Redis cache not available - operating without cache")

    if settings.auto_create_tables:
        init_db()
        logger.info("Database tables created")

    db = SessionLocal()
    try:
        if db.query(User).count() == 0:
            logger.warning(
                "No users found. Seed demo data with: "
                "python backend/scripts/seed_case_management.py"
            )
    except Exception as e:
        logger.warning(f"Could not check user table: {e}")
    finally:
        db.close()

    yield

    logger.info("Shutting down...")
    engine.dispose()


# =============================================================================
# Application Factory
# =============================================================================

def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Pediatric therapy platform API: case management, community, "
            "Q&A and therapist marketplace."
        ),
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(PerformanceMonitoringMiddleware)

    cors_origins = settings.cors_origins_list
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-Response-Time",
        ],
    )

    app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.rate_limit_per_minute)

    for router in (
        health_router,
        auth_router,
        profile_router,
        cases_router,
        case_sessions_router,
        ieps_router,
        iep_templates_router,
        goal_bank_router,
        milestone_plans_router,
        case_documents_router,
        shared_documents_router,
        case_consents_router,
        case_billing_router,
        worksheets_router,
        assessments_router,
        posts_router,
        comments_router,
        reports_router,
        votes_router,
        bookmarks_router,
        questions_router,
        answers_router,
        marketplace_router,
        notifications_router,
        ai_router,
    ):
        app.include_router(router)

    return app


app = create_application()


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map a business-rule violation onto its status and the error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.error_code,
            "message": exc.message,
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """
    Handle ValueError exceptions.

    Returns user-friendly error response without exposing internals.
    """
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "validation_error",
            "message": str(exc),
        },
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unhandled exceptions.

    Logs the error type and path only; never PHI.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: {type(exc).__name__}",
        exc_info=settings.is_development,
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint returning API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs" if settings.is_development else "disabled",
    }


# =============================================================================
# Entry Point
# =============================================================================

def run() -> None:
    import uvicorn

    uvicorn.run(
        "carebridge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
