"""
Common Pydantic schemas shared across the application.

Contains health check, error and pagination envelopes.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Health Check Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """
    Health check response schema.

    Used by monitoring systems to verify service health.
    """

    status: str = Field(
        ...,
        description="Overall health status (healthy, degraded, unhealthy)"
    )
    version: str = Field(
        ...,
        description="Application version"
    )
    timestamp: datetime = Field(
        ...,
        description="Current server timestamp"
    )
    database: str = Field(
        ...,
        description="Database connection status"
    )
    environment: str = Field(
        ...,
        description="Runtime environment (development, production)"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": "2026-01-15T10:30:00Z",
                "database": "connected",
                "environment": "development"
            }
        }
    }


# =============================================================================
# Error Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error envelope.

    Never includes PHI in the message.
    """

    success: bool = Field(
        default=False,
        description="Always false for errors"
    )
    error: str = Field(
        ...,
        description="Machine-readable error code"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "not_found",
                "message": "Case not found"
            }
        }
    }


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# =============================================================================
# Pagination Schemas
# =============================================================================

class CursorPage(BaseModel):
    """Keyset page: pass ``next_cursor`` back as ``cursor``."""

    items: List[Any]
    next_cursor: Optional[str] = None
    has_more: bool = False


class NumberedPage(BaseModel):
    items: List[Any]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    pages: int = Field(default=0, ge=0)
    has_more: bool = False
