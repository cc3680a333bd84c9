"""
Pydantic validation schemas for CareBridge.

Contains request/response DTOs with validation rules.
These schemas enforce data integrity at API boundaries.
"""

from .common import (
    HealthResponse,
    ErrorResponse,
    MessageResponse,
    CursorPage,
    NumberedPage,
)
from .user import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    LogoutRequest,
    UserResponse,
    UserSummary,
    TokenResponse,
)

__all__ = [
    # Common schemas
    "HealthResponse",
    "ErrorResponse",
    "MessageResponse",
    "CursorPage",
    "NumberedPage",
    # Auth schemas
    "RegisterRequest",
    "LoginRequest",
    "RefreshRequest",
    "LogoutRequest",
    "UserResponse",
    "UserSummary",
    "TokenResponse",
]
