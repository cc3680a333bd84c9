"""
Authentication and user schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..models.user import UserRole, UserStatus


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.PARENT

    @field_validator("role")
    @classmethod
    def self_service_roles_only(cls, value: UserRole) -> UserRole:
        if value not in (UserRole.PARENT, UserRole.THERAPIST):
            raise ValueError("Only parent or therapist accounts can self-register")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    device_token: Optional[str] = None


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    image: Optional[str] = None
    role: UserRole
    status: UserStatus
    reputation: int = 0
    permissions: List[str] = []
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: UUID
    name: str
    image: Optional[str] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    user: UserResponse
