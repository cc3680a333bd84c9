"""
Authentication endpoints: register, login, refresh, me, logout.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.config import settings
from ..core.database import get_db
from ..core.transactions import safe_rollback
from ..core.security import (
    verify_password,
    hash_password,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from ..models.user import User, UserStatus
from ..schemas.common import MessageResponse
from ..schemas.user import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    LogoutRequest,
    UserResponse,
    TokenResponse,
)
from ..services.device_tokens import DeviceTokenService


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _issue_tokens(user: User) -> TokenResponse:
    token_data = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    return TokenResponse(
        access_token=create_access_token(data=token_data),
        refresh_token=create_refresh_token(data=token_data),
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


# =============================================================================
# Register
# =============================================================================


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Self-service sign-up for parents and therapists."""
    email = body.email.lower()
    existing = db.query(User.id).filter(sa_func.lower(User.email) == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    user = User(
        email=email,
        password_hash=hash_password(body.password),
        name=body.name.strip(),
        role=body.role,
        last_login=datetime.now(timezone.utc),
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        safe_rollback(db)
        logger.error(f"Failed to register user: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create account",
        )

    logger.info(f"Registered {user.role.value} account {user.id}")
    return _issue_tokens(user)


# =============================================================================
# Login
# =============================================================================


@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest, request: Request, db: Session = Depends(get_db)) -> TokenResponse:
    """Authenticate with email + password. Returns JWT access + refresh tokens."""
    user = db.query(User).filter(sa_func.lower(User.email) == credentials.email.lower()).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.warning(
            f"Failed login attempt ip={request.client.host if request.client else 'unknown'}"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.status == UserStatus.SUSPENDED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been suspended",
        )

    user.last_login = datetime.now(timezone.utc)
    db.commit()

    return _issue_tokens(user)


# =============================================================================
# Refresh Token
# =============================================================================


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(body: RefreshRequest, db: Session = Depends(get_db)) -> TokenResponse:
    """Swap a valid refresh token for a new token pair."""
    payload = decode_token(body.refresh_token)

    if payload is None or payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user: Optional[User] = None
    try:
        user_uuid = UUID(str(payload.get("sub")))
    except ValueError:
        user_uuid = None
    if user_uuid is not None:
        user = db.query(User).filter(User.id == user_uuid).first()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.status == UserStatus.SUSPENDED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been suspended",
        )

    logger.info(f"Token refreshed for user {user.id}")
    return _issue_tokens(user)


# =============================================================================
# Current User
# =============================================================================


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user and their permission set."""
    return UserResponse.model_validate(user)


# =============================================================================
# Logout
# =============================================================================


@router.post("/logout", response_model=MessageResponse)
async def logout(
    body: Optional[LogoutRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """
    Tokens are stateless so the client simply discards them. A device
    token passed here stops receiving push notifications.
    """
    if body and body.device_token:
        DeviceTokenService(db).deactivate(user, body.device_token)
    return MessageResponse(message="Logged out successfully")
