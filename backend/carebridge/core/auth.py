"""
Authentication and authorisation dependencies for FastAPI routes.

Provides:
- get_current_user: extracts & verifies JWT, returns the User row
- require_role(*roles): factory that returns a dependency enforcing role membership
- require_case_access(level): factory that returns a dependency resolving the
  caller's access to the ``case_id`` path parameter
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .database import get_db
from .exceptions import ServiceError
from .security import decode_token
from ..models.user import User, UserStatus
from ..services.case_access import resolve_case_access


logger = logging.getLogger(__name__)

# The tokenUrl is informational (used by Swagger UI); actual login is POST /api/auth/login
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Decode the JWT bearer token and return the authenticated User.

    Raises 401 if token is missing or invalid, or the user no longer exists.
    Raises 403 if the account is suspended.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_uuid).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.status == UserStatus.SUSPENDED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been suspended",
        )

    return user


# Role hierarchy: admin implicitly satisfies "moderator" checks.
_ROLE_IMPLIES: dict[str, set[str]] = {
    "admin": {"admin", "moderator"},
    "moderator": {"moderator"},
    "therapist": {"therapist"},
    "parent": {"parent"},
}


def require_role(*allowed_roles: str):
    """
    Factory: returns a FastAPI dependency that checks the current user's role.

    admin is treated as a superset of moderator -- any endpoint that requires
    "moderator" will also accept "admin".

    Usage:
        @router.post("/", dependencies=[Depends(require_role("therapist", "admin"))])
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        effective_roles = _ROLE_IMPLIES.get(user.role.value, {user.role.value})
        if not effective_roles.intersection(allowed_roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return user

    return _check


def require_case_access(level: str = "view"):
    """
    Factory: returns a dependency that authorises the caller on ``case_id``.

    Levels are ``view``, ``edit`` and ``manage``. The dependency returns the
    resolved ``CaseAccess`` so handlers can reuse the loaded case.

    Usage:
        @router.patch("/{case_id}/status")
        def update(access: CaseAccess = Depends(require_case_access("manage"))): ...
    """
    async def _check(
        case_id: UUID,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        try:
            return resolve_case_access(db, user, case_id, level)
        except ServiceError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)

    return _check


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    if not token:
        return None
    return await get_current_user(token=token, db=db)
