"""
Push notification token registration.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import get_current_user
from ..core.database import get_db
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.notification import DeviceTokenRegister, DeviceTokenRemove, DeviceTokenResponse
from ..services.device_tokens import DeviceTokenService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.put("/token", response_model=DeviceTokenResponse)
async def register_token(
    payload: DeviceTokenRegister,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Register an Expo or FCM token for the current user.

    A token already known under another account moves to this one.
    """
    return DeviceTokenService(db).register(user, payload.token, payload.platform.value, payload.device_name)


@router.delete("/token", response_model=MessageResponse)
async def remove_token(
    payload: DeviceTokenRemove,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    DeviceTokenService(db).remove(user, payload.token)
    return MessageResponse(message="Token removed")


@router.get("/tokens", response_model=List[DeviceTokenResponse])
async def list_tokens(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return DeviceTokenService(db).list_for_user(user)
