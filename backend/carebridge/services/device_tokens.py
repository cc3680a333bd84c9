"""
Push device token registration.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.notification import DevicePlatform, DeviceToken
from ..models.user import User


logger = logging.getLogger(__name__)


class DeviceTokenService:
    def __init__(self, db: Session):
        self.db = db

    def register(self, user: User, token: str, platform: str, device_name: Optional[str] = None) -> DeviceToken:
        """Upsert by token value; a token seen on another account moves to this user."""
        now = utcnow()
        device = self.db.query(DeviceToken).filter(DeviceToken.token == token).first()

        with transaction(self.db):
            if device is None:
                device = DeviceToken(token=token, user_id=user.id, platform=DevicePlatform(platform))
                self.db.add(device)
            elif device.user_id != user.id:
                logger.info(f"Device token {device.id} reassigned to user {user.id}")
                device.user_id = user.id

            device.platform = DevicePlatform(platform)
            if device_name is not None:
                device.device_name = device_name
            device.is_active = True
            device.last_used_at = now

        return device

    def remove(self, user: User, token: str) -> None:
        device = (
            self.db.query(DeviceToken)
            .filter(DeviceToken.token == token, DeviceToken.user_id == user.id)
            .first()
        )
        if not device:
            raise NotFoundError("Device token not found")

        with transaction(self.db):
            self.db.delete(device)

    def deactivate(self, user: User, token: str) -> bool:
        """Logout path: deactivate without deleting. Returns False when unknown."""
        device = (
            self.db.query(DeviceToken)
            .filter(DeviceToken.token == token, DeviceToken.user_id == user.id)
            .first()
        )
        if not device:
            return False
        with transaction(self.db):
            device.is_active = False
        return True

    def list_for_user(self, user: User) -> list[DeviceToken]:
        return (
            self.db.query(DeviceToken)
            .filter(DeviceToken.user_id == user.id)
            .order_by(DeviceToken.last_used_at.desc())
            .all()
        )

    def active_tokens(self, user_id) -> list[DeviceToken]:
        return (
            self.db.query(DeviceToken)
            .filter(DeviceToken.user_id == user_id, DeviceToken.is_active.is_(True))
            .all()
        )

    def deactivate_stale(self, now: Optional[datetime] = None, days: Optional[int] = None) -> int:
        now = now or utcnow()
        cutoff = now - timedelta(days=days or settings.device_token_stale_days)
        stale = (
            self.db.query(DeviceToken)
            .filter(DeviceToken.is_active.is_(True), DeviceToken.last_used_at < cutoff)
            .all()
        )
        with transaction(self.db):
            for device in stale:
                device.is_active = False

        if stale:
            logger.info(f"Deactivated {len(stale)} stale device tokens")
        return len(stale)
