"""
Push notification device tokens (Expo or FCM).
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, enum_values, utcnow


class DevicePlatform(str, enum.Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class DeviceToken(Base):
    """
    One row per physical token value. Re-registering a known token from
    another account moves it to that account.
    """

    __tablename__ = "device_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(500), unique=True, nullable=False)
    platform = Column(SQLEnum(DevicePlatform, name="device_platform", values_callable=enum_values), nullable=False)
    device_name = Column(String(200), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User")

    def __repr__(self) -> str:
        return f"<DeviceToken(id={self.id}, user_id={self.user_id}, platform={self.platform.value})>"
