"""
Push notification device token schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.notification import DevicePlatform


class DeviceTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, max_length=500)
    platform: DevicePlatform
    device_name: Optional[str] = Field(default=None, max_length=200)


class DeviceTokenRemove(BaseModel):
    token: str = Field(..., min_length=1, max_length=500)


class DeviceTokenResponse(BaseModel):
    id: UUID
    token: str
    platform: DevicePlatform
    device_name: Optional[str] = None
    is_active: bool
    last_used_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}
