"""
User model for authentication and role-based access.
"""

import enum
import uuid

from sqlalchemy import Column, Uuid, String, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.types import UTCDateTime, enum_values, utcnow


# =============================================================================
# Enums
# =============================================================================


class UserRole(str, enum.Enum):
    PARENT = "parent"
    THERAPIST = "therapist"
    MODERATOR = "moderator"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


# =============================================================================
# Permission Map
# =============================================================================

# Centralised permission definitions. Keys are action identifiers exposed to
# the mobile client through the /api/auth/me response.
ROLE_PERMISSIONS: dict[UserRole, set[str]] = {
    UserRole.PARENT: {
        "manage_own_profile",
        "view_own_cases",
        "book_sessions",
        "rate_sessions",
        "post_community",
        "complete_worksheets",
    },
    UserRole.THERAPIST: {
        "manage_own_profile",
        "manage_cases",
        "manage_availability",
        "accept_bookings",
        "rate_sessions",
        "post_community",
        "assign_worksheets",
        "use_ai_tools",
    },
    UserRole.MODERATOR: {
        "manage_own_profile",
        "post_community",
        "moderate_community",
        "view_worksheets",
    },
    UserRole.ADMIN: {
        "manage_own_profile",
        "manage_cases",
        "manage_availability",
        "post_community",
        "moderate_community",
        "view_worksheets",
        "use_ai_tools",
        "manage_users",
    },
}


def get_permissions_for_role(role: UserRole) -> list[str]:
    return sorted(ROLE_PERMISSIONS.get(role, set()))


# =============================================================================
# User Model
# =============================================================================


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    image = Column(String(500), nullable=True)
    role = Column(SQLEnum(UserRole, name="user_role", values_callable=enum_values), nullable=False, default=UserRole.PARENT)
    status = Column(SQLEnum(UserStatus, name="user_status", values_callable=enum_values), nullable=False, default=UserStatus.ACTIVE)
    reputation = Column(Integer, nullable=False, default=0)
    last_login = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)

    profile = relationship("UserProfile", uselist=False, back_populates="user")
    therapist_profile = relationship("TherapistProfile", uselist=False, back_populates="user")

    @property
    def permissions(self) -> list[str]:
        return get_permissions_for_role(self.role)

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MODERATOR)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"
