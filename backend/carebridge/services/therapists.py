"""
Therapist profiles, the public therapist directory, session types and
per-therapist pricing.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from ..core.config import settings
from ..core.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..models.marketplace import SessionPricing, SessionType, TherapistProfile
from ..models.user import User, UserRole
from .cache import get_cache
from .pagination import clamp_limit


logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "title",
    "bio",
    "specialties",
    "credentials",
    "years_experience",
    "default_timezone",
    "accepting_bookings",
    "is_active",
)


def serialize_therapist(profile: TherapistProfile) -> dict[str, Any]:
    """JSON-safe directory entry."""
    return {
        "id": str(profile.id),
        "user_id": str(profile.user_id),
        "name": profile.user.name if profile.user else None,
        "image": profile.user.image if profile.user else None,
        "title": profile.title,
        "bio": profile.bio,
        "specialties": list(profile.specialties or []),
        "credentials": list(profile.credentials or []),
        "years_experience": profile.years_experience,
        "default_timezone": profile.default_timezone,
        "accepting_bookings": profile.accepting_bookings,
        "average_rating": profile.average_rating,
        "total_ratings": profile.total_ratings,
    }


class TherapistService:
    def __init__(self, db: Session):
        self.db = db
        self.cache = get_cache()

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, therapist_id: UUID) -> TherapistProfile:
        profile = self.db.query(TherapistProfile).filter(TherapistProfile.id == therapist_id).first()
        if not profile:
            raise NotFoundError("Therapist not found")
        return profile

    def get_my_profile(self, user: User) -> TherapistProfile:
        profile = self.db.query(TherapistProfile).filter(TherapistProfile.user_id == user.id).first()
        if not profile:
            raise NotFoundError("Therapist profile not found")
        return profile

    def create_my_profile(self, user: User, data: dict[str, Any]) -> TherapistProfile:
        if user.role not in (UserRole.THERAPIST, UserRole.ADMIN):
            raise ForbiddenError("Only therapists can create a therapist profile")
        if self.db.query(TherapistProfile.id).filter(TherapistProfile.user_id == user.id).first():
            raise ConflictError("Therapist profile already exists")

        profile = TherapistProfile(user_id=user.id)
        self._apply(profile, data)
        with transaction(self.db):
            self.db.add(profile)

        self.cache.invalidate_directory()
        logger.info(f"Therapist profile {profile.id} created for user {user.id}")
        return profile

    def update_my_profile(self, user: User, data: dict[str, Any]) -> TherapistProfile:
        profile = self.get_my_profile(user)
        with transaction(self.db):
            self._apply(profile, data)

        self.cache.invalidate_directory()
        self.cache.invalidate_slots(profile.id)
        return profile

    def _apply(self, profile: TherapistProfile, data: dict[str, Any]) -> None:
        for field in PROFILE_FIELDS:
            if data.get(field) is not None:
                setattr(profile, field, data[field])
        if profile.default_timezone is None:
            profile.default_timezone = "UTC"

    # =========================================================================
    # Directory
    # =========================================================================

    def directory(self, specialty: Optional[str] = None, page: int = 1, limit: int = 20) -> dict[str, Any]:
        page = max(page or 1, 1)
        limit = clamp_limit(limit)

        def compute() -> dict[str, Any]:
            profiles = (
                self.db.query(TherapistProfile)
                .options(selectinload(TherapistProfile.user))
                .filter(TherapistProfile.is_active.is_(True))
                .order_by(TherapistProfile.average_rating.desc(), TherapistProfile.created_at.asc())
                .all()
            )
            if specialty:
                wanted = specialty.lower()
                profiles = [p for p in profiles if any(wanted == s.lower() for s in (p.specialties or []))]

            total = len(profiles)
            start = (page - 1) * limit
            return {
                "therapists": [serialize_therapist(p) for p in profiles[start:start + limit]],
                "total": total,
                "page": page,
                "limit": limit,
                "has_more": page * limit < total,
            }

        return self.cache.get_or_compute(
            self.cache.directory_key(specialty, page, limit),
            compute,
            ttl=settings.cache_ttl_directory,
        )

    # =========================================================================
    # Session Types & Pricing
    # =========================================================================

    def list_session_types(self, include_inactive: bool = False) -> list[SessionType]:
        query = self.db.query(SessionType)
        if not include_inactive:
            query = query.filter(SessionType.is_active.is_(True))
        return query.order_by(SessionType.duration.asc(), SessionType.name.asc()).all()

    def get_session_type(self, session_type_id: UUID) -> SessionType:
        session_type = self.db.query(SessionType).filter(SessionType.id == session_type_id).first()
        if not session_type:
            raise NotFoundError("Session type not found")
        return session_type

    def create_session_type(self, data: dict[str, Any]) -> SessionType:
        if data["duration"] <= 0:
            raise BadRequestError("Duration must be positive")
        session_type = SessionType(
            name=data["name"],
            description=data.get("description"),
            duration=data["duration"],
            default_price=data["default_price"],
            currency=data.get("currency") or "USD",
            is_active=data.get("is_active", True),
        )
        with transaction(self.db):
            self.db.add(session_type)
        return session_type

    def set_price(self, user: User, session_type_id: UUID, price: float, currency: Optional[str] = None) -> SessionPricing:
        profile = self.get_my_profile(user)
        session_type = self.get_session_type(session_type_id)
        if price < 0:
            raise BadRequestError("Price cannot be negative")

        pricing = (
            self.db.query(SessionPricing)
            .filter(SessionPricing.therapist_id == profile.id, SessionPricing.session_type_id == session_type_id)
            .first()
        )
        with transaction(self.db):
            if pricing is None:
                pricing = SessionPricing(therapist_id=profile.id, session_type_id=session_type_id)
                self.db.add(pricing)
            pricing.price = price
            pricing.currency = currency or session_type.currency
        return pricing

    def price_for(self, therapist_id: UUID, session_type: SessionType) -> tuple[float, str]:
        """Therapist override if present, else the session type default."""
        pricing = (
            self.db.query(SessionPricing)
            .filter(SessionPricing.therapist_id == therapist_id, SessionPricing.session_type_id == session_type.id)
            .first()
        )
        if pricing:
            return pricing.price, pricing.currency
        return session_type.default_price, session_type.currency
