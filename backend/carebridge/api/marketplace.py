"""
Therapist marketplace: directory, profiles, session types and pricing,
availability and slots, bookings and ratings.

Slots are computed in UTC and labelled in the viewer's timezone.
"""

import logging
from datetime import date
from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.auth import get_current_user, require_role
from ..core.database import get_db
from ..models.user import User
from ..schemas.common import MessageResponse
from ..schemas.marketplace import (
    TherapistProfileFields,
    TherapistProfileResponse,
    DirectoryResponse,
    SessionTypeCreate,
    SessionTypeResponse,
    PricingUpdate,
    PricingResponse,
    AvailabilityCreate,
    AvailabilityResponse,
    AvailabilityExceptionCreate,
    AvailabilityExceptionResponse,
    AvailabilityOverview,
    SlotResponse,
    BookingCreate,
    BookingReason,
    BookingResponse,
    RatingCreate,
    RatingResponse,
    BookingRatingsResponse,
    RatingPage,
    RatingStats,
    RatingSort,
)
from ..services.availability import AvailabilityService
from ..services.booking import BookingService
from ..services.ratings import RatingService
from ..services.therapists import TherapistService, serialize_therapist


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/marketplace", tags=["Marketplace"])


# =============================================================================
# Directory (public)
# =============================================================================

@router.get("/therapists", response_model=DirectoryResponse)
async def therapist_directory(
    specialty: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return TherapistService(db).directory(specialty, page, limit)


@router.get("/therapists/{therapist_id}", response_model=TherapistProfileResponse)
async def get_therapist(therapist_id: UUID, db: Session = Depends(get_db)):
    return serialize_therapist(TherapistService(db).get_profile(therapist_id))


@router.get("/therapists/{therapist_id}/availability", response_model=AvailabilityOverview)
async def therapist_availability(therapist_id: UUID, db: Session = Depends(get_db)):
    """Active recurring windows plus upcoming exceptions."""
    TherapistService(db).get_profile(therapist_id)
    return AvailabilityService(db).get_all(therapist_id)


@router.get("/therapists/{therapist_id}/slots", response_model=List[SlotResponse])
async def available_slots(
    therapist_id: UUID,
    day: date = Query(..., alias="date"),
    session_type_id: UUID = Query(...),
    timezone: str = Query(default="UTC", max_length=64),
    db: Session = Depends(get_db),
):
    return AvailabilityService(db).available_slots(therapist_id, day, session_type_id, timezone)


@router.get("/therapists/{therapist_id}/ratings", response_model=RatingPage)
async def therapist_ratings(
    therapist_id: UUID,
    min_rating: Optional[int] = Query(default=None, ge=1, le=5),
    sort: RatingSort = "recent",
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return RatingService(db).therapist_ratings(therapist_id, min_rating, sort, page, limit)


@router.get("/therapists/{therapist_id}/ratings/stats", response_model=RatingStats)
async def therapist_rating_stats(therapist_id: UUID, db: Session = Depends(get_db)):
    TherapistService(db).get_profile(therapist_id)
    return RatingService(db).therapist_stats(therapist_id)


# =============================================================================
# My Therapist Profile
# =============================================================================

@router.get("/me/profile", response_model=TherapistProfileResponse)
async def get_my_therapist_profile(
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return serialize_therapist(TherapistService(db).get_my_profile(user))


@router.post("/me/profile", response_model=TherapistProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_my_therapist_profile(
    payload: TherapistProfileFields,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    profile = TherapistService(db).create_my_profile(user, payload.model_dump(exclude_unset=True))
    return serialize_therapist(profile)


@router.patch("/me/profile", response_model=TherapistProfileResponse)
async def update_my_therapist_profile(
    payload: TherapistProfileFields,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    profile = TherapistService(db).update_my_profile(user, payload.model_dump(exclude_unset=True))
    return serialize_therapist(profile)


@router.put("/me/pricing/{session_type_id}", response_model=PricingResponse)
async def set_my_price(
    session_type_id: UUID,
    payload: PricingUpdate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    return TherapistService(db).set_price(user, session_type_id, payload.price, payload.currency)


# =============================================================================
# Session Types
# =============================================================================

@router.get("/session-types", response_model=List[SessionTypeResponse])
async def list_session_types(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
):
    return TherapistService(db).list_session_types(include_inactive)


@router.post(
    "/session-types",
    response_model=SessionTypeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role("admin"))],
)
async def create_session_type(payload: SessionTypeCreate, db: Session = Depends(get_db)):
    return TherapistService(db).create_session_type(payload.model_dump())


# =============================================================================
# My Availability
# =============================================================================

@router.get("/me/availability", response_model=AvailabilityOverview)
async def get_my_availability(
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    profile = TherapistService(db).get_my_profile(user)
    return AvailabilityService(db).get_all(profile.id)


@router.post("/me/availability", response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
async def add_recurring_availability(
    payload: AvailabilityCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    profile = TherapistService(db).get_my_profile(user)
    return AvailabilityService(db).set_recurring(
        profile, payload.day_of_week, payload.start_time, payload.end_time, payload.timezone
    )


@router.delete("/me/availability/{availability_id}", response_model=AvailabilityResponse)
async def delete_recurring_availability(
    availability_id: UUID,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    """Soft-deactivates the window; existing bookings are untouched."""
    profile = TherapistService(db).get_my_profile(user)
    return AvailabilityService(db).delete_recurring(profile, availability_id)


@router.post(
    "/me/availability/exceptions",
    response_model=AvailabilityExceptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_availability_exception(
    payload: AvailabilityExceptionCreate,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    profile = TherapistService(db).get_my_profile(user)
    return AvailabilityService(db).add_exception(
        profile,
        payload.date,
        payload.type.value,
        payload.start_time,
        payload.end_time,
        payload.reason,
    )


@router.delete("/me/availability/exceptions/{exception_id}", response_model=MessageResponse)
async def delete_availability_exception(
    exception_id: UUID,
    user: User = Depends(require_role("therapist", "admin")),
    db: Session = Depends(get_db),
):
    profile = TherapistService(db).get_my_profile(user)
    AvailabilityService(db).delete_exception(profile, exception_id)
    return MessageResponse(message="Exception deleted")


# =============================================================================
# Bookings
# =============================================================================

@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).create_booking(
        user,
        payload.therapist_id,
        payload.session_type_id,
        payload.start_time,
        payload.timezone,
        payload.patient_notes,
    )
    return booking


@router.get("/bookings", response_model=List[BookingResponse])
async def list_my_bookings(
    role: Literal["patient", "therapist"] = "patient",
    booking_status: Optional[str] = Query(default=None, alias="status", description="Comma-separated statuses"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).list_mine(user, role, booking_status)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).get_booking(user, booking_id)


@router.post("/bookings/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).accept(user, booking_id)


@router.post("/bookings/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    payload: BookingReason,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).reject(user, booking_id, payload.reason)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingReason,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).cancel(user, booking_id, payload.reason)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingService(db).complete(user, booking_id)


# =============================================================================
# Ratings
# =============================================================================

@router.post("/bookings/{booking_id}/ratings", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def rate_booking(
    booking_id: UUID,
    payload: RatingCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return RatingService(db).submit(user, booking_id, payload.model_dump())


@router.get("/bookings/{booking_id}/ratings", response_model=BookingRatingsResponse)
async def booking_ratings(
    booking_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return RatingService(db).booking_ratings(user, booking_id)
