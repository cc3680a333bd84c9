"""
Therapist marketplace schemas: directory, session types, availability,
bookings and ratings.
"""

from datetime import date, datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.marketplace import BookingStatus, ExceptionType, RaterType

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# =============================================================================
# Therapist Profiles
# =============================================================================


class TherapistProfileFields(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = None
    specialties: Optional[List[str]] = None
    credentials: Optional[List[str]] = None
    years_experience: Optional[int] = Field(default=None, ge=0, le=80)
    default_timezone: Optional[str] = Field(default=None, max_length=64)
    accepting_bookings: Optional[bool] = None
    is_active: Optional[bool] = None


class TherapistProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    name: Optional[str] = None
    image: Optional[str] = None
    title: Optional[str] = None
    bio: Optional[str] = None
    specialties: List[str] = []
    credentials: List[str] = []
    years_experience: Optional[int] = None
    default_timezone: str
    accepting_bookings: bool
    average_rating: float
    total_ratings: int


class DirectoryResponse(BaseModel):
    therapists: List[TherapistProfileResponse]
    total: int
    page: int
    limit: int
    has_more: bool


# =============================================================================
# Session Types & Pricing
# =============================================================================


class SessionTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    duration: int = Field(..., gt=0, le=480, description="Minutes")
    default_price: float = Field(..., ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    is_active: bool = True


class SessionTypeResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    duration: int
    default_price: float
    currency: str
    is_active: bool

    model_config = {"from_attributes": True}


class PricingUpdate(BaseModel):
    price: float = Field(..., ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class PricingResponse(BaseModel):
    id: UUID
    therapist_id: UUID
    session_type_id: UUID
    price: float
    currency: str

    model_config = {"from_attributes": True}


# =============================================================================
# Availability
# =============================================================================


class AvailabilityCreate(BaseModel):
    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_time: str = Field(..., pattern=HHMM_PATTERN)
    end_time: str = Field(..., pattern=HHMM_PATTERN)
    timezone: Optional[str] = Field(default=None, max_length=64)


class AvailabilityResponse(BaseModel):
    id: UUID
    therapist_id: UUID
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str
    is_active: bool

    model_config = {"from_attributes": True}


class AvailabilityExceptionCreate(BaseModel):
    date: date
    type: ExceptionType
    start_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=HHMM_PATTERN)
    reason: Optional[str] = Field(default=None, max_length=255)


class AvailabilityExceptionResponse(BaseModel):
    id: UUID
    therapist_id: UUID
    date: date
    type: ExceptionType
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class AvailabilityOverview(BaseModel):
    recurring: List[AvailabilityResponse]
    exceptions: List[AvailabilityExceptionResponse]


class SlotResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    available: bool
    display_time: str


# =============================================================================
# Bookings
# =============================================================================


class BookingCreate(BaseModel):
    therapist_id: UUID
    session_type_id: UUID
    start_time: datetime
    timezone: str = Field(default="UTC", max_length=64)
    patient_notes: Optional[str] = Field(default=None, max_length=2000)


class BookingReason(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class BookingResponse(BaseModel):
    id: UUID
    patient_id: UUID
    therapist_id: UUID
    session_type_id: UUID
    organization_id: Optional[UUID] = None
    start_time: datetime
    end_time: datetime
    timezone: str
    duration: int
    status: BookingStatus
    subtotal: float
    platform_fee: float
    platform_fee_percentage: float
    therapist_amount: float
    currency: str
    patient_notes: Optional[str] = None
    acceptance_deadline: Optional[datetime] = None
    therapist_accepted_at: Optional[datetime] = None
    therapist_rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Ratings
# =============================================================================


class RatingCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = Field(default=None, max_length=2000)
    professionalism_rating: Optional[int] = Field(default=None, ge=1, le=5)
    communication_rating: Optional[int] = Field(default=None, ge=1, le=5)
    helpfulness_rating: Optional[int] = Field(default=None, ge=1, le=5)


class RatingResponse(BaseModel):
    id: UUID
    booking_id: UUID
    rated_by: UUID
    rater_type: RaterType
    therapist_id: UUID
    rating: int
    review: Optional[str] = None
    professionalism_rating: Optional[int] = None
    communication_rating: Optional[int] = None
    helpfulness_rating: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingRatingsResponse(BaseModel):
    patient_rating: Optional[RatingResponse] = None
    therapist_rating: Optional[RatingResponse] = None


class RatingPage(BaseModel):
    items: List[RatingResponse]
    total: int
    page: int
    limit: int
    pages: int
    has_more: bool


class RatingStats(BaseModel):
    average_rating: float
    total_ratings: int
    distribution: Dict[str, int]


RatingSort = Literal["recent", "highest", "lowest"]
