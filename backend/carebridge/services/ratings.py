"""
Post-session ratings.

Either participant may rate a completed booking once, within the rating
window. Only patient ratings feed the therapist's public average.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from ..core.transactions import transaction
from ..core.types import utcnow
from ..models.marketplace import Booking, BookingStatus, RaterType, SessionRating, TherapistProfile
from ..models.user import User
from .cache import get_cache
from .pagination import paginate_by_page


logger = logging.getLogger(__name__)

RATING_SORTS = {
    "recent": (SessionRating.created_at.desc(),),
    "highest": (SessionRating.rating.desc(), SessionRating.created_at.desc()),
    "lowest": (SessionRating.rating.asc(), SessionRating.created_at.desc()),
}


class RatingService:
    def __init__(self, db: Session):
        self.db = db

    def submit(self, user: User, booking_id: UUID, data: dict[str, Any], now: Optional[datetime] = None) -> SessionRating:
        now = now or utcnow()
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")

        if booking.status != BookingStatus.COMPLETED:
            raise BadRequestError("Can only rate completed sessions")

        if booking.end_time < now - timedelta(days=settings.rating_window_days):
            raise BadRequestError(f"Rating period has expired ({settings.rating_window_days} days after session)")

        if booking.patient_id == user.id:
            rater_type = RaterType.PATIENT
        elif booking.therapist and booking.therapist.user_id == user.id:
            rater_type = RaterType.THERAPIST
        else:
            raise ForbiddenError("You can only rate sessions you participated in")

        existing = (
            self.db.query(SessionRating.id)
            .filter(SessionRating.booking_id == booking_id, SessionRating.rated_by == user.id)
            .first()
        )
        if existing:
            raise BadRequestError("You have already rated this session")

        rating_value = data["rating"]
        if not 1 <= rating_value <= 5:
            raise BadRequestError("Rating must be between 1 and 5")

        rating = SessionRating(
            booking_id=booking_id,
            rated_by=user.id,
            rater_type=rater_type,
            therapist_id=booking.therapist_id,
            rating=rating_value,
            review=data.get("review"),
            professionalism_rating=data.get("professionalism_rating"),
            communication_rating=data.get("communication_rating"),
            helpfulness_rating=data.get("helpfulness_rating"),
        )
        with transaction(self.db):
            self.db.add(rating)
            self.db.flush()
            if rater_type == RaterType.PATIENT:
                self._refresh_stats(booking.therapist_id)

        if rater_type == RaterType.PATIENT:
            get_cache().invalidate_directory()

        logger.info(f"Rating {rating.id} submitted for booking {booking_id} by {rater_type.value}")
        return rating

    def _refresh_stats(self, therapist_id: UUID) -> None:
        average, count = (
            self.db.query(func.avg(SessionRating.rating), func.count(SessionRating.id))
            .filter(SessionRating.therapist_id == therapist_id, SessionRating.rater_type == RaterType.PATIENT)
            .one()
        )
        therapist = self.db.query(TherapistProfile).filter(TherapistProfile.id == therapist_id).first()
        if therapist:
            therapist.average_rating = round(float(average or 0), 2)
            therapist.total_ratings = count

    def booking_ratings(self, user: User, booking_id: UUID) -> dict[str, Optional[SessionRating]]:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        is_therapist = booking.therapist is not None and booking.therapist.user_id == user.id
        if booking.patient_id != user.id and not is_therapist:
            raise ForbiddenError("You can only view ratings for your own sessions")

        ratings = self.db.query(SessionRating).filter(SessionRating.booking_id == booking_id).all()
        by_type = {r.rater_type: r for r in ratings}
        return {
            "patient_rating": by_type.get(RaterType.PATIENT),
            "therapist_rating": by_type.get(RaterType.THERAPIST),
        }

    def therapist_ratings(
        self,
        therapist_id: UUID,
        min_rating: Optional[int] = None,
        sort: str = "recent",
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        if not self.db.query(TherapistProfile.id).filter(TherapistProfile.id == therapist_id).first():
            raise NotFoundError("Therapist not found")

        query = self.db.query(SessionRating).filter(
            SessionRating.therapist_id == therapist_id,
            SessionRating.rater_type == RaterType.PATIENT,
        )
        if min_rating:
            query = query.filter(SessionRating.rating >= min_rating)

        order = RATING_SORTS.get(sort, RATING_SORTS["recent"])
        return paginate_by_page(query.order_by(*order), page, limit)

    def therapist_stats(self, therapist_id: UUID) -> dict[str, Any]:
        rows = (
            self.db.query(SessionRating.rating, func.count(SessionRating.id))
            .filter(SessionRating.therapist_id == therapist_id, SessionRating.rater_type == RaterType.PATIENT)
            .group_by(SessionRating.rating)
            .all()
        )
        distribution = {str(star): 0 for star in range(1, 6)}
        for star, count in rows:
            distribution[str(star)] = count
        total = sum(distribution.values())
        average = sum(int(star) * count for star, count in distribution.items()) / total if total else 0.0
        return {"average_rating": round(average, 2), "total_ratings": total, "distribution": distribution}
