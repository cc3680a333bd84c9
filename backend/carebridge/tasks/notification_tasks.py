"""
Celery tasks for push notifications and scheduled housekeeping.

Provides:
- Push dispatch to every active device of a user
- Booking reminders at 24h, 1h and 15m before the session
- Auto-cancel of bookings never accepted before their deadline
- Deactivation of device tokens unused for 30 days
- PENDING billing records past due moved to OVERDUE
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from celery import shared_task
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import SessionLocal
from ..services.booking import BookingService
from ..services.case_billing import CaseBillingService
from ..services.device_tokens import DeviceTokenService
from ..services.push import PushDeliveryError, PushService


logger = logging.getLogger(__name__)


def get_db_session() -> Session:
    """Create a new database session for task execution."""
    return SessionLocal()


# =============================================================================
# Push Dispatch
# =============================================================================

@shared_task(
    bind=True,
    autoretry_for=(PushDeliveryError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_jitter=True,
    max_retries=settings.celery_max_retries,
    acks_late=True,
)
def send_push_notification(
    self,
    user_id: str,
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Send a push notification to every active device of a user.

    Args:
        user_id: Recipient user ID (string form for JSON serialization)
        title: Notification title
        body: Notification body; never include PHI
        data: Extra payload for the mobile client
    """
    db = get_db_session()
    try:
        return PushService(db).send_to_user(UUID(user_id), title, body, data)
    finally:
        db.close()


# =============================================================================
# Scheduled Tasks
# =============================================================================

@shared_task
def send_booking_reminders() -> Dict[str, int]:
    db = get_db_session()
    try:
        count = BookingService(db).send_due_reminders()
        return {"reminded": count}
    finally:
        db.close()


@shared_task
def expire_pending_bookings() -> Dict[str, int]:
    """Cancel PENDING_ACCEPTANCE bookings past their acceptance deadline."""
    db = get_db_session()
    try:
        count = BookingService(db).expire_pending()
        if count:
            logger.info(f"Expired {count} pending bookings")
        return {"expired": count}
    finally:
        db.close()


@shared_task
def deactivate_stale_device_tokens() -> Dict[str, int]:
    db = get_db_session()
    try:
        return {"deactivated": DeviceTokenService(db).deactivate_stale()}
    finally:
        db.close()


@shared_task
def mark_overdue_billing() -> Dict[str, int]:
    db = get_db_session()
    try:
        return {"overdue": CaseBillingService(db).mark_overdue()}
    finally:
        db.close()
