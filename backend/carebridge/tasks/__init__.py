"""
Celery tasks package.

Provides background task infrastructure for:
- Push notification dispatch
- Booking reminders and acceptance-deadline expiry
- Device token and billing housekeeping
"""

from .celery_app import celery_app
from .notification_tasks import (
    send_push_notification,
    send_booking_reminders,
    expire_pending_bookings,
    deactivate_stale_device_tokens,
    mark_overdue_billing,
)

__all__ = [
    "celery_app",
    "send_push_notification",
    "send_booking_reminders",
    "expire_pending_bookings",
    "deactivate_stale_device_tokens",
    "mark_overdue_billing",
]
