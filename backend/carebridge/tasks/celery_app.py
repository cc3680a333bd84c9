"""
Celery application configuration.

Configures Celery for background work with:
- Redis as message broker
- Automatic retry with exponential backoff on push delivery
- A dedicated queue for push notifications
- Beat schedule for booking reminders and housekeeping
"""

import logging

from celery import Celery
from kombu import Exchange, Queue

from ..core.config import settings


logger = logging.getLogger(__name__)


# =============================================================================
# Celery Application
# =============================================================================

celery_app = Celery(
    "carebridge",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "carebridge.tasks.notification_tasks",
    ],
)


# =============================================================================
# Celery Configuration
# =============================================================================

celery_app.conf.update(
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.celery_task_always_eager,

    # Task time limits
    task_time_limit=settings.celery_task_time_limit,
    task_soft_time_limit=settings.celery_task_time_limit - 30,

    # Worker settings
    worker_concurrency=settings.celery_worker_concurrency,
    worker_prefetch_multiplier=4,
    worker_max_tasks_per_child=1000,

    result_expires=3600,
    result_backend_transport_options={
        "visibility_timeout": 3600,
    },

    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename="/tmp/celerybeat-schedule",

    beat_schedule={
        "send-booking-reminders": {
            "task": "carebridge.tasks.notification_tasks.send_booking_reminders",
            "schedule": 300.0,  # Every 5 minutes
        },
        "expire-pending-bookings": {
            "task": "carebridge.tasks.notification_tasks.expire_pending_bookings",
            "schedule": 600.0,  # Every 10 minutes
        },
        "deactivate-stale-device-tokens": {
            "task": "carebridge.tasks.notification_tasks.deactivate_stale_device_tokens",
            "schedule": 86400.0,  # Daily
        },
        "mark-overdue-billing": {
            "task": "carebridge.tasks.notification_tasks.mark_overdue_billing",
            "schedule": 3600.0,  # Hourly
        },
    },
)


# =============================================================================
# Queue Configuration
# =============================================================================

default_exchange = Exchange("default", type="direct")
push_exchange = Exchange("push", type="direct")

celery_app.conf.task_queues = (
    Queue(
        "default",
        default_exchange,
        routing_key="default",
    ),
    Queue(
        "push",
        push_exchange,
        routing_key="push",
        queue_arguments={"x-max-priority": 10},
    ),
)

celery_app.conf.task_routes = {
    "carebridge.tasks.notification_tasks.send_push_notification": {
        "queue": "push",
        "routing_key": "push",
    },
}


@celery_app.on_after_configure.connect
def setup_periodic_tasks(sender, **kwargs):
    """Configure periodic tasks on worker startup."""
    logger.info("Celery worker configured with periodic tasks")


@celery_app.task
def health_check():
    """Simple health check task for monitoring."""
    return {
        "status": "healthy",
        "worker": True,
    }
