import asyncio
import logging

from celery import Celery
from agri_rental.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "agri_rental",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_BACKEND,
)
celery_app.conf.task_routes = {
    "agri_rental.services.tasks.*": {"queue": "notifications"},
}
celery_app.conf.beat_schedule = {
    "redeliver-notifications": {
        "task": "agri_rental.services.tasks.redeliver_notifications",
        "schedule": settings.NOTIFICATION_REDELIVERY_INTERVAL,
    },
}


@celery_app.task(bind=True, max_retries=3)
def deliver_notification(self, notification_id: str):
    from agri_rental.services.tasks_internal import deliver_notification_async

    try:
        return asyncio.run(deliver_notification_async(notification_id))
    except Exception as e:
        logger.warning(f"Delivery of notification {notification_id} errored: {e}")
        raise self.retry(exc=e, countdown=2 ** self.request.retries)


@celery_app.task
def redeliver_notifications(limit: int = 100) -> int:
    """Re-queue notifications the webhook has not accepted yet"""
    from agri_rental.services.tasks_internal import undelivered_notification_ids

    ids = asyncio.run(undelivered_notification_ids(limit=limit))
    for notification_id in ids:
        deliver_notification.delay(notification_id)
    if ids:
        logger.info(f"Re-queued {len(ids)} undelivered notifications")
    return len(ids)
