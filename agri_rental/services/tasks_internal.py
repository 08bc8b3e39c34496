import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.future import select

from agri_rental.core.config import settings
from agri_rental.core.enums import NotificationStatus
from agri_rental.models.notification import Notification
from agri_rental.services.webhook import send_webhook

logger = logging.getLogger(__name__)

engine_worker = create_async_engine(settings.DATABASE_URL, future=True, echo=False)
AsyncSessionWorker = sessionmaker(engine_worker, class_=AsyncSession, expire_on_commit=False)

UNDELIVERED = (NotificationStatus.PENDING, NotificationStatus.FAILED)


def notification_payload(notification: Notification) -> dict:
    return {
        "notification_id": notification.id,
        "recipient_id": notification.recipient_id,
        "event_type": notification.event_type,
        "entity_type": notification.entity_type,
        "entity_id": notification.entity_id,
        "message": notification.message,
        "data": notification.payload or {},
    }


async def deliver_notification_async(notification_id: str, session_factory=None) -> bool:
    """Push one stored notification to the webhook and record the outcome"""
    session_factory = session_factory or AsyncSessionWorker
    async with session_factory() as db:
        res = await db.execute(select(Notification).where(Notification.id == notification_id))
        notification = res.scalars().first()
        if not notification:
            logger.warning(f"Notification {notification_id} not found, nothing to deliver")
            return False
        if notification.status == NotificationStatus.SENT:
            return True

        delivered = await send_webhook(notification_payload(notification))

        notification.attempts = (notification.attempts or 0) + 1
        if delivered:
            notification.status = NotificationStatus.SENT
            notification.sent_at = datetime.now(timezone.utc)
        else:
            notification.status = NotificationStatus.FAILED
            if notification.attempts >= settings.NOTIFICATION_MAX_ATTEMPTS:
                logger.error(
                    f"Notification {notification.id} for {notification.recipient_id} "
                    f"gave up after {notification.attempts} attempts"
                )
        db.add(notification)
        await db.commit()
        return delivered


async def undelivered_notification_ids(session_factory=None, limit: int = 100) -> List[str]:
    """Oldest PENDING or FAILED notifications that still have attempts left"""
    session_factory = session_factory or AsyncSessionWorker
    async with session_factory() as db:
        res = await db.execute(
            select(Notification.id)
            .where(
                Notification.status.in_(UNDELIVERED),
                Notification.attempts < settings.NOTIFICATION_MAX_ATTEMPTS,
            )
            .order_by(Notification.created_at)
            .limit(limit)
        )
        return list(res.scalars().all())
