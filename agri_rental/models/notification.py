from sqlalchemy import Column, String, DateTime, Enum, JSON, Integer
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import NotificationStatus


class Notification(BaseModel):
    __tablename__ = "notifications"

    recipient_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String(60), nullable=False)
    entity_type = Column(String(40), nullable=True)
    entity_id = Column(String(36), nullable=True)
    message = Column(String(1000), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(Enum(NotificationStatus), nullable=False, default=NotificationStatus.PENDING, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime(timezone=True), nullable=True)
