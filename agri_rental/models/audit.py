from sqlalchemy import Column, String, DateTime
from agri_rental.models.base import BaseModel, utcnow


class AuditLog(BaseModel):
    """Append-only; rows are never updated or deleted."""
    __tablename__ = "audit_logs"

    entity_type = Column(String(40), nullable=False, index=True)
    entity_id = Column(String(36), nullable=False, index=True)
    action = Column(String(40), nullable=False)
    from_state = Column(String(40), nullable=True)
    to_state = Column(String(40), nullable=True)
    actor_id = Column(String(36), nullable=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    note = Column(String(1000), nullable=True)
