"""Audit trail writes. Rows are append-only."""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from agri_rental.models.audit import AuditLog
from agri_rental.core.enums import AuditAction, EntityType
from agri_rental.core.metrics import audit_logs_created

logger = logging.getLogger(__name__)


async def log_audit(
    db: AsyncSession,
    entity_type: EntityType,
    entity_id: str,
    action: AuditAction,
    actor_id: Optional[str],
    from_state: Optional[str] = None,
    to_state: Optional[str] = None,
    note: Optional[str] = None,
) -> AuditLog:

    if actor_id is None:
        logger.warning(f"Audit event {action} on {entity_type} {entity_id} has no actor")

    record = AuditLog(
        entity_type=str(entity_type),
        entity_id=entity_id,
        action=str(action),
        from_state=str(from_state) if from_state is not None else None,
        to_state=str(to_state) if to_state is not None else None,
        actor_id=actor_id,
        note=note,
    )
    db.add(record)
    await db.commit()

    audit_logs_created.labels(entity_type=str(entity_type), action=str(action)).inc()
    logger.debug(f"Audit log created: {entity_type} {entity_id} {from_state} -> {to_state}")
    return record


async def log_login(db: AsyncSession, user_id: str, phone: str) -> None:
    try:
        await log_audit(db, EntityType.USER, user_id, AuditAction.LOGIN, user_id, note=phone)
    except Exception as e:
        logger.error(f"Audit logging failed for login of {user_id}: {e}", exc_info=True)
