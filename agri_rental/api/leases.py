from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from agri_rental.db.session import get_db
from agri_rental.schemas.lease import LeaseCreate, LeaseComplete, LeaseOut, OperatorAssignmentIn
from agri_rental.core.security import get_current_user, require_roles
from agri_rental.core.rate_limit import rate_limited_user
from agri_rental.core.response_builders import build_lease_response, build_lease_response_list
from agri_rental.core.enums import LeaseStatus, UserRole
from agri_rental.core.event_bus import EventBus
from agri_rental.services.leases import LeaseLifecycleService
from agri_rental.services.subscribers import get_event_bus

router = APIRouter(prefix="/leases", tags=["leases"])


def get_lease_service(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> LeaseLifecycleService:
    return LeaseLifecycleService(db, bus)


@router.post("/", response_model=LeaseOut, status_code=201)
async def create_lease(
    payload: LeaseCreate,
    service: LeaseLifecycleService = Depends(get_lease_service),
    current_user=Depends(rate_limited_user),
):
    lease = await service.create_lease_from_order(
        payload.order_id,
        current_user,
        deposit_amount=payload.deposit_amount,
        notes=payload.notes,
        operators=[op.model_dump() for op in payload.operators],
        attachments=[a.model_dump() for a in payload.attachments],
    )
    return build_lease_response(lease)


@router.get("/mine", response_model=List[LeaseOut])
async def list_my_leases(
    status: Optional[LeaseStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: LeaseLifecycleService = Depends(get_lease_service),
    current_user=Depends(require_roles(UserRole.INTERMEDIARY)),
):
    intermediary = await service.intermediary_for_user(current_user)
    leases = await service.list_leases_for_intermediary(intermediary.id, status, limit, offset)
    return build_lease_response_list(leases)


@router.get("/{lease_id}", response_model=LeaseOut)
async def get_lease(
    lease_id: str,
    service: LeaseLifecycleService = Depends(get_lease_service),
    current_user=Depends(get_current_user),
):
    lease = await service.get_lease(lease_id, actor=current_user)
    return build_lease_response(lease)


@router.post("/{lease_id}/operators", response_model=LeaseOut)
async def assign_operator(
    lease_id: str,
    payload: OperatorAssignmentIn,
    service: LeaseLifecycleService = Depends(get_lease_service),
    current_user=Depends(rate_limited_user),
):
    lease = await service.assign_operator(lease_id, payload.operator_id, payload.role, current_user)
    return build_lease_response(lease)


@router.post("/{lease_id}/complete", response_model=LeaseOut)
async def complete_lease(
    lease_id: str,
    payload: LeaseComplete = LeaseComplete(),
    service: LeaseLifecycleService = Depends(get_lease_service),
    current_user=Depends(rate_limited_user),
):
    lease = await service.complete_lease(lease_id, current_user, payload.end_date)
    return build_lease_response(lease)
