from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from agri_rental.db.session import get_db
from agri_rental.schemas.order import OrderCreate, OrderStatusUpdate, OrderAction, OrderOut
from agri_rental.core.security import get_current_user
from agri_rental.core.rate_limit import rate_limited_user
from agri_rental.core.response_builders import build_order_response, build_order_response_list
from agri_rental.core.enums import OrderStatus
from agri_rental.core.event_bus import EventBus
from agri_rental.services.orders import OrderLifecycleService
from agri_rental.services.subscribers import get_event_bus
from agri_rental.utils.idempotency import get_idempotent, set_idempotent

router = APIRouter(prefix="/orders", tags=["orders"])


def get_order_service(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> OrderLifecycleService:
    return OrderLifecycleService(db, bus)


@router.post("/", response_model=OrderOut, status_code=201)
async def create_order(
    payload: OrderCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(rate_limited_user),
):
    cached = await get_idempotent(str(current_user.id), idempotency_key)
    if cached:
        return cached

    order = await service.create_order(
        current_user,
        payload.device_id,
        payload.start_date,
        payload.end_date,
        requested_hours=payload.requested_hours,
        requested_area=payload.requested_area,
        note=payload.note,
        submit=payload.submit,
    )
    response = build_order_response(order)
    await set_idempotent(str(current_user.id), idempotency_key, response.model_dump(mode="json"))
    return response


@router.get("/mine", response_model=List[OrderOut])
async def list_my_orders(
    status: Optional[OrderStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(get_current_user),
):
    orders = await service.list_orders_for_requester(current_user, status, limit, offset)
    return build_order_response_list(orders)


@router.get("/lease", response_model=List[OrderOut])
async def list_lease_orders(
    status: Optional[OrderStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(get_current_user),
):
    orders = await service.list_lease_orders(current_user, status, limit, offset)
    return build_order_response_list(orders)


@router.get("/rent", response_model=List[OrderOut])
async def list_rent_orders(
    status: Optional[OrderStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(get_current_user),
):
    """RENT orders routed to the caller's intermediary profile"""
    orders = await service.list_rent_orders_for_intermediary(current_user, status, limit, offset)
    return build_order_response_list(orders)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: str,
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(get_current_user),
):
    order = await service.get_order(order_id)
    return build_order_response(order)


@router.patch("/{order_id}/status", response_model=OrderOut)
async def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(rate_limited_user),
):
    order = await service.update_status(order_id, payload.status, current_user, payload.note)
    return build_order_response(order)


@router.post("/{order_id}/submit", response_model=OrderOut)
async def submit_order(
    order_id: str,
    payload: OrderAction = OrderAction(),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(rate_limited_user),
):
    order = await service.submit_order(order_id, current_user, payload.note)
    return build_order_response(order)


@router.post("/{order_id}/cancel", response_model=OrderOut)
async def cancel_order(
    order_id: str,
    payload: OrderAction = OrderAction(),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(rate_limited_user),
):
    order = await service.cancel_order(order_id, current_user, payload.note)
    return build_order_response(order)


@router.post("/{order_id}/reject", response_model=OrderOut)
async def reject_order(
    order_id: str,
    payload: OrderAction = OrderAction(),
    service: OrderLifecycleService = Depends(get_order_service),
    current_user=Depends(rate_limited_user),
):
    order = await service.reject_order(order_id, current_user, payload.note)
    return build_order_response(order)
