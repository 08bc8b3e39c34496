from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from agri_rental.db.session import get_db
from agri_rental.schemas.pricing import (
    PricingRuleCreate,
    PricingRuleOut,
    PriceEstimateOut,
    ThresholdIn,
    ThresholdOut,
)
from agri_rental.core.security import get_current_user, require_admin
from agri_rental.core.rate_limit import rate_limited_user
from agri_rental.core.response_builders import (
    build_pricing_rule_response,
    build_pricing_rule_response_list,
    build_threshold_response,
)
from agri_rental.core.enums import RecordStatus
from agri_rental.core.event_bus import EventBus
from agri_rental.services.pricing import PricingResolver, estimate_price
from agri_rental.services.thresholds import ThresholdResolver
from agri_rental.services.subscribers import get_event_bus

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/rules", response_model=PricingRuleOut, status_code=201)
async def create_pricing_rule(
    payload: PricingRuleCreate,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    _limited=Depends(rate_limited_user),
    current_user=Depends(require_admin),
):
    rule = await PricingResolver(db, bus).create_rule(
        payload.category_id,
        payload.location_code,
        [r.model_dump() for r in payload.rates],
        payload.effective_from,
        current_user.id,
        effective_to=payload.effective_to,
    )
    return build_pricing_rule_response(rule)


@router.get("/rules", response_model=List[PricingRuleOut])
async def list_pricing_rules(
    category_id: Optional[str] = Query(None),
    location_code: Optional[str] = Query(None),
    status: Optional[RecordStatus] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    rules = await PricingResolver(db).list_rules(category_id, location_code, status, limit, offset)
    return build_pricing_rule_response_list(rules)


@router.post("/rules/{rule_id}/deactivate", response_model=PricingRuleOut)
async def deactivate_pricing_rule(
    rule_id: str,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_admin),
):
    rule = await PricingResolver(db).deactivate_rule(rule_id)
    return build_pricing_rule_response(rule)


@router.get("/active", response_model=PriceEstimateOut)
async def active_rule(
    category_id: str,
    location_code: str,
    on_date: Optional[date] = Query(None),
    requested_hours: Optional[float] = Query(None, ge=0),
    requested_area: Optional[float] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Rule in force on a date (today by default) with an optional price estimate"""
    rule = await PricingResolver(db).get_active_rule_for_date(
        category_id, location_code, on_date or date.today()
    )
    return PriceEstimateOut(
        rule=build_pricing_rule_response(rule) if rule else None,
        estimated_price=estimate_price(rule, requested_hours, requested_area),
    )


@router.put("/thresholds/{category_id}", response_model=ThresholdOut)
async def save_threshold(
    category_id: str,
    payload: ThresholdIn,
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
    current_user=Depends(require_admin),
):
    config = await ThresholdResolver(db, bus).save_threshold(
        category_id,
        payload.max_rental_hours,
        payload.max_rental_area,
        current_user.id,
        effective_from=payload.effective_from,
        effective_to=payload.effective_to,
        status=payload.status,
    )
    return build_threshold_response(config)


@router.get("/thresholds/{category_id}", response_model=ThresholdOut)
async def get_threshold(
    category_id: str,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    config = await ThresholdResolver(db).get_active_threshold(category_id)
    return build_threshold_response(config)
