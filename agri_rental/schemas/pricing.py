from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from agri_rental.core.enums import PricingMetric, RecordStatus


class RateIn(BaseModel):
    metric: PricingMetric
    rate: float = Field(ge=0)


class PricingRuleCreate(BaseModel):
    category_id: str
    location_code: str
    rates: List[RateIn] = Field(min_length=1)
    effective_from: date
    effective_to: Optional[date] = None


class PricingRuleOut(BaseModel):
    id: str
    category_id: str
    location_code: str
    rates: List[RateIn]
    effective_from: date
    effective_to: Optional[date] = None
    status: RecordStatus
    is_default: bool
    created_at: datetime


class PriceEstimateOut(BaseModel):
    rule: Optional[PricingRuleOut] = None
    estimated_price: Optional[float] = None


class ThresholdIn(BaseModel):
    max_rental_hours: float = Field(ge=0)
    max_rental_area: float = Field(ge=0)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    status: RecordStatus = RecordStatus.ACTIVE


class ThresholdOut(BaseModel):
    id: str
    category_id: str
    max_rental_hours: float
    max_rental_area: float
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    status: RecordStatus
