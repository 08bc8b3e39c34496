from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from agri_rental.core.enums import OrderStatus, OrderKind, HandlerType


class OrderCreate(BaseModel):
    device_id: str
    start_date: date
    end_date: date
    requested_hours: Optional[float] = Field(None, ge=0)
    requested_area: Optional[float] = Field(None, ge=0)
    note: Optional[str] = Field(None, max_length=1000)
    submit: bool = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = Field(None, max_length=1000)


class OrderAction(BaseModel):
    note: Optional[str] = Field(None, max_length=1000)


class HandlerOut(BaseModel):
    type: HandlerType
    id: str


class OrderOut(BaseModel):
    id: str
    kind: OrderKind
    status: OrderStatus
    device_id: str
    requester_id: str
    requester_phone: Optional[str] = None
    requester_name: Optional[str] = None
    handler: HandlerOut
    requested_hours: Optional[float] = None
    requested_area: Optional[float] = None
    note: Optional[str] = None
    start_date: date
    end_date: date
    allowed_next_states: list[OrderStatus] = []
    created_at: datetime
    updated_at: Optional[datetime] = None
