from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from agri_rental.core.enums import DeviceStatus, FinalizeAction


class DeviceCreate(BaseModel):
    name: str
    category_id: Optional[str] = None
    location_code: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    requires_operator: bool = False


class DeviceFinalize(BaseModel):
    action: FinalizeAction


class DeviceStatusUpdate(BaseModel):
    status: DeviceStatus


class DeviceOut(BaseModel):
    id: str
    name: str
    category_id: Optional[str] = None
    location_code: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    requires_operator: bool
    status: DeviceStatus
    current_lease_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
