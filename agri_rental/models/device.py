from sqlalchemy import Column, String, Enum, Boolean
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import DeviceStatus


class Device(BaseModel):
    __tablename__ = "devices"

    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    owner = Column(String(120), nullable=True)
    category_id = Column(String(64), nullable=True, index=True)
    location_code = Column(String(20), nullable=True, index=True)
    requires_operator = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(DeviceStatus), nullable=False, default=DeviceStatus.DRAFT)
    # Points at the lease holding the device; cleared when that lease completes.
    current_lease_id = Column(String(36), nullable=True, index=True)
