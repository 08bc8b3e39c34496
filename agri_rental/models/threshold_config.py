from sqlalchemy import Column, String, Float, Date, Enum
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import RecordStatus


class ThresholdConfig(BaseModel):
    __tablename__ = "threshold_configs"

    category_id = Column(String(64), unique=True, nullable=False, index=True)
    max_rental_hours = Column(Float, nullable=False)
    max_rental_area = Column(Float, nullable=False)
    effective_from = Column(Date, nullable=True)
    effective_to = Column(Date, nullable=True)
    status = Column(Enum(RecordStatus), nullable=False, default=RecordStatus.ACTIVE)
