from sqlalchemy import Column, String, Date, Enum, JSON, Index
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import RecordStatus


class PricingRule(BaseModel):
    __tablename__ = "pricing_rules"
    __table_args__ = (
        Index("ix_pricing_rules_category_location", "category_id", "location_code", "status"),
    )

    category_id = Column(String(64), nullable=False)
    location_code = Column(String(20), nullable=False)
    # [{"metric": "PER_HOUR", "rate": 450.0}, ...]
    rates = Column(JSON, nullable=False, default=list)
    effective_from = Column(Date, nullable=False)
    # NULL marks the standing (default) rule
    effective_to = Column(Date, nullable=True)
    status = Column(Enum(RecordStatus), nullable=False, default=RecordStatus.ACTIVE)

    @property
    def is_standing(self) -> bool:
        return self.effective_to is None

    def rate_for(self, metric):
        for item in self.rates or []:
            if item.get("metric") == str(metric):
                return item.get("rate")
        return None
