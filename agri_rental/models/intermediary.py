from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from agri_rental.models.base import BaseModel


class Intermediary(BaseModel):
    """Local business that fulfils RENT orders and holds leased devices."""
    __tablename__ = "intermediaries"

    user_id = Column(ForeignKey("users.id"), unique=True, nullable=False, index=True)
    user = relationship("User", lazy="selectin")

    business_name = Column(String(160), nullable=False)
    location_code = Column(String(20), nullable=True, index=True)
