from sqlalchemy import Column, String, ForeignKey, Enum
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import RecordStatus


class Operator(BaseModel):
    __tablename__ = "operators"

    user_id = Column(ForeignKey("users.id"), unique=True, nullable=False, index=True)
    status = Column(Enum(RecordStatus), nullable=False, default=RecordStatus.ACTIVE)
