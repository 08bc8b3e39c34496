from sqlalchemy import Column, String, Enum
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import UserRole


class User(BaseModel):
    __tablename__ = "users"
    phone = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(120), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.FARMER)
