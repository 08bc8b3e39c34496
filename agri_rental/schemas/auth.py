from pydantic import BaseModel, Field
from typing import Optional
from agri_rental.core.enums import UserRole


class RegisterIn(BaseModel):
    phone: str = Field(min_length=6, max_length=20)
    password: str = Field(min_length=6)
    name: Optional[str] = None
    role: UserRole = UserRole.FARMER
    # Required when registering as an intermediary
    business_name: Optional[str] = None
    location_code: Optional[str] = None


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: str
    phone: str
    name: Optional[str] = None
    role: UserRole
