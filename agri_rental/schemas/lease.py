from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from agri_rental.core.enums import LeaseStatus, CommitmentType, OperatorRole, DocumentType


class OperatorAssignmentIn(BaseModel):
    operator_id: str
    role: OperatorRole = OperatorRole.PRIMARY


class AttachmentIn(BaseModel):
    type: DocumentType
    url: str


class LeaseCreate(BaseModel):
    order_id: str
    deposit_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)
    operators: List[OperatorAssignmentIn] = []
    attachments: List[AttachmentIn] = []


class LeaseComplete(BaseModel):
    end_date: Optional[date] = None


class CommitmentOut(BaseModel):
    type: CommitmentType
    value: float


class OperatorAssignmentOut(BaseModel):
    operator_id: str
    role: OperatorRole
    assigned_at: datetime


class AttachmentOut(BaseModel):
    type: DocumentType
    url: str
    uploaded_at: Optional[datetime] = None


class LeaseOut(BaseModel):
    id: str
    order_id: str
    device_id: str
    intermediary_id: str
    status: LeaseStatus
    commitment: CommitmentOut
    estimated_price: Optional[float] = None
    deposit_amount: Optional[float] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    operators: List[OperatorAssignmentOut] = []
    attachments: List[AttachmentOut] = []
    signed_by_admin_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
