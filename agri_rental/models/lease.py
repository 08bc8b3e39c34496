from sqlalchemy import Column, String, Float, Date, Integer, ForeignKey, Enum, JSON
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import LeaseStatus, CommitmentType


class Lease(BaseModel):
    __tablename__ = "leases"

    order_id = Column(ForeignKey("orders.id"), nullable=False, unique=True)
    device_id = Column(ForeignKey("devices.id"), nullable=False, index=True)
    intermediary_id = Column(ForeignKey("intermediaries.id"), nullable=False, index=True)

    status = Column(Enum(LeaseStatus), nullable=False, default=LeaseStatus.ACTIVE)

    commitment_type = Column(Enum(CommitmentType), nullable=False)
    commitment_value = Column(Float, nullable=False, default=0.0)

    estimated_price = Column(Float, nullable=True)
    deposit_amount = Column(Float, nullable=True)

    start_date = Column(Date, nullable=True)
    # NULL while the lease is ongoing
    end_date = Column(Date, nullable=True)

    # [{"operator_id", "role", "assigned_at"}], in assignment order
    operators = Column(JSON, nullable=False, default=list)
    # [{"type", "url", "uploaded_at"}]
    attachments = Column(JSON, nullable=False, default=list)

    signed_by_admin_id = Column(String(36), nullable=True)
    notes = Column(String(1000), nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def commitment(self) -> dict:
        return {"type": self.commitment_type, "value": self.commitment_value}

    def primary_operator_ids(self) -> list:
        return [op["operator_id"] for op in self.operators or [] if op.get("role") == "PRIMARY"]
