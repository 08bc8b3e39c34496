from sqlalchemy import Column, String, Float, Date, Integer, ForeignKey, Enum
from sqlalchemy.orm import validates
from agri_rental.models.base import BaseModel
from agri_rental.core.enums import OrderStatus, OrderKind, HandlerType

# Derived at creation from the threshold config of the day; later config
# changes must not reclassify or reroute an existing order.
IMMUTABLE_FIELDS = ("kind", "handler_type", "handler_id")


class Order(BaseModel):
    __tablename__ = "orders"

    kind = Column(Enum(OrderKind), nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.DRAFT, nullable=False)

    device_id = Column(ForeignKey("devices.id"), nullable=False, index=True)
    requester_id = Column(ForeignKey("users.id"), nullable=False, index=True)

    handler_type = Column(Enum(HandlerType), nullable=False)
    handler_id = Column(String(36), nullable=False, index=True)

    requested_hours = Column(Float, nullable=True)
    requested_area = Column(Float, nullable=True)
    note = Column(String(1000), nullable=True)

    requester_phone = Column(String(20), nullable=True)
    requester_name = Column(String(120), nullable=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @validates(*IMMUTABLE_FIELDS)
    def _fixed_at_creation(self, key, value):
        current = self.__dict__.get(key)
        if current is not None and current != value:
            raise ValueError(f"Order.{key} is fixed at creation and cannot change")
        return value

    @property
    def handler(self) -> dict:
        return {"type": self.handler_type, "id": self.handler_id}
