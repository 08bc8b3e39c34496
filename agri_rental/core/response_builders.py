from agri_rental.core.state_machine import allowed_next_states
from agri_rental.models.device import Device
from agri_rental.models.lease import Lease
from agri_rental.models.order import Order
from agri_rental.models.pricing_rule import PricingRule
from agri_rental.models.threshold_config import ThresholdConfig
from agri_rental.schemas.device import DeviceOut
from agri_rental.schemas.lease import LeaseOut
from agri_rental.schemas.order import OrderOut
from agri_rental.schemas.pricing import PricingRuleOut, ThresholdOut


def build_order_response(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        kind=order.kind,
        status=order.status,
        device_id=order.device_id,
        requester_id=order.requester_id,
        requester_phone=order.requester_phone,
        requester_name=order.requester_name,
        handler=order.handler,
        requested_hours=order.requested_hours,
        requested_area=order.requested_area,
        note=order.note,
        start_date=order.start_date,
        end_date=order.end_date,
        allowed_next_states=sorted(allowed_next_states(order.status), key=str),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def build_lease_response(lease: Lease) -> LeaseOut:
    return LeaseOut(
        id=lease.id,
        order_id=lease.order_id,
        device_id=lease.device_id,
        intermediary_id=lease.intermediary_id,
        status=lease.status,
        commitment=lease.commitment,
        estimated_price=lease.estimated_price,
        deposit_amount=lease.deposit_amount,
        start_date=lease.start_date,
        end_date=lease.end_date,
        operators=lease.operators or [],
        attachments=lease.attachments or [],
        signed_by_admin_id=lease.signed_by_admin_id,
        notes=lease.notes,
        created_at=lease.created_at,
        updated_at=lease.updated_at,
    )


def build_pricing_rule_response(rule: PricingRule) -> PricingRuleOut:
    return PricingRuleOut(
        id=rule.id,
        category_id=rule.category_id,
        location_code=rule.location_code,
        rates=rule.rates or [],
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        status=rule.status,
        is_default=rule.is_standing,
        created_at=rule.created_at,
    )


def build_threshold_response(config: ThresholdConfig) -> ThresholdOut:
    return ThresholdOut(
        id=config.id,
        category_id=config.category_id,
        max_rental_hours=config.max_rental_hours,
        max_rental_area=config.max_rental_area,
        effective_from=config.effective_from,
        effective_to=config.effective_to,
        status=config.status,
    )


def build_device_response(device: Device) -> DeviceOut:
    return DeviceOut(
        id=device.id,
        name=device.name,
        category_id=device.category_id,
        location_code=device.location_code,
        description=device.description,
        owner=device.owner,
        requires_operator=device.requires_operator,
        status=device.status,
        current_lease_id=device.current_lease_id,
        created_at=device.created_at,
        updated_at=device.updated_at,
    )


def build_order_response_list(orders: list) -> list:
    return [build_order_response(order) for order in orders]


def build_lease_response_list(leases: list) -> list:
    return [build_lease_response(lease) for lease in leases]


def build_pricing_rule_response_list(rules: list) -> list:
    return [build_pricing_rule_response(rule) for rule in rules]
