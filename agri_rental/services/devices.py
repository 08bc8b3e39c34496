import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from agri_rental.core.auth_utils import check_not_found
from agri_rental.core.enums import DeviceStatus, FinalizeAction, LeaseStatus
from agri_rental.core.exceptions import PreconditionFailedError, ValidationFailedError
from agri_rental.models.device import Device
from agri_rental.models.lease import Lease
from agri_rental.services.pricing import PricingResolver

logger = logging.getLogger(__name__)

# Admin-driven status changes outside onboarding finalisation.
MANUAL_STATUSES = {DeviceStatus.NOT_LIVE, DeviceStatus.UNDER_MAINTENANCE, DeviceStatus.RETIRED}


class DeviceService:

    def __init__(self, db: AsyncSession, pricing: Optional[PricingResolver] = None):
        self.db = db
        self.pricing = pricing or PricingResolver(db)

    async def create_device(
        self,
        name: str,
        category_id: Optional[str] = None,
        location_code: Optional[str] = None,
        description: Optional[str] = None,
        owner: Optional[str] = None,
        requires_operator: bool = False,
    ) -> Device:
        device = Device(
            name=name,
            category_id=category_id,
            location_code=location_code,
            description=description,
            owner=owner,
            requires_operator=requires_operator,
            status=DeviceStatus.DRAFT,
        )
        self.db.add(device)
        await self.db.commit()
        await self.db.refresh(device)
        logger.info(f"Registered device {device.id} ({name}) in category {category_id}")
        return device

    async def get_device(self, device_id: str) -> Device:
        res = await self.db.execute(select(Device).where(Device.id == device_id))
        device = res.scalars().first()
        check_not_found(device, "Device", device_id)
        return device

    async def serving_intermediary_id(self, device: Device) -> Optional[str]:
        """Intermediary holding the device's current active lease, if any."""
        if device.current_lease_id is None:
            return None
        res = await self.db.execute(
            select(Lease).where(
                Lease.id == device.current_lease_id,
                Lease.status == LeaseStatus.ACTIVE,
            )
        )
        lease = res.scalars().first()
        return lease.intermediary_id if lease is not None else None

    async def finalize(self, device_id: str, action: FinalizeAction) -> Device:
        device = await self.get_device(device_id)
        if device.status == DeviceStatus.RETIRED:
            raise PreconditionFailedError(f"Device {device_id} is retired")

        if action == FinalizeAction.ONBOARD:
            new_status = DeviceStatus.ONBOARDED
        elif action == FinalizeAction.TAKE_LIVE:
            await self._check_can_go_live(device)
            new_status = DeviceStatus.LIVE
        else:
            raise ValidationFailedError(f"Invalid finalize action: {action}")

        return await self._set_status(device, new_status)

    async def set_status(self, device_id: str, status: DeviceStatus) -> Device:
        device = await self.get_device(device_id)
        if device.status == DeviceStatus.RETIRED:
            raise PreconditionFailedError(f"Device {device_id} is retired")
        if status == DeviceStatus.LIVE:
            await self._check_can_go_live(device)
        elif status not in MANUAL_STATUSES:
            raise ValidationFailedError(f"Status {status} is set through onboarding finalisation")
        return await self._set_status(device, status)

    async def _check_can_go_live(self, device: Device) -> None:
        if not device.category_id or not device.location_code:
            raise PreconditionFailedError("Device missing category or location code")
        if not await self.pricing.has_active_default_rule(device.category_id, device.location_code):
            raise PreconditionFailedError(
                "Default pricing rule required before taking device live",
                {"category_id": device.category_id, "location_code": device.location_code},
            )

    async def _set_status(self, device: Device, status: DeviceStatus) -> Device:
        previous = device.status
        device.status = status
        self.db.add(device)
        await self.db.commit()
        await self.db.refresh(device)
        logger.info(f"Device {device.id} status {previous} -> {status}")
        return device
