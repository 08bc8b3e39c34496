from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from agri_rental.db.session import get_db
from agri_rental.schemas.device import DeviceCreate, DeviceFinalize, DeviceStatusUpdate, DeviceOut
from agri_rental.core.security import get_current_user, require_admin
from agri_rental.core.response_builders import build_device_response
from agri_rental.services.devices import DeviceService

router = APIRouter(prefix="/devices", tags=["devices"])


@router.post("/", response_model=DeviceOut, status_code=201)
async def create_device(
    payload: DeviceCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_admin),
):
    device = await DeviceService(db).create_device(**payload.model_dump())
    return build_device_response(device)


@router.get("/{device_id}", response_model=DeviceOut)
async def get_device(
    device_id: str,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    device = await DeviceService(db).get_device(device_id)
    return build_device_response(device)


@router.post("/{device_id}/finalize", response_model=DeviceOut)
async def finalize_device(
    device_id: str,
    payload: DeviceFinalize,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_admin),
):
    device = await DeviceService(db).finalize(device_id, payload.action)
    return build_device_response(device)


@router.patch("/{device_id}/status", response_model=DeviceOut)
async def set_device_status(
    device_id: str,
    payload: DeviceStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_admin),
):
    device = await DeviceService(db).set_status(device_id, payload.status)
    return build_device_response(device)
