"""
Device API endpoints.

Read access to stored device registrations.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_device_store
from ..schemas import DeviceRecordResponse
from ...application.interfaces import DeviceStore
from ...domain.exceptions import DeviceNotFound

router = APIRouter(prefix="/devices", tags=["Devices"])


@router.get(
    "/{allocated_id}",
    response_model=DeviceRecordResponse,
    summary="Get device registration",
    description="Get the stored registration for an allocated device id.",
)
async def get_device(
    allocated_id: str,
    store: DeviceStore = Depends(get_device_store),
) -> DeviceRecordResponse:
    """
    Get a device by allocated id.
    """
    record = await store.get(allocated_id)
    if record is None:
        raise DeviceNotFound(allocated_id)

    return DeviceRecordResponse.model_validate(record)
