"""
Pydantic schemas for device API endpoints.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DeviceRecordResponse(BaseModel):
    """Stored registration of one device."""
    model_config = ConfigDict(from_attributes=True)

    allocated_id: str
    serial_number: str
    registered_at_millis: int
    dedup_key: str
    mac_id: str
    device_type: str
    switch_count: str
    software_version: str
    hardware_version: str
    default_device_id: str
    peer_address: Optional[str] = None
