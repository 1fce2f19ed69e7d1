"""
Device domain entities.

A DeviceRecord is written once, on the first registration of a
device, and never changes afterwards.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from ..value_objects.registration_frame import RegistrationFrame


@dataclass(frozen=True)
class DeviceRecord:
    """
    Persisted identity of a registered device.

    allocated_id is the server-generated handle, serial_number the
    formatted value taken from the shared counter.
    """
    allocated_id: str
    dedup_key: str
    serial_number: str
    registered_at_millis: int

    # Verbatim from the registration frame
    mac_id: str
    device_type: str
    switch_count: str
    software_version: str
    hardware_version: str
    default_device_id: str

    peer_address: Optional[str] = None

    @classmethod
    def from_frame(
        cls,
        frame: RegistrationFrame,
        allocated_id: str,
        dedup_key: str,
        serial_number: str,
        registered_at_millis: int,
        peer_address: Optional[str] = None,
    ) -> 'DeviceRecord':
        """Create a record for a newly allocated device."""
        return cls(
            allocated_id=allocated_id,
            dedup_key=dedup_key,
            serial_number=serial_number,
            registered_at_millis=registered_at_millis,
            mac_id=frame.mac_id,
            device_type=frame.device_type,
            switch_count=frame.switch_count,
            software_version=frame.software_version,
            hardware_version=frame.hardware_version,
            default_device_id=frame.default_device_id,
            peer_address=peer_address,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return asdict(self)
