# Pydantic Schemas for the control API

from .connection_schemas import (
    ConnectionListResponse,
    SendMessageRequest,
    SendMessageResponse,
    LegacyConnectionListResponse,
    LegacySendMessageRequest,
)
from .device_schemas import DeviceRecordResponse

__all__ = [
    # Connections
    "ConnectionListResponse",
    "SendMessageRequest",
    "SendMessageResponse",
    "LegacyConnectionListResponse",
    "LegacySendMessageRequest",
    # Devices
    "DeviceRecordResponse",
]
