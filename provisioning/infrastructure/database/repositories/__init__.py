# Device Store Implementations

from .device_store_repository import SqlDeviceStore, is_transient_error

__all__ = [
    "SqlDeviceStore",
    "is_transient_error",
]
