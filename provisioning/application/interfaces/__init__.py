from .device_store import AllocationResult, DeviceStore, RecordBuilder

__all__ = [
    'AllocationResult',
    'DeviceStore',
    'RecordBuilder',
]
