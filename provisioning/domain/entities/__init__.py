from .device import DeviceRecord

__all__ = ['DeviceRecord']
