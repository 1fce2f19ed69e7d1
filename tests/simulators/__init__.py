"""
Device simulators for provisioning server testing.

Provides virtual devices that connect to the gateway and speak the
registration line protocol, for end-to-end testing without hardware.
"""
from .device_simulator import DeviceSimulator

__all__ = [
    "DeviceSimulator",
]
