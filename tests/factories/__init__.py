"""
Test data factories for the provisioning server.

Provides factory classes for generating test data.
"""
from .device_factory import DeviceRecordFactory, RegistrationFrameFactory, registration_line

__all__ = [
    "DeviceRecordFactory",
    "RegistrationFrameFactory",
    "registration_line",
]
