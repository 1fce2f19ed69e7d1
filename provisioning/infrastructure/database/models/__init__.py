"""
SQLAlchemy ORM models.
"""
from .base import Base, metadata
from .device_model import CounterModel, DeviceRecordModel

__all__ = [
    # Base
    "Base",
    "metadata",
    # Models
    "CounterModel",
    "DeviceRecordModel",
]
