"""
Database infrastructure for device records and the serial counter.
"""
from .connection import DatabaseManager
from .repositories import SqlDeviceStore

__all__ = [
    "DatabaseManager",
    "SqlDeviceStore",
]
