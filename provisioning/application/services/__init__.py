"""
Application services.
"""
from .registration_service import (
    KeyedLocks,
    RegistrationService,
    current_millis,
    generate_allocated_id,
)

__all__ = [
    "KeyedLocks",
    "RegistrationService",
    "current_millis",
    "generate_allocated_id",
]
