"""
Domain Exceptions - Custom exceptions for provisioning errors.
"""
from typing import Any, Dict, Optional


class DomainException(Exception):
    """
    Base of every provisioning error.

    code is the stable identifier reported to devices and API
    clients; details carries structured context for logs.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for API error responses."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class FormatError(DomainException):
    """Raised when an inbound frame does not match the registration grammar."""

    def __init__(self, message: str, frame: Optional[str] = None):
        super().__init__(
            message=message,
            code='INVALID_FORMAT',
            details={'frame': frame} if frame is not None else {}
        )
        self.frame = frame


class StoreError(DomainException):
    """
    Raised when the device store cannot complete an operation.

    Reported to devices as a persistence failure.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = dict(details or {})
        if operation:
            merged['operation'] = operation
        super().__init__(message=message, code='DB_WRITE_FAILED', details=merged)
        self.operation = operation


class StoreUnavailable(StoreError):
    """Raised when the store cannot be reached. Never retried."""
    pass


class TransactionConflict(StoreError):
    """Raised when a store transaction kept conflicting after all retries."""

    def __init__(self, message: str, operation: Optional[str] = None, attempts: int = 0):
        super().__init__(message=message, operation=operation, details={'attempts': attempts})
        self.attempts = attempts


class DeviceNotFound(DomainException):
    """Raised when a device record lookup finds nothing."""

    def __init__(self, allocated_id: str):
        super().__init__(
            message=f"Device with id '{allocated_id}' not found",
            code='DEVICE_NOT_FOUND',
            details={'allocated_id': allocated_id}
        )
        self.allocated_id = allocated_id
