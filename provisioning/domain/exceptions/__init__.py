from .domain_exceptions import (
    DomainException,
    FormatError,
    StoreError,
    StoreUnavailable,
    TransactionConflict,
    DeviceNotFound,
)

__all__ = [
    'DomainException',
    'FormatError',
    'StoreError',
    'StoreUnavailable',
    'TransactionConflict',
    'DeviceNotFound',
]
