"""
Device store interface (port).

Defines what the registration flow needs from persistent storage
without specifying the implementation details.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ...domain.entities.device import DeviceRecord


# Builds the record for a new device from the freshly allocated counter value
RecordBuilder = Callable[[int], DeviceRecord]


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of an allocation attempt."""
    record: DeviceRecord
    created: bool


class DeviceStore(ABC):
    """
    Transactional store for device records and the serial counter.

    Implementations raise StoreUnavailable when the backend cannot be
    reached and TransactionConflict when a transaction keeps
    conflicting after bounded retries.
    """

    @abstractmethod
    async def get(self, allocated_id: str) -> Optional[DeviceRecord]:
        """
        Get a device record by allocated id.

        Args:
            allocated_id: Server-generated device id

        Returns:
            DeviceRecord if found, None otherwise
        """
        pass

    @abstractmethod
    async def put(self, record: DeviceRecord) -> None:
        """
        Write a device record keyed by its allocated id.

        Args:
            record: Record to write
        """
        pass

    @abstractmethod
    async def find_by_dedup_key(self, dedup_key: str) -> Optional[DeviceRecord]:
        """
        Find the first record with the given dedup key.

        Args:
            dedup_key: Device dedup key

        Returns:
            DeviceRecord if found, None otherwise
        """
        pass

    @abstractmethod
    async def increment_counter(self, name: str, seed: int) -> int:
        """
        Atomically increment a named counter and return the new value.

        Args:
            name: Counter name
            seed: Value assumed when the counter does not exist yet

        Returns:
            The incremented value
        """
        pass

    @abstractmethod
    async def allocate(
        self,
        dedup_key: str,
        counter_name: str,
        seed: int,
        build_record: RecordBuilder,
    ) -> AllocationResult:
        """
        Atomically register a device unless it already exists.

        Within one transaction: re-check the dedup key, increment the
        counter, build the record from the new value and insert it.
        If the dedup key is already present the existing record is
        returned and the counter is left untouched.

        Args:
            dedup_key: Device dedup key
            counter_name: Counter to draw the serial number from
            seed: Value assumed when the counter does not exist yet
            build_record: Called with the new counter value, possibly
                          more than once if the transaction is retried

        Returns:
            AllocationResult with created=True for a new device
        """
        pass
