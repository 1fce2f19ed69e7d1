"""
SQLAlchemy implementation of the device store.

Handles device record lookups, writes, and atomic serial counter
allocation with bounded retries on transaction conflicts.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.device_model import CounterModel, DeviceRecordModel
from ....application.interfaces.device_store import AllocationResult, DeviceStore, RecordBuilder
from ....domain.entities.device import DeviceRecord
from ....domain.exceptions import StoreUnavailable, TransactionConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03"}

TRANSIENT_MESSAGES = (
    "database is locked",
    "deadlock",
    "could not serialize",
)


def is_transient_error(error: DBAPIError) -> bool:
    """Check whether a driver error is worth retrying."""
    if isinstance(error, IntegrityError):
        return True

    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True

    message = str(orig).lower()
    return any(fragment in message for fragment in TRANSIENT_MESSAGES)


class SqlDeviceStore(DeviceStore):
    """
    Device store backed by a relational database.

    The serial counter lives in the counters table and is advanced
    with a single UPDATE ... RETURNING inside the same transaction
    that inserts the device record, so a failed insert never leaves
    a consumed serial behind. Write transactions from this process
    are serialized behind one lock; the database itself arbitrates
    between processes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int = 5,
        retry_backoff: float = 0.05,
    ):
        self._session_factory = session_factory
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._write_lock = asyncio.Lock()

        # Statistics
        self._conflicts = 0

    # =========================================================================
    # Point operations
    # =========================================================================

    async def get(self, allocated_id: str) -> Optional[DeviceRecord]:
        """
        Get a device record by allocated id.

        Args:
            allocated_id: Server-generated device id.

        Returns:
            DeviceRecord if found, None otherwise.
        """
        async def work(session: AsyncSession) -> Optional[DeviceRecord]:
            model = await session.get(DeviceRecordModel, allocated_id)
            return self._model_to_entity(model) if model else None

        return await self._run_transaction("get", work, write=False)

    async def put(self, record: DeviceRecord) -> None:
        """
        Write a device record keyed by its allocated id.

        Args:
            record: Record to write.
        """
        async def work(session: AsyncSession) -> None:
            await session.merge(self._entity_to_model(record))

        await self._run_transaction("put", work)

    async def find_by_dedup_key(self, dedup_key: str) -> Optional[DeviceRecord]:
        """
        Find the first record with the given dedup key.

        Args:
            dedup_key: Device dedup key.

        Returns:
            DeviceRecord if found, None otherwise.
        """
        async def work(session: AsyncSession) -> Optional[DeviceRecord]:
            return await self._find_by_dedup_key(session, dedup_key)

        return await self._run_transaction("find_by_dedup_key", work, write=False)

    # =========================================================================
    # Counter allocation
    # =========================================================================

    async def increment_counter(self, name: str, seed: int) -> int:
        """
        Atomically increment a named counter and return the new value.

        Args:
            name: Counter name.
            seed: Value assumed when the counter does not exist yet.

        Returns:
            The incremented value.
        """
        async def work(session: AsyncSession) -> int:
            return await self._increment(session, name, seed)

        return await self._run_transaction("increment_counter", work)

    async def allocate(
        self,
        dedup_key: str,
        counter_name: str,
        seed: int,
        build_record: RecordBuilder,
    ) -> AllocationResult:
        """
        Atomically register a device unless it already exists.

        Args:
            dedup_key: Device dedup key.
            counter_name: Counter to draw the serial number from.
            seed: Value assumed when the counter does not exist yet.
            build_record: Called with the new counter value.

        Returns:
            AllocationResult with created=True for a new device.
        """
        async def work(session: AsyncSession) -> AllocationResult:
            existing = await self._find_by_dedup_key(session, dedup_key)
            if existing is not None:
                return AllocationResult(record=existing, created=False)

            value = await self._increment(session, counter_name, seed)
            record = build_record(value)
            session.add(self._entity_to_model(record))
            await session.flush()

            logger.debug(f"Allocated serial {record.serial_number} to {dedup_key}")
            return AllocationResult(record=record, created=True)

        return await self._run_transaction("allocate", work)

    async def get_counter(self, name: str) -> Optional[int]:
        """Current value of a counter, None if it was never incremented."""
        async def work(session: AsyncSession) -> Optional[int]:
            result = await session.execute(
                select(CounterModel.value).where(CounterModel.name == name)
            )
            return result.scalar_one_or_none()

        return await self._run_transaction("get_counter", work, write=False)

    def get_stats(self) -> dict:
        """Get store statistics."""
        return {"transaction_conflicts": self._conflicts}

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _find_by_dedup_key(
        self,
        session: AsyncSession,
        dedup_key: str,
    ) -> Optional[DeviceRecord]:
        query = (
            select(DeviceRecordModel)
            .where(DeviceRecordModel.dedup_key == dedup_key)
            .limit(1)
        )
        result = await session.execute(query)
        model = result.scalars().first()
        return self._model_to_entity(model) if model else None

    async def _increment(self, session: AsyncSession, name: str, seed: int) -> int:
        stmt = (
            update(CounterModel)
            .where(CounterModel.name == name)
            .values(value=CounterModel.value + 1)
            .returning(CounterModel.value)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        value = result.scalar_one_or_none()

        if value is None:
            # First allocation; a concurrent first insert fails on the primary key and retries
            value = seed + 1
            session.add(CounterModel(name=name, value=value))
            await session.flush()

        return value

    async def _run_transaction(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        write: bool = True,
    ) -> T:
        """
        Run work in its own transaction, retrying transient conflicts.

        Raises:
            TransactionConflict: If every attempt conflicted.
            StoreUnavailable: On any other database failure.
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            try:
                if write:
                    async with self._write_lock:
                        return await self._execute(work)
                return await self._execute(work)

            except DBAPIError as e:
                if not is_transient_error(e):
                    raise StoreUnavailable(
                        f"Database error during {operation}: {e.orig}",
                        operation=operation,
                    ) from e
                last_error = e
                self._conflicts += 1
                logger.warning(
                    f"Transaction conflict in {operation} "
                    f"(attempt {attempt}/{self._max_retries}): {e.orig}"
                )
            except (SQLAlchemyError, OSError) as e:
                raise StoreUnavailable(
                    f"Database unavailable during {operation}: {e}",
                    operation=operation,
                ) from e

            if attempt < self._max_retries:
                await asyncio.sleep(self._retry_backoff * attempt)

        raise TransactionConflict(
            f"{operation} kept conflicting after {self._max_retries} attempts",
            operation=operation,
            attempts=self._max_retries,
        ) from last_error

    async def _execute(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            async with session.begin():
                return await work(session)

    @staticmethod
    def _entity_to_model(record: DeviceRecord) -> DeviceRecordModel:
        return DeviceRecordModel(
            allocated_id=record.allocated_id,
            dedup_key=record.dedup_key,
            serial_number=record.serial_number,
            registered_at_millis=record.registered_at_millis,
            mac_id=record.mac_id,
            device_type=record.device_type,
            switch_count=record.switch_count,
            software_version=record.software_version,
            hardware_version=record.hardware_version,
            default_device_id=record.default_device_id,
            peer_address=record.peer_address,
        )

    @staticmethod
    def _model_to_entity(model: DeviceRecordModel) -> DeviceRecord:
        return DeviceRecord(
            allocated_id=model.allocated_id,
            dedup_key=model.dedup_key,
            serial_number=model.serial_number,
            registered_at_millis=model.registered_at_millis,
            mac_id=model.mac_id,
            device_type=model.device_type,
            switch_count=model.switch_count,
            software_version=model.software_version,
            hardware_version=model.hardware_version,
            default_device_id=model.default_device_id,
            peer_address=model.peer_address,
        )
