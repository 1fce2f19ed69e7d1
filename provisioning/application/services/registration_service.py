"""
Registration Service.

Turns a device registration line into a reply: parse, deduplicate,
allocate a serial number on first sight, persist, and answer.
"""
import asyncio
import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from ...config import RegistrationSettings
from ...domain.entities.device import DeviceRecord
from ...domain.exceptions import FormatError, StoreError
from ...domain.value_objects import ErrorCode, RegistrationFrame, ReplyFrame
from ..interfaces.device_store import DeviceStore

logger = logging.getLogger(__name__)


def generate_allocated_id(length: int = 6) -> str:
    """Random lowercase alphabetic device id."""
    return ''.join(secrets.choice(string.ascii_lowercase) for _ in range(length))


def current_millis() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class KeyedLocks:
    """
    Fixed set of asyncio locks selected by key hash.

    Two registrations for the same dedup key always share a lock;
    different keys usually do not.
    """

    def __init__(self, stripes: int = 64):
        self._locks: List[asyncio.Lock] = [asyncio.Lock() for _ in range(stripes)]

    def for_key(self, key: str) -> asyncio.Lock:
        return self._locks[hash(key) % len(self._locks)]


class RegistrationService:
    """
    Application service for device registration.

    Guarantees at most one allocation per dedup key: a per-key lock
    serializes lookup and allocation inside this process, and the
    store re-checks the key inside the allocation transaction for
    races with other processes.
    """

    def __init__(
        self,
        store: DeviceStore,
        settings: Optional[RegistrationSettings] = None,
        clock: Optional[Callable[[], int]] = None,
        id_generator: Optional[Callable[[int], str]] = None,
        accept_escaped_terminator: bool = True,
    ):
        """
        Initialize the service.

        Args:
            store: Device record and counter store.
            settings: Registration settings.
            clock: Returns the current time in epoch milliseconds.
            id_generator: Returns a new device id of the given length.
            accept_escaped_terminator: Accept frames ending in the literal
                                       escape text, matching the gateway framing.
        """
        self._store = store
        self.settings = settings or RegistrationSettings()
        self._clock = clock or current_millis
        self._id_generator = id_generator or generate_allocated_id
        self._locks = KeyedLocks(self.settings.lock_stripes)
        self.accept_escaped_terminator = accept_escaped_terminator

        # Statistics
        self._frames = 0
        self._allocations = 0
        self._repeats = 0
        self._format_errors = 0
        self._store_errors = 0

    async def register(
        self,
        line: Union[bytes, str],
        peer_address: Optional[str] = None,
    ) -> ReplyFrame:
        """
        Handle one registration line.

        Args:
            line: Raw line, terminator included.
            peer_address: Address of the connection it arrived on.

        Returns:
            Success reply, or an error reply for a malformed frame
            or a store failure.
        """
        self._frames += 1

        try:
            frame = RegistrationFrame.parse(line, self.accept_escaped_terminator)
        except FormatError as e:
            self._format_errors += 1
            logger.warning(f"Invalid data format from {peer_address}: {e.frame!r}")
            return ReplyFrame.error(ErrorCode.INVALID_FORMAT)

        dedup_key = frame.dedup_key(self.settings.dedup_strategy)

        try:
            record = await self._register_frame(frame, dedup_key, peer_address)
        except StoreError as e:
            self._store_errors += 1
            logger.error(f"Error in transaction or storing data for {dedup_key}: {e}")
            return ReplyFrame.error(ErrorCode.DB_WRITE_FAILED)
        except Exception:
            self._store_errors += 1
            logger.exception(f"Unexpected error registering {dedup_key}")
            return ReplyFrame.error(ErrorCode.DB_WRITE_FAILED)

        return ReplyFrame.success(
            allocated_id=record.allocated_id,
            serial_number=record.serial_number,
            timestamp_millis=self._clock(),
            order=self.settings.reply_field_order,
        )

    async def handle_line(self, line: bytes, peer_address: str) -> bytes:
        """Frame handler for the device gateway."""
        reply = await self.register(line, peer_address)
        return reply.encode()

    async def _register_frame(
        self,
        frame: RegistrationFrame,
        dedup_key: str,
        peer_address: Optional[str],
    ) -> DeviceRecord:
        """Look up the device and allocate it if unseen."""
        async with self._locks.for_key(dedup_key):
            existing = await self._store.find_by_dedup_key(dedup_key)
            if existing is not None:
                self._repeats += 1
                logger.info(
                    f"Device already exists: {dedup_key} -> "
                    f"{existing.allocated_id} (serial {existing.serial_number})"
                )
                return existing

            def build_record(counter_value: int) -> DeviceRecord:
                return DeviceRecord.from_frame(
                    frame,
                    allocated_id=self._id_generator(self.settings.allocated_id_length),
                    dedup_key=dedup_key,
                    serial_number=self.format_serial(counter_value),
                    registered_at_millis=self._clock(),
                    peer_address=peer_address,
                )

            result = await self._store.allocate(
                dedup_key=dedup_key,
                counter_name=self.settings.counter_name,
                seed=self.settings.serial_seed,
                build_record=build_record,
            )

        if result.created:
            self._allocations += 1
            logger.info(
                f"Stored device {result.record.allocated_id} "
                f"with serial {result.record.serial_number} ({dedup_key})"
            )
        else:
            self._repeats += 1
            logger.info(f"Device {dedup_key} was registered concurrently elsewhere")

        return result.record

    def format_serial(self, counter_value: int) -> str:
        """Render a counter value as a serial number."""
        if self.settings.serial_padding:
            return str(counter_value).zfill(self.settings.serial_padding)
        return str(counter_value)

    def get_stats(self) -> dict:
        """Get registration statistics."""
        return {
            "frames": self._frames,
            "allocations": self._allocations,
            "repeats": self._repeats,
            "format_errors": self._format_errors,
            "store_errors": self._store_errors,
        }
