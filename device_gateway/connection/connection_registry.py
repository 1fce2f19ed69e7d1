"""
Registry of live device connections.

Maps the transport address of every open connection to the handle
that can write to it, so messages can be pushed to a device from
outside its connection task.
"""
import asyncio
import logging
import threading
from typing import Dict, List, Optional

from .tcp_connection import TCPConnection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Thread-safe address -> connection map.

    The lock guards only the map itself and is never held while
    awaiting a write, so a slow peer cannot stall other callers.
    """

    def __init__(
        self,
        line_ending: str = "\r\n",
        write_timeout: float = 10.0,
    ):
        """
        Initialize the registry.

        Args:
            line_ending: Terminator appended to pushed messages.
            write_timeout: Timeout for each pushed write.
        """
        self._line_ending = line_ending
        self._write_timeout = write_timeout
        self._handles: Dict[str, TCPConnection] = {}
        self._lock = threading.Lock()

        # Statistics
        self._total_added = 0
        self._messages_sent = 0
        self._send_failures = 0

    def add(self, address: str, handle: TCPConnection) -> None:
        """
        Register a connection under its address.

        Replaces any handle already stored for the address.
        """
        with self._lock:
            previous = self._handles.pop(address, None)
            self._handles[address] = handle
            self._total_added += 1

        if previous is not None and previous is not handle:
            logger.warning(f"Replaced stale connection entry for {address}")

    def remove(
        self,
        address: str,
        handle: Optional[TCPConnection] = None,
    ) -> bool:
        """
        Remove the entry for an address.

        Args:
            address: Connection address.
            handle: When given, remove only if the stored entry is this
                    handle, so a reused address is not evicted by an
                    older connection's cleanup.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            current = self._handles.get(address)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._handles[address]
            return True

    def lookup(self, address: str) -> Optional[TCPConnection]:
        """Get the live handle for an address, or None."""
        with self._lock:
            return self._handles.get(address)

    async def send(self, address: str, message: str) -> bool:
        """
        Push a text line to a connected device.

        Args:
            address: Target connection address.
            message: Text to send, the line ending is appended.

        Returns:
            True if the address was registered and the write succeeded.
        """
        handle = self.lookup(address)
        if handle is None:
            logger.info(f"Client {address} not found or not connected")
            return False

        try:
            await handle.write_line(
                message,
                line_ending=self._line_ending,
                timeout=self._write_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            self._send_failures += 1
            logger.error(f"Failed to send message to {address}: {e}")
            return False

        self._messages_sent += 1
        logger.info(f"Message sent to {address}: {message}")
        return True

    def list_addresses(self) -> List[str]:
        """Snapshot of registered addresses in insertion order."""
        with self._lock:
            return list(self._handles.keys())

    async def close_all(self, timeout: float = 5.0) -> None:
        """Close every registered connection and clear the registry."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()

        if handles:
            logger.info(f"Closing {len(handles)} registered connections")
            await asyncio.gather(
                *(handle.close(timeout=timeout) for handle in handles),
                return_exceptions=True,
            )

    def get_stats(self) -> dict:
        """Get registry statistics."""
        with self._lock:
            active = len(self._handles)
        return {
            "active_connections": active,
            "total_registered": self._total_added,
            "messages_sent": self._messages_sent,
            "send_failures": self._send_failures,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, address: object) -> bool:
        with self._lock:
            return address in self._handles
