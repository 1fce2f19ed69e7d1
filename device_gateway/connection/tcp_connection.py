"""
Device connection handle.

Wraps the asyncio stream pair of one accepted device socket. The
connection manager reads from it, the connection registry writes
pushed lines through it, and both see the same OPEN/CLOSING/CLOSED
state.
"""
import asyncio
import logging
import socket
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

logger = logging.getLogger(__name__)


class ConnectionFault(ConnectionError):
    """Transport-level failure on a device connection."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"Connection fault on {address}: {reason}")
        self.address = address
        self.reason = reason


class ConnectionState(str, Enum):
    """Lifecycle of a device connection."""
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def format_address(sockaddr: Any) -> str:
    """Render a socket address as host:port."""
    if not sockaddr:
        return "unknown"
    return f"{sockaddr[0]}:{sockaddr[1]}"


class TCPConnection:
    """
    One device socket.

    remote_addr (host:port of the device) is the key the connection
    is registered under. Writes from the registry and replies from
    the connection task go through write(), so both are refused once
    the connection has left the OPEN state.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        connection_id: Optional[UUID] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.connection_id = connection_id or uuid4()
        self.remote_addr = format_address(writer.get_extra_info("peername"))

        self._state = ConnectionState.OPEN
        self._opened_at = datetime.now(timezone.utc)
        self._last_seen = self._opened_at
        # Event loop time of the last read or write, None before the first
        self._last_activity: Optional[float] = None

        # Counters
        self._rx_bytes = 0
        self._tx_bytes = 0
        self._frames = 0
        self._errors = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @state.setter
    def state(self, value: ConnectionState) -> None:
        if value is not self._state:
            logger.debug(f"{self.remote_addr}: {self._state.value} -> {value.value}")
            self._state = value

    @property
    def is_open(self) -> bool:
        """True while the connection accepts reads and writes."""
        return self._state is ConnectionState.OPEN

    @property
    def last_activity(self) -> Optional[float]:
        """Event loop time of the last bytes moved in either direction."""
        return self._last_activity

    def record_frame(self) -> None:
        self._frames += 1

    def enable_keepalive(self, idle_seconds: float) -> None:
        """
        Enable TCP keep-alive probes on the socket.

        Args:
            idle_seconds: Idle time before the first probe, where the
                          platform lets it be set.
        """
        sock = self.writer.get_extra_info("socket")
        if sock is None:
            return

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            if hasattr(socket, "TCP_KEEPIDLE"):
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, max(1, int(idle_seconds)))
        except OSError as e:
            logger.debug(f"Keep-alive not enabled for {self.remote_addr}: {e}")

    async def read_chunk(
        self,
        max_bytes: int = 4096,
        timeout: Optional[float] = None,
    ) -> bytes:
        """
        Read the next bytes the device sends.

        Args:
            max_bytes: Upper bound on bytes returned.
            timeout: Seconds to wait, None waits forever.

        Returns:
            Received bytes, b"" once the device has closed its side.

        Raises:
            asyncio.TimeoutError: Nothing arrived within timeout.
            ConnectionFault: The connection is not open or the read failed.
        """
        if not self.is_open:
            raise ConnectionFault(self.remote_addr, "connection is not open")

        try:
            chunk = await asyncio.wait_for(self.reader.read(max_bytes), timeout)
        except asyncio.TimeoutError:
            raise
        except OSError as e:
            self._errors += 1
            raise ConnectionFault(self.remote_addr, f"read failed: {e}") from e

        if chunk:
            self._rx_bytes += len(chunk)
            self._touch()
        return chunk

    async def write(self, data: bytes, timeout: float = 10.0) -> None:
        """
        Send bytes and wait until they are flushed to the socket.

        Raises:
            asyncio.TimeoutError: The device stopped draining its buffer.
            ConnectionError: The connection is not open or was reset.
        """
        if not self.is_open:
            raise ConnectionFault(self.remote_addr, "connection is not open")

        self.writer.write(data)
        try:
            await asyncio.wait_for(self.writer.drain(), timeout)
        except ConnectionError:
            self._errors += 1
            self.state = ConnectionState.CLOSING
            raise
        except asyncio.TimeoutError:
            self._errors += 1
            raise

        self._tx_bytes += len(data)
        self._touch()

    async def write_line(
        self,
        message: str,
        line_ending: str = "\r\n",
        timeout: float = 10.0,
    ) -> None:
        """Send a text message as one terminated line."""
        await self.write(f"{message}{line_ending}".encode("utf-8"), timeout=timeout)

    def _touch(self) -> None:
        self._last_seen = datetime.now(timezone.utc)
        self._last_activity = asyncio.get_running_loop().time()

    async def close(self, timeout: float = 5.0) -> None:
        """Close the socket. Safe to call more than once."""
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED

        self.writer.close()
        try:
            await asyncio.wait_for(self.writer.wait_closed(), timeout)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Unclean close of {self.remote_addr}: {e!r}")

    def get_stats(self) -> dict:
        """Per-connection counters and timings."""
        now = datetime.now(timezone.utc)
        return {
            "connection_id": str(self.connection_id),
            "remote_addr": self.remote_addr,
            "state": self._state.value,
            "opened_at": self._opened_at.isoformat(),
            "open_seconds": (now - self._opened_at).total_seconds(),
            "idle_seconds": (now - self._last_seen).total_seconds(),
            "bytes_received": self._rx_bytes,
            "bytes_sent": self._tx_bytes,
            "frames_handled": self._frames,
            "errors": self._errors,
        }

    def __repr__(self) -> str:
        return f"<TCPConnection {self.remote_addr} {self._state.value}>"
