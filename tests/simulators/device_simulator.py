"""
Simulated device client.

Connects to the device gateway the way device firmware does: send a
registration line, read one reply line, and optionally stay connected
to receive pushed messages.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class DeviceSimulator:
    """
    TCP client speaking the device line protocol.

    Usage:
        async with DeviceSimulator("127.0.0.1", port) as device:
            reply = await device.register(b"dr:AA:BB:2:1.0:1.0:DEV1\\r\\n")
    """

    def __init__(
        self,
        host: str,
        port: int,
        name: str = "Device",
        timeout: float = 5.0,
    ):
        """
        Initialize simulator.

        Args:
            host: Gateway host.
            port: Gateway port.
            name: Human-readable name for logging.
            timeout: Timeout for every read.
        """
        self.host = host
        self.port = port
        self.name = name
        self.timeout = timeout

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._lines_sent = 0
        self._lines_received = 0

    @property
    def is_connected(self) -> bool:
        """Check if the simulator holds an open connection."""
        return self._writer is not None and not self._writer.is_closing()

    @property
    def local_address(self) -> str:
        """Address of this end as the gateway sees it."""
        host, port = self._writer.get_extra_info("sockname")[:2]
        return f"{host}:{port}"

    async def connect(self) -> None:
        """Open the connection to the gateway."""
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        logger.debug(f"{self.name}: Connected as {self.local_address}")

    async def send(self, data: bytes) -> None:
        """Write raw bytes."""
        self._writer.write(data)
        await self._writer.drain()
        self._lines_sent += 1

    async def finish_sending(self) -> None:
        """Half-close: signal end of input while still reading replies."""
        self._writer.write_eof()
        await self._writer.drain()

    async def read_line(self) -> bytes:
        """Read one CR LF terminated line."""
        line = await asyncio.wait_for(
            self._reader.readuntil(b"\r\n"),
            timeout=self.timeout,
        )
        self._lines_received += 1
        return line

    async def register(self, line: bytes) -> bytes:
        """Send a registration line and return the reply line."""
        await self.send(line)
        return await self.read_line()

    async def wait_closed_by_peer(self) -> bool:
        """Wait until the gateway closes the connection."""
        data = await asyncio.wait_for(self._reader.read(), timeout=self.timeout)
        return data == b""

    async def close(self) -> None:
        """Close the connection."""
        if self._writer is None:
            return

        self._writer.close()
        try:
            await self._writer.wait_closed()
        except ConnectionError:
            pass
        self._writer = None
        logger.debug(f"{self.name}: Disconnected")

    def get_stats(self) -> Dict[str, Any]:
        """Get simulator statistics."""
        return {
            "name": self.name,
            "connected": self.is_connected,
            "lines_sent": self._lines_sent,
            "lines_received": self._lines_received,
        }

    async def __aenter__(self) -> "DeviceSimulator":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
