"""
Connection manager for device connections.

Runs the lifecycle of each accepted connection: registration in the
connection registry, line framing, dispatch of every complete line to
the frame handler, and cleanup when the connection ends.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..config import GatewaySettings, get_gateway_settings
from ..protocols.line_framer import LineFramer
from .connection_registry import ConnectionRegistry
from .tcp_connection import ConnectionState, TCPConnection

logger = logging.getLogger(__name__)


# Receives one framed line and the peer address, returns the reply bytes
FrameHandler = Callable[[bytes, str], Awaitable[bytes]]


class ConnectionManager:
    """
    Manages the lifecycle of device connections.

    Responsibilities:
    - Register each connection in the registry while it is open
    - Frame inbound bytes into lines
    - Process lines strictly in order, one reply per line
    - Close idle connections
    - Remove the registry entry exactly once when a connection ends
    """

    def __init__(
        self,
        frame_handler: FrameHandler,
        registry: ConnectionRegistry,
        settings: Optional[GatewaySettings] = None,
    ):
        """
        Initialize the connection manager.

        Args:
            frame_handler: Coroutine producing the reply for a line.
            registry: Registry of live connections.
            settings: Gateway settings.
        """
        self.frame_handler = frame_handler
        self.registry = registry
        self.settings = settings or get_gateway_settings()

        # Statistics
        self._total_frames = 0
        self._timed_out = 0
        self._faults = 0

    def handle_connection(self, connection: TCPConnection) -> asyncio.Task:
        """
        Handle a new connection from the TCP server.

        This is the main entry point called by the TCP server for
        each new connection.

        Args:
            connection: The new TCP connection.

        Returns:
            Task handling the connection lifecycle.
        """
        return asyncio.create_task(
            self._connection_lifecycle(connection),
            name=f"conn-{connection.connection_id}",
        )

    async def _connection_lifecycle(self, connection: TCPConnection) -> None:
        """
        Manage the full lifecycle of a connection.

        1. Register the connection by address
        2. Read, frame and dispatch lines until EOF, timeout or error
        3. Remove the registry entry and close the socket

        Args:
            connection: The connection to manage.
        """
        address = connection.remote_addr
        conn_settings = self.settings.connection
        framer = LineFramer.for_devices(
            max_line_bytes=conn_settings.max_line_bytes,
            accept_escaped_terminator=conn_settings.accept_escaped_terminator,
        )

        connection.enable_keepalive(conn_settings.keepalive)
        self.registry.add(address, connection)
        logger.info(f"New client connection from {address}")

        reason = "normally"
        read_timeout = conn_settings.idle_timeout
        try:
            while connection.is_open:
                try:
                    data = await connection.read_chunk(
                        conn_settings.read_chunk_size,
                        timeout=read_timeout,
                    )
                except asyncio.TimeoutError:
                    # Pushed writes count as activity too
                    remaining = self._idle_remaining(connection)
                    if remaining > 0:
                        read_timeout = remaining
                        continue
                    logger.info(f"Connection from {address} timed out")
                    self._timed_out += 1
                    reason = "after idle timeout"
                    break

                read_timeout = conn_settings.idle_timeout

                if not data:
                    # Peer closed its side; answer a trailing partial frame once
                    pending = framer.flush()
                    if pending is not None:
                        await self._process_line(connection, pending)
                    break

                for line in framer.feed(data):
                    await self._process_line(connection, line)

        except asyncio.CancelledError:
            reason = "on shutdown"
            raise
        except (ConnectionError, asyncio.TimeoutError) as e:
            # Idle timeouts are handled above, this is a reset or a stalled write
            logger.error(f"Connection error with {address}: {e!r}")
            self._faults += 1
            reason = "due to error"
        except Exception:
            logger.exception(f"Unexpected error on connection {address}")
            self._faults += 1
            reason = "due to error"
        finally:
            connection.state = ConnectionState.CLOSING
            framer.reset()
            self.registry.remove(address, connection)
            await connection.close(timeout=conn_settings.close_timeout)
            logger.info(f"Connection from {address} closed {reason}")

    async def _process_line(self, connection: TCPConnection, line: bytes) -> None:
        """
        Dispatch one framed line and write its reply.

        Args:
            connection: Connection the line arrived on.
            line: Framed line, terminator included when present.
        """
        logger.debug(f"Data received from {connection.remote_addr}: {line!r}")

        reply = await self.frame_handler(line, connection.remote_addr)
        connection.record_frame()
        self._total_frames += 1

        await connection.write(
            reply,
            timeout=self.settings.connection.write_timeout,
        )

    def _idle_remaining(self, connection: TCPConnection) -> float:
        """Seconds left before the connection counts as idle."""
        last = connection.last_activity
        if last is None:
            return 0.0
        elapsed = asyncio.get_running_loop().time() - last
        return self.settings.connection.idle_timeout - elapsed

    def get_stats(self) -> dict:
        """Get connection manager statistics."""
        return {
            "active_connections": len(self.registry),
            "total_frames": self._total_frames,
            "timed_out": self._timed_out,
            "faults": self._faults,
        }
