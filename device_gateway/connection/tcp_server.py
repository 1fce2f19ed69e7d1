"""
TCP listener for device connections.

Accepts sockets, enforces the connection limit, and hands every
accepted connection to a handler that owns it from then on.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from ..config import GatewaySettings, get_gateway_settings
from .tcp_connection import TCPConnection

logger = logging.getLogger(__name__)


# Starts handling a connection and returns the task doing it
ConnectionHandler = Callable[[TCPConnection], asyncio.Task]


class TCPServer:
    """
    Listener that turns accepted sockets into connection tasks.

    Every live connection is tracked with its task so that stop()
    can cancel them and wait for their cleanup.
    """

    def __init__(
        self,
        connection_handler: ConnectionHandler,
        settings: Optional[GatewaySettings] = None,
    ):
        """
        Initialize the listener.

        Args:
            connection_handler: Called once per accepted connection.
            settings: Gateway settings.
        """
        self.settings = settings or get_gateway_settings()
        self._connection_handler = connection_handler

        self._server: Optional[asyncio.AbstractServer] = None
        self._live: Dict[TCPConnection, Optional[asyncio.Task]] = {}

        # Statistics
        self._accepted = 0
        self._rejected = 0

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound, useful when configured with port 0."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """
        Bind and start accepting.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self._server is not None:
            logger.warning("TCP server already started")
            return

        host, port = self.settings.server.host, self.settings.server.port
        try:
            self._server = await asyncio.start_server(
                self._on_accept,
                host=host,
                port=port,
                backlog=self.settings.server.backlog,
            )
        except OSError as e:
            logger.error(f"Cannot listen on {host}:{port}: {e}")
            raise

        bound = ", ".join(
            f"{name[0]}:{name[1]}"
            for name in (sock.getsockname() for sock in self._server.sockets)
        )
        logger.info(f"TCP server listening on {bound}")

    async def stop(self, timeout: float = 10.0) -> None:
        """
        Stop accepting and end every live connection.

        Args:
            timeout: Seconds allowed for connection cleanup, and again
                     for the listener to finish closing.
        """
        server, self._server = self._server, None
        if server is None:
            return

        server.close()

        # Cancelled tasks close their own sockets in cleanup
        tasks = [task for task in self._live.values() if task is not None and not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info(f"Cancelling {len(tasks)} device connections")
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning(f"{len(pending)} connections did not finish cleanup in {timeout}s")

        # Also waits for client transports on Python 3.12+
        try:
            await asyncio.wait_for(server.wait_closed(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Listener did not close in time")

        self._live.clear()
        logger.info("TCP server stopped")

    async def _on_accept(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        limit = self.settings.server.max_connections
        if len(self._live) >= limit:
            self._rejected += 1
            logger.warning(f"Rejecting connection, {limit} already open")
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
            return

        connection = TCPConnection(reader, writer)
        self._live[connection] = None
        self._accepted += 1

        try:
            task = self._connection_handler(connection)
        except Exception:
            logger.exception(f"Handler refused connection from {connection.remote_addr}")
            del self._live[connection]
            await connection.close()
            return

        self._live[connection] = task
        task.add_done_callback(lambda t: self._on_task_done(connection, t))

    def _on_task_done(self, connection: TCPConnection, task: asyncio.Task) -> None:
        self._live.pop(connection, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Connection task for {connection.remote_addr} failed: {task.exception()!r}")

    def get_stats(self) -> dict:
        """Listener statistics."""
        return {
            "running": self.is_running,
            "host": self.settings.server.host,
            "port": self.bound_port or self.settings.server.port,
            "active_connections": len(self._live),
            "total_connections": self._accepted,
            "rejected_connections": self._rejected,
            "max_connections": self.settings.server.max_connections,
        }

    def list_connections(self) -> List[dict]:
        """Statistics of every live connection."""
        return [connection.get_stats() for connection in list(self._live)]
