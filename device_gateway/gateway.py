"""
Device Gateway orchestrator.

Wires the TCP server, the connection manager and the connection
registry together around a frame handler supplied by the caller.
"""
import logging
from typing import Optional

from .config import GatewaySettings, get_gateway_settings
from .connection.connection_manager import ConnectionManager, FrameHandler
from .connection.connection_registry import ConnectionRegistry
from .connection.tcp_server import TCPServer

logger = logging.getLogger(__name__)


class DeviceGateway:
    """
    TCP front end for device traffic.

    Accepts device connections, keeps the registry of live connections
    current, and answers every framed line with the reply produced by
    the frame handler.
    """

    def __init__(
        self,
        frame_handler: FrameHandler,
        settings: Optional[GatewaySettings] = None,
    ):
        """
        Initialize the gateway.

        Args:
            frame_handler: Coroutine producing the reply for a line.
            settings: Gateway settings.
        """
        self.settings = settings or get_gateway_settings()

        self.registry = ConnectionRegistry(
            write_timeout=self.settings.connection.write_timeout,
        )
        self.connection_manager = ConnectionManager(
            frame_handler=frame_handler,
            registry=self.registry,
            settings=self.settings,
        )
        self.tcp_server = TCPServer(
            connection_handler=self.connection_manager.handle_connection,
            settings=self.settings,
        )

    @property
    def is_running(self) -> bool:
        """Check if the listener is accepting connections."""
        return self.tcp_server.is_running

    @property
    def port(self) -> Optional[int]:
        """Port the listener is bound to."""
        return self.tcp_server.bound_port

    async def start(self) -> None:
        """Start accepting device connections."""
        await self.tcp_server.start()
        logger.info(
            f"Device gateway started on "
            f"{self.settings.server.host}:{self.port}"
        )

    async def stop(self) -> None:
        """Stop the listener and close every device connection."""
        await self.tcp_server.stop(timeout=self.settings.connection.close_timeout)
        # Entries left behind only if a task missed its cleanup
        await self.registry.close_all(timeout=self.settings.connection.close_timeout)
        logger.info("Device gateway stopped")

    def get_stats(self) -> dict:
        """Get gateway statistics."""
        return {
            "tcp_server": self.tcp_server.get_stats(),
            "connections": self.connection_manager.get_stats(),
            "registry": self.registry.get_stats(),
        }
