"""
TCP connection management module.

Handles the TCP server, connection lifecycle and the registry of
live device connections.
"""
from .tcp_connection import ConnectionFault, ConnectionState, TCPConnection
from .tcp_server import TCPServer
from .connection_registry import ConnectionRegistry
from .connection_manager import ConnectionManager, FrameHandler

__all__ = [
    "TCPConnection",
    "ConnectionFault",
    "ConnectionState",
    "TCPServer",
    "ConnectionRegistry",
    "ConnectionManager",
    "FrameHandler",
]
