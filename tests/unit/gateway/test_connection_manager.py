"""
Unit tests for ConnectionManager.

Drives the connection lifecycle with an in-memory connection double.
"""
import asyncio
from typing import List, Optional

import pytest
from unittest.mock import AsyncMock

from device_gateway.config import ConnectionSettings, GatewaySettings
from device_gateway.connection import (
    ConnectionFault,
    ConnectionManager,
    ConnectionRegistry,
    ConnectionState,
)


class FakeConnection:
    """
    In-memory stand-in for TCPConnection.

    Chunks queued with push() are returned by read_chunk; None in the
    queue simulates the peer closing its side.
    """

    def __init__(self, address: str = "10.0.0.5:40000"):
        self.remote_addr = address
        self.connection_id = "fake"
        self.state = ConnectionState.OPEN
        self.written: List[bytes] = []
        self.frames = 0
        self.keepalive: Optional[float] = None
        self.closed = False
        self.last_activity: Optional[float] = None
        self._chunks: asyncio.Queue = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def push(self, data: Optional[bytes]) -> None:
        self._chunks.put_nowait(data)

    def enable_keepalive(self, idle_seconds: float) -> None:
        self.keepalive = idle_seconds

    async def read_chunk(self, max_bytes: int = 4096, timeout: Optional[float] = None) -> bytes:
        data = await asyncio.wait_for(self._chunks.get(), timeout=timeout)
        return b"" if data is None else data

    def record_frame(self) -> None:
        self.frames += 1

    async def write(self, data: bytes, timeout: float = 10.0) -> None:
        self.written.append(data)

    async def close(self, timeout: float = 5.0) -> None:
        self.closed = True
        self.state = ConnectionState.CLOSED


async def echo_handler(line: bytes, peer: str) -> bytes:
    """Reply with the line upper-cased."""
    return line.upper()


def make_manager(handler=echo_handler, idle_timeout: float = 5.0):
    registry = ConnectionRegistry()
    settings = GatewaySettings(
        connection=ConnectionSettings(idle_timeout=idle_timeout, keepalive=30.0, close_timeout=0.1),
    )
    return ConnectionManager(handler, registry, settings), registry


class TestLifecycle:
    """Test registration, dispatch and cleanup."""

    @pytest.mark.asyncio
    async def test_lines_answered_in_order(self):
        """Test each framed line gets exactly one reply, in order."""
        manager, registry = make_manager()
        conn = FakeConnection()
        conn.push(b"one\r\ntw")
        conn.push(b"o\r\nthree\r\n")
        conn.push(None)

        await manager.handle_connection(conn)

        assert conn.written == [b"ONE\r\n", b"TWO\r\n", b"THREE\r\n"]
        assert conn.frames == 3
        assert manager.get_stats()["total_frames"] == 3

    @pytest.mark.asyncio
    async def test_registered_while_open(self):
        """Test the connection is in the registry until it ends."""
        manager, registry = make_manager()
        conn = FakeConnection()

        task = manager.handle_connection(conn)
        await asyncio.sleep(0)

        assert registry.lookup(conn.remote_addr) is conn
        assert conn.keepalive == 30.0

        conn.push(None)
        await task

        assert conn.remote_addr not in registry
        assert conn.closed

    @pytest.mark.asyncio
    async def test_trailing_partial_line_answered_on_eof(self):
        """Test an unterminated final line still gets one reply."""
        handler = AsyncMock(return_value=b"ERROR:INVALID_FORMAT\r\n")
        manager, _ = make_manager(handler)
        conn = FakeConnection()
        conn.push(b"dr:AA:BB")
        conn.push(None)

        await manager.handle_connection(conn)

        handler.assert_awaited_once_with(b"dr:AA:BB", conn.remote_addr)
        assert conn.written == [b"ERROR:INVALID_FORMAT\r\n"]

    @pytest.mark.asyncio
    async def test_idle_timeout_closes_connection(self):
        """Test a silent peer is disconnected."""
        manager, registry = make_manager(idle_timeout=0.05)
        conn = FakeConnection()

        await asyncio.wait_for(manager.handle_connection(conn), timeout=2.0)

        assert conn.closed
        assert conn.remote_addr not in registry
        assert manager.get_stats()["timed_out"] == 1

    @pytest.mark.asyncio
    async def test_outbound_activity_defers_idle_timeout(self):
        """Test writes to a quiet peer keep the connection open."""
        manager, registry = make_manager(idle_timeout=0.2)
        conn = FakeConnection()
        loop = asyncio.get_running_loop()

        task = manager.handle_connection(conn)
        for _ in range(8):
            conn.last_activity = loop.time()
            await asyncio.sleep(0.05)

        assert not task.done()
        assert registry.lookup(conn.remote_addr) is conn

        await asyncio.wait_for(task, timeout=2.0)

        assert conn.closed
        assert manager.get_stats()["timed_out"] == 1

    @pytest.mark.asyncio
    async def test_handler_error_ends_only_this_connection(self):
        """Test an unexpected error is contained and cleaned up."""
        handler = AsyncMock(side_effect=RuntimeError("boom"))
        manager, registry = make_manager(handler)
        conn = FakeConnection()
        conn.push(b"line\r\n")

        await manager.handle_connection(conn)

        assert conn.closed
        assert len(registry) == 0
        assert manager.get_stats()["faults"] == 1

    @pytest.mark.asyncio
    async def test_write_fault_triggers_cleanup(self):
        """Test a transport failure closes and unregisters."""
        manager, registry = make_manager()
        conn = FakeConnection()
        conn.write = AsyncMock(side_effect=ConnectionFault(conn.remote_addr, "reset"))
        conn.push(b"line\r\n")

        await manager.handle_connection(conn)

        assert conn.closed
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_cancel_cleans_up(self):
        """Test shutdown cancellation still unregisters the connection."""
        manager, registry = make_manager()
        conn = FakeConnection()

        task = manager.handle_connection(conn)
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert conn.closed
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_reused_address_keeps_new_entry(self):
        """Test an ending connection does not evict a newer one at the same address."""
        manager, registry = make_manager()
        old, new = FakeConnection(), FakeConnection()

        old_task = manager.handle_connection(old)
        await asyncio.sleep(0)
        new_task = manager.handle_connection(new)
        await asyncio.sleep(0)

        old.push(None)
        await old_task

        assert registry.lookup(new.remote_addr) is new

        new.push(None)
        await new_task
