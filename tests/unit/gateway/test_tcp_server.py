"""
Unit tests for TCPServer and DeviceGateway.

Runs real listeners on ephemeral loopback ports.
"""
import pytest

from device_gateway import DeviceGateway
from device_gateway.config import ConnectionSettings, GatewaySettings, TCPServerSettings

from tests.simulators import DeviceSimulator


async def echo_handler(line: bytes, peer: str) -> bytes:
    return b"ECHO:" + line


def make_settings(**server) -> GatewaySettings:
    return GatewaySettings(
        server=TCPServerSettings(host="127.0.0.1", port=0, **server),
        connection=ConnectionSettings(idle_timeout=5.0, close_timeout=0.5),
    )


class TestGatewayLifecycle:
    """Test start and stop."""

    @pytest.mark.asyncio
    async def test_start_binds_ephemeral_port(self):
        """Test port 0 resolves to a real port."""
        gateway = DeviceGateway(echo_handler, make_settings())
        await gateway.start()
        try:
            assert gateway.is_running
            assert gateway.port > 0
            assert gateway.get_stats()["tcp_server"]["running"] is True
        finally:
            await gateway.stop()

        assert not gateway.is_running

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        """Test stopping twice is harmless."""
        gateway = DeviceGateway(echo_handler, make_settings())
        await gateway.start()

        await gateway.stop()
        await gateway.stop()

    @pytest.mark.asyncio
    async def test_port_in_use(self):
        """Test binding an occupied port fails loudly."""
        first = DeviceGateway(echo_handler, make_settings())
        await first.start()
        try:
            settings = make_settings()
            settings.server.port = first.port
            second = DeviceGateway(echo_handler, settings)
            with pytest.raises(OSError):
                await second.start()
        finally:
            await first.stop()


class TestConnectionLimit:
    """Test max_connections."""

    @pytest.mark.asyncio
    async def test_rejects_over_limit(self):
        """Test connections past the limit are closed immediately."""
        gateway = DeviceGateway(echo_handler, make_settings(max_connections=1))
        await gateway.start()
        try:
            async with DeviceSimulator("127.0.0.1", gateway.port) as first:
                assert await first.register(b"hi\r\n") == b"ECHO:hi\r\n"

                async with DeviceSimulator("127.0.0.1", gateway.port) as second:
                    assert await second.wait_closed_by_peer()

                assert gateway.get_stats()["tcp_server"]["rejected_connections"] == 1
        finally:
            await gateway.stop()

    @pytest.mark.asyncio
    async def test_connection_stats(self):
        """Test per-connection statistics are listed."""
        gateway = DeviceGateway(echo_handler, make_settings())
        await gateway.start()
        try:
            async with DeviceSimulator("127.0.0.1", gateway.port) as device:
                await device.register(b"hi\r\n")
                stats = gateway.tcp_server.list_connections()

            assert len(stats) == 1
            assert stats[0]["frames_handled"] == 1
            assert stats[0]["bytes_received"] == 4
            assert stats[0]["state"] == "open"
        finally:
            await gateway.stop()
