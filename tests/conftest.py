"""
Shared pytest fixtures for provisioning server tests.

Provides fixtures for:
- Device store (SQLite through aiosqlite)
- Device store mock
- API client (httpx)
- Running device gateway
- Test data factories
"""
import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from freezegun import freeze_time as _freeze_time
from unittest.mock import AsyncMock

from device_gateway import DeviceGateway
from device_gateway.config import ConnectionSettings, GatewaySettings, TCPServerSettings
from device_gateway.connection import ConnectionRegistry
from provisioning.application.interfaces import AllocationResult
from provisioning.application.services import RegistrationService
from provisioning.config import AppSettings, DatabaseSettings, RegistrationSettings
from provisioning.infrastructure.database import DatabaseManager, SqlDeviceStore

from tests.factories import RegistrationFrameFactory

# Test environment configuration
os.environ.setdefault("ENVIRONMENT", "test")


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def database_url(tmp_path) -> str:
    """SQLite database file private to one test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'devices.db'}"


@pytest.fixture
def registration_settings() -> RegistrationSettings:
    """Registration settings with fast retries."""
    return RegistrationSettings(retry_backoff=0.01)


@pytest.fixture
def gateway_settings() -> GatewaySettings:
    """Gateway bound to an ephemeral loopback port."""
    return GatewaySettings(
        server=TCPServerSettings(host="127.0.0.1", port=0),
        connection=ConnectionSettings(
            idle_timeout=5.0,
            write_timeout=2.0,
            close_timeout=1.0,
        ),
    )


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def database(database_url) -> AsyncGenerator[DatabaseManager, None]:
    """
    Database manager with the schema created.

    Disposes the engine after the test.
    """
    manager = DatabaseManager(DatabaseSettings(url=database_url))
    await manager.init_db()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def device_store(database, registration_settings) -> SqlDeviceStore:
    """Device store backed by the test database."""
    return SqlDeviceStore(
        database.session_factory,
        max_retries=registration_settings.max_transaction_retries,
        retry_backoff=registration_settings.retry_backoff,
    )


@pytest.fixture
def mock_device_store():
    """
    Mock device store for unit tests.

    Behaves like an empty store: lookups miss and allocate builds the
    record from the first counter value after the seed.
    """
    store = AsyncMock()
    store.get = AsyncMock(return_value=None)
    store.put = AsyncMock()
    store.find_by_dedup_key = AsyncMock(return_value=None)
    store.increment_counter = AsyncMock(return_value=10000001)

    async def allocate(dedup_key, counter_name, seed, build_record):
        return AllocationResult(record=build_record(seed + 1), created=True)

    store.allocate = AsyncMock(side_effect=allocate)
    return store


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def registration_service(device_store, registration_settings) -> RegistrationService:
    """Registration service over the SQLite store."""
    return RegistrationService(device_store, registration_settings)


@pytest_asyncio.fixture
async def running_gateway(registration_service, gateway_settings) -> AsyncGenerator[DeviceGateway, None]:
    """
    Device gateway answering with the registration service.

    Listens on 127.0.0.1 with an ephemeral port.
    """
    gateway = DeviceGateway(registration_service.handle_line, gateway_settings)
    await gateway.start()

    yield gateway

    await gateway.stop()


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def connection_registry() -> ConnectionRegistry:
    """Empty connection registry."""
    return ConnectionRegistry(write_timeout=1.0)


@pytest_asyncio.fixture
async def api_client(connection_registry, mock_device_store):
    """
    Test API client for unit tests.

    Uses the registry and store fixtures in place of lifespan-built
    components.
    """
    from provisioning.main import create_app
    from provisioning.api.dependencies import get_connection_registry, get_device_store

    app = create_app(AppSettings())
    app.dependency_overrides[get_connection_registry] = lambda: connection_registry
    app.dependency_overrides[get_device_store] = lambda: mock_device_store

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Test Data Fixtures
# ============================================================================

@pytest.fixture
def sample_frame():
    """Registration frame for a typical two-switch device."""
    return RegistrationFrameFactory(
        mac_id="AA",
        device_type="BB",
        switch_count="2",
        software_version="1.0",
        hardware_version="1.0",
        default_device_id="DEV1",
    )


@pytest.fixture
def sample_line() -> bytes:
    """Wire form of sample_frame."""
    return b"dr:AA:BB:2:1.0:1.0:DEV1\r\n"


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture
def freeze_time():
    """
    Fixture for freezing time in tests.

    Usage:
        async def test_something(freeze_time):
            with freeze_time("2026-01-15 12:00:00"):
                # time is frozen, the event loop clock is not
    """
    def _frozen(time_to_freeze):
        return _freeze_time(time_to_freeze, real_asyncio=True)

    return _frozen
