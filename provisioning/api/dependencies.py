"""
FastAPI dependencies for the control API.

Components are created by the application lifespan and stored on
app.state; these accessors hand them to route handlers.
"""
from fastapi import Request

from device_gateway.connection import ConnectionRegistry
from ..application.interfaces import DeviceStore


def get_connection_registry(request: Request) -> ConnectionRegistry:
    """Get the live connection registry."""
    return request.app.state.connection_registry


def get_device_store(request: Request) -> DeviceStore:
    """Get the device record store."""
    return request.app.state.device_store
