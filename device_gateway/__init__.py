"""
Device Gateway - TCP server for device connections.

Frames device traffic into lines and tracks live connections.
"""
from .config import GatewaySettings, get_gateway_settings
from .gateway import DeviceGateway

__all__ = [
    "GatewaySettings",
    "get_gateway_settings",
    "DeviceGateway",
]
