"""
API Version 1 routes.

Includes connection control and device lookup.
"""
from fastapi import APIRouter

from .connections import router as connections_router
from .devices import router as devices_router

# Main API router that includes all sub-routers
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(connections_router)
api_router.include_router(devices_router)

__all__ = [
    "api_router",
    "connections_router",
    "devices_router",
]
