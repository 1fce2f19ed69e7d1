"""
Legacy control routes.

Same operations as the v1 connection endpoints, with the paths and
camelCase payloads existing operator tooling still uses.
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from device_gateway.connection import ConnectionRegistry
from .dependencies import get_connection_registry
from .schemas import LegacyConnectionListResponse, LegacySendMessageRequest, SendMessageResponse
from .v1.connections import push_message

router = APIRouter(tags=["Legacy"])


@router.get("/connected-clients", response_model=LegacyConnectionListResponse)
async def connected_clients(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> LegacyConnectionListResponse:
    """List live connections."""
    addresses = registry.list_addresses()
    return LegacyConnectionListResponse(connected_clients=addresses, count=len(addresses))


@router.post(
    "/send-message",
    response_model=SendMessageResponse,
    responses={404: {"model": SendMessageResponse}},
)
async def send_message(
    request: LegacySendMessageRequest,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> JSONResponse:
    """Push a line to a connected device."""
    return await push_message(registry, request.target_address, request.message)
