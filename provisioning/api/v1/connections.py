"""
Connection API endpoints.

Lists live device connections and pushes text lines to them.
"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from device_gateway.connection import ConnectionRegistry
from ..dependencies import get_connection_registry
from ..schemas import ConnectionListResponse, SendMessageRequest, SendMessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connections", tags=["Connections"])

CLIENT_NOT_FOUND = "Client not found or disconnected"
MESSAGE_SENT = "Message sent successfully"


async def push_message(
    registry: ConnectionRegistry,
    target_address: str,
    message: str,
) -> JSONResponse:
    """Send a line through the registry and shape the HTTP outcome."""
    sent = await registry.send(target_address, message)

    if not sent:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=SendMessageResponse(success=False, message=CLIENT_NOT_FOUND).model_dump(),
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=SendMessageResponse(success=True, message=MESSAGE_SENT).model_dump(),
    )


@router.get(
    "",
    response_model=ConnectionListResponse,
    summary="List connected devices",
    description="Addresses of all live device connections.",
)
async def list_connections(
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> ConnectionListResponse:
    """
    List live connections.
    """
    addresses = registry.list_addresses()
    return ConnectionListResponse(connections=addresses, count=len(addresses))


@router.post(
    "/messages",
    response_model=SendMessageResponse,
    responses={404: {"model": SendMessageResponse}},
    summary="Send a message to a device",
    description="Push one text line to the device connected at the target address.",
)
async def send_message(
    request: SendMessageRequest,
    registry: ConnectionRegistry = Depends(get_connection_registry),
) -> JSONResponse:
    """
    Push a line to a connected device.
    """
    return await push_message(registry, request.target_address, request.message)
