"""
Pydantic schemas for connection API endpoints.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class ConnectionListResponse(BaseModel):
    """Addresses of all live device connections."""
    connections: List[str]
    count: int


class SendMessageRequest(BaseModel):
    """Request to push a line to a connected device."""
    target_address: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)


class SendMessageResponse(BaseModel):
    """Outcome of a push."""
    success: bool
    message: str


class LegacyConnectionListResponse(BaseModel):
    """Connection list in the camelCase shape older tooling expects."""
    model_config = ConfigDict(populate_by_name=True)

    connected_clients: List[str] = Field(..., alias="connectedClients")
    count: int


class LegacySendMessageRequest(BaseModel):
    """Push request in the camelCase shape older tooling sends."""
    model_config = ConfigDict(populate_by_name=True)

    target_address: str = Field(..., min_length=1, max_length=255, alias="targetAddress")
    message: str = Field(..., min_length=1)
