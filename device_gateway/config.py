"""
Configuration for the Device Gateway.

Provides settings for the TCP listener and per-connection handling
of registering devices.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TCPServerSettings(BaseSettings):
    """TCP server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TCP_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8000, description="Server port for devices")
    max_connections: int = Field(default=1000, description="Maximum concurrent connections")
    backlog: int = Field(default=100, description="Connection backlog size")


class ConnectionSettings(BaseSettings):
    """Connection handling configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DEVICE_CONNECTION_",
        env_file=".env",
        extra="ignore",
    )

    idle_timeout: float = Field(default=300.0, description="Close connection after this many idle seconds")
    keepalive: float = Field(default=60.0, description="TCP keep-alive idle time in seconds")
    write_timeout: float = Field(default=10.0, description="Write timeout in seconds")
    close_timeout: float = Field(default=5.0, description="Time allowed for a graceful close")
    read_chunk_size: int = Field(default=4096, description="Bytes requested per read")
    max_line_bytes: int = Field(default=1024, description="Longest accepted unterminated line")
    accept_escaped_terminator: bool = Field(
        default=True,
        description="Treat a literal backslash-r backslash-n sequence as a line terminator",
    )


class GatewaySettings(BaseSettings):
    """Main configuration for the Device Gateway."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: TCPServerSettings = Field(default_factory=TCPServerSettings)
    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)


@lru_cache()
def get_gateway_settings() -> GatewaySettings:
    """
    Get cached gateway settings.

    Uses LRU cache to avoid re-reading environment variables on every access.
    """
    return GatewaySettings()
