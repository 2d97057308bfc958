"""aiohttp transport module."""

from api_script_runner.transports.aiohttp_transport.config import (
    AiohttpTransportConfig,
)
from api_script_runner.transports.aiohttp_transport.manifest import aiohttp_manifest
from api_script_runner.transports.aiohttp_transport.transport import AiohttpTransport

__all__ = ["AiohttpTransport", "AiohttpTransportConfig", "aiohttp_manifest"]
