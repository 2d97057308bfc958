"""aiohttp transport manifest."""

from api_script_runner.transports.aiohttp_transport.config import (
    AiohttpTransportConfig,
)
from api_script_runner.transports.aiohttp_transport.transport import AiohttpTransport
from api_script_runner.transports.manifest import TransportManifest

aiohttp_manifest = TransportManifest(
    config_cls=AiohttpTransportConfig,
    transport_factory=AiohttpTransport.from_config,
)
