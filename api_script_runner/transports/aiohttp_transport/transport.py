"""aiohttp transport implementation."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from yarl import URL

from api_script_runner.errors import TransportError
from api_script_runner.models.response import ActualResponse, PreparedRequest
from api_script_runner.transports.aiohttp_transport.config import (
    AiohttpTransportConfig,
)
from api_script_runner.transports.base import Transport

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class AiohttpTransport(Transport):
    """Transport sending requests through a shared aiohttp session."""

    config: AiohttpTransportConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: AiohttpTransportConfig
    ) -> AsyncGenerator["AiohttpTransport", None]:
        """Create transport with managed session lifecycle."""
        headers = dict(config.headers)
        if config.token is not None:
            headers["Authorization"] = f"Bearer {config.token.get_secret_value()}"
        connector = aiohttp.TCPConnector(ssl=config.verify_ssl)
        async with aiohttp.ClientSession(
            headers=headers, connector=connector
        ) as session:
            yield cls(config=config, session=session)

    def build_url(self, url: str) -> str:
        """Resolve a relative URL against the configured base URL."""
        target = URL(url)
        if target.is_absolute() or self.config.base_url is None:
            return str(target)
        base = self.config.base_url.rstrip("/") + "/"
        return str(URL(base).join(URL(url.lstrip("/"))))

    async def send(self, request: PreparedRequest, timeout: float) -> ActualResponse:
        """Send the request and read the full response text."""
        url = self.build_url(request.url)
        kwargs: dict[str, Any] = {
            "headers": dict(request.headers),
            "timeout": aiohttp.ClientTimeout(total=timeout),
        }
        if isinstance(request.body, str | bytes):
            kwargs["data"] = request.body
        elif request.body is not None:
            kwargs["json"] = request.body

        log.debug("Sending %s %s", request.method, url)
        try:
            async with self.session.request(request.method, url, **kwargs) as response:
                text = await response.text()
                return ActualResponse(
                    status=response.status,
                    headers=dict(response.headers),
                    text=text,
                )
        except aiohttp.ClientError as e:
            raise TransportError(f"{request.method} {url} failed: {e}") from e
