"""Configuration for the aiohttp transport."""

from collections.abc import Mapping

from pydantic import BaseModel, SecretStr


class AiohttpTransportConfig(BaseModel):
    """Configuration for the aiohttp transport."""

    base_url: str | None = None
    headers: Mapping[str, str] = {}
    # Sent as "Authorization: Bearer <token>" on every request
    token: SecretStr | None = None
    verify_ssl: bool = True
