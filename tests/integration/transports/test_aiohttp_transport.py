"""Integration tests for the aiohttp transport."""

from collections.abc import AsyncGenerator

import aiohttp
import pytest
from aioresponses import aioresponses as aioresponses_cls
from pydantic import SecretStr
from yarl import URL

from api_script_runner.context import ExecutionContext
from api_script_runner.errors import StatusCheckFailedError, TransportError
from api_script_runner.listeners import ListenerBase
from api_script_runner.models.definition import ScriptDefinition
from api_script_runner.models.response import PreparedRequest
from api_script_runner.runner import Runner, RunnerConfig
from api_script_runner.transports.aiohttp_transport import (
    AiohttpTransport,
    AiohttpTransportConfig,
)

API_BASE_URL = "http://api.test"


@pytest.fixture
def config() -> AiohttpTransportConfig:
    """Create test configuration."""
    return AiohttpTransportConfig(
        base_url=f"{API_BASE_URL}/v1/",
        headers={"Accept": "application/json"},
        token=SecretStr("secret-token"),
    )


@pytest.fixture
async def transport(
    config: AiohttpTransportConfig, aioresponses: aioresponses_cls
) -> AsyncGenerator[AiohttpTransport, None]:
    """Create transport with managed session."""
    async with AiohttpTransport.from_config(config) as impl:
        yield impl


class TestBuildUrl:
    """Tests for build_url."""

    async def test_joins_relative_path_onto_base(
        self, transport: AiohttpTransport
    ) -> None:
        assert transport.build_url("/accounts/1") == f"{API_BASE_URL}/v1/accounts/1"
        assert transport.build_url("accounts") == f"{API_BASE_URL}/v1/accounts"

    async def test_keeps_absolute_url(self, transport: AiohttpTransport) -> None:
        assert transport.build_url("http://other.test/x") == "http://other.test/x"


class TestSend:
    """Tests for send."""

    async def test_returns_status_headers_and_text(
        self, transport: AiohttpTransport, aioresponses: aioresponses_cls
    ) -> None:
        """Passes the response through without interpreting it."""
        aioresponses.get(
            f"{API_BASE_URL}/v1/accounts",
            status=404,
            body="not here",
            headers={"X-Request-Id": "r-1"},
        )

        response = await transport.send(
            PreparedRequest(method="GET", url="/accounts"), timeout=5.0
        )

        assert response.status == 404
        assert response.text == "not here"
        assert response.header("x-request-id") == "r-1"

    async def test_sends_json_body_and_headers(
        self, transport: AiohttpTransport, aioresponses: aioresponses_cls
    ) -> None:
        """Mappings are sent as JSON with the request headers."""
        url = f"{API_BASE_URL}/v1/login"
        aioresponses.post(url, status=200, payload={"token": "abc"})

        response = await transport.send(
            PreparedRequest(
                method="POST",
                url="/login",
                headers={"X-Trace": "t-1"},
                body={"user": "alice"},
            ),
            timeout=5.0,
        )

        assert response.json() == {"token": "abc"}
        call = aioresponses.requests[("POST", URL(url))][0]
        assert call.kwargs["json"] == {"user": "alice"}
        assert call.kwargs["headers"]["X-Trace"] == "t-1"

    async def test_sends_string_body_as_data(
        self, transport: AiohttpTransport, aioresponses: aioresponses_cls
    ) -> None:
        url = f"{API_BASE_URL}/v1/raw"
        aioresponses.put(url, status=204)

        await transport.send(
            PreparedRequest(method="PUT", url="/raw", body="a=1&b=2"), timeout=5.0
        )

        call = aioresponses.requests[("PUT", URL(url))][0]
        assert call.kwargs["data"] == "a=1&b=2"
        assert "json" not in call.kwargs

    async def test_session_carries_token_and_default_headers(
        self, transport: AiohttpTransport
    ) -> None:
        assert transport.session.headers["Authorization"] == "Bearer secret-token"
        assert transport.session.headers["Accept"] == "application/json"

    async def test_client_error_raises_transport_error(
        self, transport: AiohttpTransport, aioresponses: aioresponses_cls
    ) -> None:
        """Network failures surface as TransportError."""
        aioresponses.get(
            f"{API_BASE_URL}/v1/down",
            exception=aiohttp.ClientConnectionError("connection refused"),
        )

        with pytest.raises(TransportError, match="GET .*/v1/down failed"):
            await transport.send(
                PreparedRequest(method="GET", url="/down"), timeout=5.0
            )


class TestRunnerOverHttp:
    """Runner scenarios against mocked HTTP endpoints."""

    async def test_login_then_profile_with_retry(
        self, transport: AiohttpTransport, aioresponses: aioresponses_cls
    ) -> None:
        """Retries a 503, extracts the session and reuses it."""
        aioresponses.post(f"{API_BASE_URL}/v1/login", status=503)
        aioresponses.post(
            f"{API_BASE_URL}/v1/login", status=200, payload={"session": "s-42"}
        )
        aioresponses.get(
            f"{API_BASE_URL}/v1/me?session=s-42",
            status=200,
            payload={"name": "alice", "balance": 150},
        )
        scripts = [
            ScriptDefinition.model_validate(
                {
                    "request": {"method": "POST", "url": "/login"},
                    "response": {"session": "session"},
                    "timeout": "2s",
                }
            ),
            ScriptDefinition.model_validate(
                {
                    "request": {"url": "/me?session={{session}}"},
                    "response": {
                        "store": "profile",
                        "checks": [
                            {
                                "name": "rich",
                                "path": "body.balance",
                                "operator": "gte",
                                "value": 100,
                            }
                        ],
                    },
                }
            ),
        ]
        runner = Runner(
            transport=transport,
            listener=ListenerBase(name="it"),
            context=ExecutionContext(),
            config=RunnerConfig(backoff=0.01),
        )

        result = await runner.run(scripts)

        assert result.status == "success"
        assert [o.attempts for o in result.outcomes] == [2, 1]
        assert result.context["profile"] == {"name": "alice", "balance": 150}

    async def test_status_mismatch_aborts_at_deadline(
        self, transport: AiohttpTransport, aioresponses: aioresponses_cls
    ) -> None:
        aioresponses.get(f"{API_BASE_URL}/v1/health", status=500, repeat=True)
        script = ScriptDefinition.model_validate({"request": {"url": "/health"}})
        runner = Runner(
            transport=transport,
            listener=ListenerBase(name="it"),
            config=RunnerConfig(backoff=0.01),
        )

        with pytest.raises(StatusCheckFailedError, match="expected 200 but was 500"):
            await runner.run([script])
