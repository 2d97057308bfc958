"""Tests for CLI module."""

import json
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest
from pydantic import BaseModel

from api_script_runner.cli import (
    build_listener,
    format_output,
    log_results_summary,
    parse_vars,
    run,
)
from api_script_runner.listeners import ListenerBase, LoggingListener
from api_script_runner.models.result import RunResult, ScriptOutcome
from api_script_runner.runner import RunnerConfig
from api_script_runner.testing.transport import ScriptedTransport, json_response
from api_script_runner.transports.manifest import TransportManifest


def test_log_results_summary_success(caplog: pytest.LogCaptureFixture) -> None:
    """Logs success results with checkmark symbol."""
    run_results = [
        RunResult(
            runner_id=0,
            status="success",
            duration=10.5,
            outcomes=[
                ScriptOutcome(
                    label="POST /login", status="completed", attempts=2, duration=1.0
                )
            ],
        )
    ]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), run_results)

    assert "Run Results Summary:" in caplog.text
    assert "✓ runner 0: success (10.50s)" in caplog.text
    assert "POST /login: completed after 2 attempt(s)" in caplog.text


def test_log_results_summary_failure(caplog: pytest.LogCaptureFixture) -> None:
    """Logs failure results with X symbol."""
    run_results = [RunResult(runner_id=1, status="failure", duration=5.0)]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), run_results)

    assert "✗ runner 1: failure (5.00s)" in caplog.text


def test_log_results_summary_with_message(caplog: pytest.LogCaptureFixture) -> None:
    """Logs error message when present."""
    run_results = [
        RunResult(
            runner_id=0, status="error", duration=0.0, message="connection refused"
        )
    ]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), run_results)

    assert "! runner 0: error (0.00s)" in caplog.text
    assert "Message: connection refused" in caplog.text


def test_log_results_summary_timeout(caplog: pytest.LogCaptureFixture) -> None:
    """Logs timeout results with timer symbol."""
    run_results = [RunResult(runner_id=3, status="timeout", duration=600.0)]

    with caplog.at_level(logging.INFO):
        log_results_summary(logging.getLogger(), run_results)

    assert "⏱ runner 3: timeout (600.00s)" in caplog.text


def test_format_output_empty() -> None:
    """Returns empty totals when no results."""
    output = format_output([])

    assert output == {
        "total": 0,
        "passed": 0,
        "failed": 0,
        "errors": 0,
        "timeouts": 0,
        "results": [],
    }


def test_format_output_single_success() -> None:
    """Formats single success result correctly."""
    run_results = [
        RunResult(
            runner_id=0,
            status="success",
            duration=10.5,
            outcomes=[
                ScriptOutcome(
                    label="GET /me", status="completed", attempts=1, duration=0.2
                )
            ],
        )
    ]

    output = format_output(run_results)

    assert output["total"] == 1
    assert output["passed"] == 1
    assert output["failed"] == 0
    assert output["results"][0]["runner"] == 0
    assert output["results"][0]["duration"] == 10.5
    assert output["results"][0]["scripts"] == [
        {"label": "GET /me", "status": "completed", "attempts": 1, "failure": None}
    ]


def test_format_output_mixed_results() -> None:
    """Formats mixed results with correct totals."""
    run_results = [
        RunResult(runner_id=0, status="success", duration=10.0),
        RunResult(runner_id=1, status="failure", duration=20.0),
        RunResult(runner_id=2, status="error", duration=0.0, message="boom"),
        RunResult(runner_id=3, status="timeout", duration=600.0),
    ]

    output = format_output(run_results)

    assert output["total"] == 4
    assert output["passed"] == 1
    assert output["failed"] == 1
    assert output["errors"] == 1
    assert output["timeouts"] == 1


def test_parse_vars() -> None:
    """Splits on the first equals sign only."""
    assert parse_vars(["user=alice", "query=a=b", "empty="]) == {
        "user": "alice",
        "query": "a=b",
        "empty": "",
    }


@pytest.mark.parametrize("assignment", ["novalue", "=value", " =x"])
def test_parse_vars_rejects_invalid(assignment: str) -> None:
    with pytest.raises(ValueError, match="Invalid variable assignment"):
        parse_vars([assignment])


def test_build_listener_logs_and_aborts() -> None:
    """The default tree logs every event and aborts on terminal failures."""
    listener = build_listener()

    assert [type(sub) for sub in listener.listeners] == [LoggingListener, ListenerBase]


class _Config(BaseModel):
    base_url: str | None = None


class TestRun:
    """Tests for run function."""

    @pytest.fixture
    def transport(self) -> ScriptedTransport:
        return ScriptedTransport(replies=[json_response(200, {"token": "abc"})])

    @pytest.fixture
    def manifest(self, transport: ScriptedTransport) -> TransportManifest[_Config]:
        """Manifest whose factory yields the scripted transport."""

        @asynccontextmanager
        async def factory(config: _Config) -> AsyncGenerator[ScriptedTransport, None]:
            yield transport

        return TransportManifest(config_cls=_Config, transport_factory=factory)

    @pytest.fixture
    def scripts_path(self, tmp_path: Path) -> Path:
        path = tmp_path / "scripts.yaml"
        path.write_text(
            """
version: "1.0"
vars:
  user: alice
scripts:
  - request:
      method: POST
      url: "/login/{{user}}"
    response:
      session: token
  - request:
      url: "/me?token={{token}}&env={{env}}"
"""
        )
        return path

    async def test_returns_zero_when_no_scripts(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Returns 0 and prints empty results without loading a transport."""
        path = tmp_path / "scripts.yaml"
        path.write_text('version: "1.0"\nscripts: []\n')

        with patch("api_script_runner.cli.load_transport_manifest") as mock_load:
            exit_code = await run(
                scripts_path=path,
                transport_key="aiohttp",
                transport_config_json="{}",
            )

        assert exit_code == 0
        assert '"total": 0' in capsys.readouterr().out
        mock_load.assert_not_called()

    async def test_returns_zero_when_all_scripts_pass(
        self,
        scripts_path: Path,
        manifest: TransportManifest[_Config],
        transport: ScriptedTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Runs every user against the transport and prints the summary."""
        with patch(
            "api_script_runner.cli.load_transport_manifest", return_value=manifest
        ) as mock_load:
            exit_code = await run(
                scripts_path=scripts_path,
                transport_key="scripted",
                transport_config_json='{"base_url": "http://localhost"}',
                users=2,
                config=RunnerConfig(backoff=0.01),
                variables={"env": "test"},
            )

        assert exit_code == 0
        mock_load.assert_called_once_with("scripted")
        output = json.loads(capsys.readouterr().out)
        assert output["passed"] == 2
        assert [r.url for r in transport.requests].count("/login/alice") == 2
        assert "/me?token=abc&env=test" in [r.url for r in transport.requests]

    async def test_returns_one_when_script_fails(
        self,
        scripts_path: Path,
        manifest: TransportManifest[_Config],
        transport: ScriptedTransport,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Returns 1 when any runner does not succeed."""
        transport.replies = [json_response(500)]

        with patch(
            "api_script_runner.cli.load_transport_manifest", return_value=manifest
        ):
            exit_code = await run(
                scripts_path=scripts_path,
                transport_key="scripted",
                transport_config_json="{}",
                config=RunnerConfig(backoff=0.01),
            )

        assert exit_code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["failed"] == 1
        assert "statusCheckFailed(cli)" in output["results"][0]["message"]

    async def test_propagates_loader_errors(self, tmp_path: Path) -> None:
        """A missing script file is reported before any transport is built."""
        with (
            patch("api_script_runner.cli.load_transport_manifest") as mock_load,
            pytest.raises(FileNotFoundError),
        ):
            await run(
                scripts_path=tmp_path / "missing.yaml",
                transport_key="aiohttp",
                transport_config_json="{}",
            )

        mock_load.assert_not_called()

    async def test_passes_transport_config(self, scripts_path: Path) -> None:
        """The JSON config is validated by the manifest's config class."""
        config_cls = Mock(return_value=Mock())
        transport = ScriptedTransport(replies=[json_response(200, {"token": "t"})])
        cm = AsyncMock()
        cm.__aenter__.return_value = transport
        cm.__aexit__.return_value = None
        manifest = Mock(config_cls=config_cls, transport_factory=Mock(return_value=cm))

        with patch(
            "api_script_runner.cli.load_transport_manifest", return_value=manifest
        ):
            await run(
                scripts_path=scripts_path,
                transport_key="aiohttp",
                transport_config_json='{"base_url": "http://api", "verify_ssl": false}',
                variables={"env": "x"},
            )

        config_cls.assert_called_once_with(base_url="http://api", verify_ssl=False)
        manifest.transport_factory.assert_called_once_with(config_cls.return_value)
