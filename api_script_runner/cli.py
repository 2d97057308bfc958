"""CLI entry point for running API scripts."""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from api_script_runner.definition_loader import load_script_file
from api_script_runner.listeners import ListenerBase, LoggingListener, MultiListener
from api_script_runner.models.result import RunResult
from api_script_runner.orchestrator import ConcurrentRunner
from api_script_runner.runner import RunnerConfig
from api_script_runner.transports.loading import load_transport_manifest

STATUS_SYMBOLS = {
    "success": "✓",
    "failure": "✗",
    "error": "!",
    "timeout": "⏱",
}


def log_results_summary(log: logging.Logger, run_results: Sequence[RunResult]) -> None:
    """Log a formatted summary of run results."""
    log.info("=" * 80)
    log.info("Run Results Summary:")
    log.info("=" * 80)

    for result in run_results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s runner %d: %s (%.2fs)",
            symbol,
            result.runner_id,
            result.status,
            result.duration,
        )
        for outcome in result.outcomes:
            log.info(
                "  %s: %s after %d attempt(s)",
                outcome.label,
                outcome.status,
                outcome.attempts,
            )
        if result.message:
            log.info("  Message: %s", result.message)


def parse_vars(assignments: Sequence[str]) -> Mapping[str, str]:
    """Parse NAME=VALUE pairs into a mapping."""
    parsed: dict[str, str] = {}
    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid variable assignment: '{assignment}'")
        parsed[name.strip()] = value
    return parsed


def build_listener(name: str = "cli") -> MultiListener:
    """Build the default listener tree: log every event, abort on timeout."""
    return MultiListener(name=name).add(LoggingListener()).add(ListenerBase(name=name))


async def run(
    scripts_path: Path,
    transport_key: str,
    transport_config_json: str,
    users: int = 1,
    config: RunnerConfig | None = None,
    variables: Mapping[str, Any] | None = None,
) -> int:
    """Run the script file and return exit code."""
    log = logging.getLogger("api_script_runner")

    log.info("Loading scripts from %s", scripts_path)
    script_file = await load_script_file(scripts_path)

    if not script_file.scripts:
        log.info("No scripts to run")
        print(json.dumps(format_output([])))
        return 0

    log.info("Loading transport: %s", transport_key)
    manifest = load_transport_manifest(transport_key)
    transport_config = manifest.config_cls(**json.loads(transport_config_json))

    initial_vars = {**script_file.vars, **(variables or {})}

    async with manifest.transport_factory(transport_config) as transport:
        orchestrator = ConcurrentRunner(
            transport=transport,
            listener=build_listener(),
            config=config or RunnerConfig(),
        )
        run_results = await orchestrator.run(
            script_file.scripts, users=users, initial_vars=initial_vars
        )

    log_results_summary(log, run_results)

    output = format_output(run_results)
    print(json.dumps(output, indent=2, default=str))

    return 0 if all(result.status == "success" for result in run_results) else 1


def format_output(run_results: Sequence[RunResult]) -> dict[str, Any]:
    """Format run results for JSON output."""
    all_results: list[dict[str, Any]] = [
        {
            "runner": result.runner_id,
            "status": result.status,
            "duration": result.duration,
            "message": result.message,
            "scripts": [
                {
                    "label": outcome.label,
                    "status": outcome.status,
                    "attempts": outcome.attempts,
                    "failure": outcome.failure,
                }
                for outcome in result.outcomes
            ],
        }
        for result in run_results
    ]

    return {
        "total": len(all_results),
        "passed": sum(1 for r in all_results if r["status"] == "success"),
        "failed": sum(1 for r in all_results if r["status"] == "failure"),
        "errors": sum(1 for r in all_results if r["status"] == "error"),
        "timeouts": sum(1 for r in all_results if r["status"] == "timeout"),
        "results": all_results,
    }


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run API scripts against a backend")
    parser.add_argument(
        "--scripts",
        type=Path,
        required=True,
        help="Path to the YAML script file",
    )
    parser.add_argument(
        "--transport",
        default="aiohttp",
        help="Transport key (default: aiohttp)",
    )
    parser.add_argument(
        "--transport-config",
        default="{}",
        help="JSON configuration for the transport",
    )
    parser.add_argument(
        "--users",
        type=int,
        default=1,
        help="Number of concurrent runners",
    )
    parser.add_argument(
        "--backoff",
        type=float,
        default=0.25,
        help="Seconds between attempts of a failing script",
    )
    parser.add_argument(
        "--call-timeout",
        type=float,
        default=30.0,
        help="Upper bound in seconds for a single HTTP call",
    )
    parser.add_argument(
        "--session-header",
        default=None,
        help="Header that carries extracted session tokens",
    )
    parser.add_argument(
        "--var",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Initial context variable (repeatable)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        variables = parse_vars(args.var)
    except ValueError as e:
        parser.error(str(e))

    exit_code = asyncio.run(
        run(
            scripts_path=args.scripts,
            transport_key=args.transport,
            transport_config_json=args.transport_config,
            users=args.users,
            config=RunnerConfig(
                backoff=args.backoff,
                call_timeout=args.call_timeout,
                session_header=args.session_header,
            ),
            variables=variables,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
