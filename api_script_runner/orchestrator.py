"""Concurrent execution of independent runners over the same script set."""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from api_script_runner.context import ExecutionContext
from api_script_runner.errors import FatalRunError, ScriptTimedOutError
from api_script_runner.listeners.base import RunnerListener
from api_script_runner.models.definition import ScriptDefinition
from api_script_runner.models.result import RunResult
from api_script_runner.runner import Runner, RunnerConfig
from api_script_runner.transports.base import Transport

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ConcurrentRunner:
    """Runs the same scripts as several simulated users at once.

    Each runner gets a clone of the listener tree and its own context, so
    no mutable state is shared between them.
    """

    transport: Transport
    listener: RunnerListener
    config: RunnerConfig = field(default_factory=RunnerConfig)

    def build_runner(
        self, runner_id: int, initial_vars: Mapping[str, Any] | None = None
    ) -> Runner:
        context = ExecutionContext(initial_vars)
        context.set("runner_id", runner_id)
        return Runner(
            transport=self.transport,
            listener=self.listener.clone(),
            context=context,
            config=self.config,
            runner_id=runner_id,
        )

    async def run(
        self,
        scripts: Sequence[ScriptDefinition],
        users: int = 1,
        initial_vars: Mapping[str, Any] | None = None,
    ) -> Sequence[RunResult]:
        """Run the scripts once per user, all users concurrently.

        Args:
            scripts: Script definitions, executed in order by every runner
            users: Number of concurrent runners
            initial_vars: Variables copied into every runner's context

        Returns:
            One result per runner, in runner order

        """
        if not scripts:
            log.info("No scripts provided")
            return []

        runners = [self.build_runner(i, initial_vars) for i in range(users)]
        log.info("Starting %d runner(s) for %d script(s)", users, len(scripts))

        results = await asyncio.gather(
            *(runner.run(scripts) for runner in runners), return_exceptions=True
        )
        log.info("Runs completed")

        return self._process_results(runners, results)

    def _process_results(
        self,
        runners: Sequence[Runner],
        results: Sequence[RunResult | BaseException],
    ) -> Sequence[RunResult]:
        """Turn runner exceptions into run results."""
        final_results: list[RunResult] = []

        for runner, result in zip(runners, results, strict=True):
            if isinstance(result, RunResult):
                log.info(
                    "Run completed: runner=%d status=%s duration=%.1fs",
                    result.runner_id,
                    result.status,
                    result.duration,
                )
                final_results.append(result)
            elif isinstance(result, FatalRunError):
                log.error("Runner %d aborted: %s", runner.runner_id, result)
                final_results.append(
                    RunResult(
                        runner_id=runner.runner_id,
                        status=(
                            "timeout"
                            if isinstance(result, ScriptTimedOutError)
                            else "failure"
                        ),
                        duration=runner.elapsed,
                        outcomes=list(runner.outcomes),
                        message=str(result),
                        context=runner.context.snapshot(),
                    )
                )
            elif isinstance(result, Exception):
                log.error(
                    "Runner %d failed: %s", runner.runner_id, result, exc_info=result
                )
                final_results.append(
                    RunResult(
                        runner_id=runner.runner_id,
                        status="error",
                        duration=runner.elapsed,
                        outcomes=list(runner.outcomes),
                        message=str(result),
                        context=runner.context.snapshot(),
                    )
                )
            else:
                raise result

        return final_results
