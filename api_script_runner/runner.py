"""Script runner: executes scripts in order with bounded retry until timeout."""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, NoReturn

from pydantic import BaseModel, Field

from api_script_runner.checks import evaluate_check
from api_script_runner.context import MISSING, ExecutionContext, resolve_path
from api_script_runner.errors import (
    BracketHookError,
    FatalRunError,
    ScriptTimedOutError,
    TemplateError,
)
from api_script_runner.listeners.base import RunnerListener
from api_script_runner.models.definition import (
    Check,
    ResponseExpectation,
    ScriptDefinition,
)
from api_script_runner.models.response import ActualResponse, PreparedRequest
from api_script_runner.models.result import (
    FailureKind,
    RunResult,
    ScriptOutcome,
    ScriptStatus,
)
from api_script_runner.script import Script
from api_script_runner.transports.base import Transport

log = logging.getLogger(__name__)


class RunnerConfig(BaseModel):
    """Retry and transport settings shared by all scripts of a run."""

    backoff: float = Field(default=0.25, ge=0, description="Pause between attempts")
    call_timeout: float = Field(
        default=30.0, gt=0, description="Upper bound for a single HTTP call"
    )
    session_header: str | None = Field(
        default=None, description="Header carrying the extracted session token"
    )


@dataclass(frozen=True, kw_only=True)
class _Attempt:
    response: ActualResponse | None = None
    error: BaseException | None = None
    cut_off: bool = False


@dataclass(kw_only=True)
class Runner:
    """Runs a list of scripts against one execution context.

    Scripts run strictly sequentially. A failed validation before the
    script deadline is retried after a backoff pause; at or after the
    deadline the listener decides whether the failure aborts the run.
    """

    transport: Transport
    listener: RunnerListener
    context: ExecutionContext = field(default_factory=ExecutionContext)
    config: RunnerConfig = field(default_factory=RunnerConfig)
    runner_id: int = 0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _cancelled: asyncio.Event = field(
        default_factory=asyncio.Event, init=False, repr=False
    )
    _session: str | None = field(default=None, init=False, repr=False)
    outcomes: list[ScriptOutcome] = field(default_factory=list, init=False)
    started_at: float | None = field(default=None, init=False)

    def cancel(self) -> None:
        """Stop the run: the in-flight script is treated as timed out."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self.clock() - self.started_at

    async def run(self, scripts: Sequence[ScriptDefinition]) -> RunResult:
        """Execute all scripts in order.

        Args:
            scripts: Script definitions, executed in the given order

        Returns:
            Result of the run; status is "failure" if any script failed
            terminally without the listener aborting the run

        Raises:
            FatalRunError: If the listener aborted the run

        """
        self.started_at = self.clock()
        self.outcomes = []

        log.info("Runner %d: running %d script(s)", self.runner_id, len(scripts))
        for definition in scripts:
            script = Script(definition=definition, clock=self.clock)
            self.outcomes.append(await self.execute(script))

        failed = [o for o in self.outcomes if o.status != "completed"]
        return RunResult(
            runner_id=self.runner_id,
            status="failure" if failed else "success",
            duration=self.elapsed,
            outcomes=list(self.outcomes),
            message=f"{len(failed)} script(s) did not complete" if failed else None,
            context=self.context.snapshot(),
        )

    async def execute(self, script: Script) -> ScriptOutcome:
        """Run one script, bracketed by the before/after script hooks."""
        log.info("Runner %d: script %s", self.runner_id, script.label)
        self._bracket(self.listener.before_script, script)
        outcome = await self._run_attempts(script)
        self._bracket(self.listener.after_script, script)
        return outcome

    def _bracket(
        self,
        hook: Callable[[Script, ExecutionContext], None],
        script: Script,
    ) -> None:
        try:
            hook(script, self.context)
        except FatalRunError:
            raise
        except Exception as e:
            raise BracketHookError(
                script,
                f"{hook.__name__} failed: {e}",
                self.context.snapshot(),
            ) from e

    async def _run_attempts(self, script: Script) -> ScriptOutcome:
        if script.definition.delay and not self.cancelled:
            await self._wait(script.definition.delay)

        script.start()
        while True:
            if self.cancelled:
                script.expire()
                self._timed_out(script)

            script.attempts += 1
            try:
                request = self._prepare(script)
            except TemplateError as e:
                self.listener.template_failed(script, e, self.context)
                log.warning("Skipping %s: %s", script.label, e)
                return self._outcome(script, "skipped", "template", str(e))

            with script.pinned_clock():
                self.listener.before_call(script, self.context)
            log.debug(
                "Attempt %d for %s (%.2fs left)",
                script.attempts,
                request.request_line,
                script.remaining,
            )
            attempt = await self._call(script, request)
            if attempt.cut_off:
                self._timed_out(script)

            with script.pinned_clock() as timed_out:
                self.listener.after_call(script, self.context, attempt.response)
                failure, response = self._validate(script, attempt)
                if failure is None:
                    self._store(script, response)
                    self.listener.script_completed(script)
                    return self._outcome(script, "completed")
                if timed_out:
                    log.warning(
                        "Script %s failed (%s) after %d attempt(s)",
                        script.label,
                        failure,
                        script.attempts,
                    )
                    return self._outcome(script, "failed", failure)

            await self._wait(min(self.config.backoff, script.remaining))

    def _prepare(self, script: Script) -> PreparedRequest:
        definition = script.definition.request
        rendered = self.context.render(dict(definition.headers))
        headers = {str(key): str(value) for key, value in rendered.items()}
        if self.config.session_header and self._session:
            headers.setdefault(self.config.session_header, self._session)
        return PreparedRequest(
            method=definition.method,
            url=str(self.context.render(definition.url)),
            headers=headers,
            body=self.context.render(definition.body),
        )

    async def _call(self, script: Script, request: PreparedRequest) -> _Attempt:
        remaining = script.remaining
        if script.timeout > 0 and script.timed_out:
            # Final attempt after the deadline gets at most one backoff interval
            bounded_by_deadline = True
            limit = self.config.call_timeout
            if self.config.backoff > 0:
                limit = min(limit, self.config.backoff)
        else:
            bounded_by_deadline = 0 < remaining <= self.config.call_timeout
            limit = remaining if bounded_by_deadline else self.config.call_timeout

        call = asyncio.ensure_future(self.transport.send(request, limit))
        cancel = asyncio.ensure_future(self._cancelled.wait())
        try:
            done, _ = await asyncio.wait(
                {call, cancel}, timeout=limit, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            await _cancel(cancel)

        if call not in done:
            await _cancel(call)
            if self.cancelled:
                script.expire()
                return _Attempt(cut_off=True)
            if bounded_by_deadline:
                return _Attempt(cut_off=True)
            return _Attempt(error=TimeoutError(f"call exceeded {limit:.2f}s"))

        if (error := call.exception()) is not None:
            if (
                isinstance(error, TimeoutError)
                and bounded_by_deadline
                and script.timed_out
            ):
                return _Attempt(cut_off=True)
            if not isinstance(error, Exception):
                raise error
            log.debug("Transport error for %s: %r", request.request_line, error)
            return _Attempt(error=error)
        return _Attempt(response=call.result())

    def _validate(
        self, script: Script, attempt: _Attempt
    ) -> tuple[FailureKind | None, ActualResponse | None]:
        """Classify one attempt, firing the matching failure hook."""
        response = attempt.response
        if response is None:
            self.listener.unexpected_response(
                script, None, attempt.error, self.context
            )
            return "unexpected", None

        expectation = script.response
        if response.status != expectation.status:
            self.listener.status_check_failed(script, response, self.context)
            return "status", response

        try:
            response = _parse_body(response, expectation)
        except ValueError as e:
            self.listener.unexpected_response(script, response, e, self.context)
            return "unexpected", response

        if expectation.has_session:
            token = _find_session(response, expectation.session or "")
            if token is None:
                self.listener.session_id_not_found(script, response, self.context)
                return "session", response
            self.context.set(expectation.session_variable or "", token)
            self._session = str(token)

        if expectation.has_checks:
            check = self._failed_check(script, response)
            if check is not None:
                self.listener.condition_check_failed(
                    script, response, check, self.context
                )
                return "condition", response

        return None, response

    def _failed_check(self, script: Script, response: ActualResponse) -> Check | None:
        """Return the first non-skipped check that does not hold."""
        for check in script.response.checks:
            if self.listener.skip_check(script, check):
                log.debug("Skipping check %s for %s", check.name, script.label)
                continue
            try:
                passed = evaluate_check(check, response, self.context)
            except TemplateError as e:
                log.debug("Check %s operand unresolved: %s", check.name, e)
                passed = False
            if not passed:
                return check
        return None

    def _store(self, script: Script, response: ActualResponse | None) -> None:
        expectation = script.response
        if expectation.has_store and response is not None:
            self.context.set(expectation.store or "", response.body)

    def _timed_out(self, script: Script) -> NoReturn:
        """Fire script_timed_out and abort; there is nothing left to retry."""
        with script.pinned_clock():
            self.listener.script_timed_out(script, self.context)
        raise ScriptTimedOutError(
            script,
            f"scriptTimedOut: {script.request_line} timed out after "
            f"{script.timeout}s",
            self.context.snapshot(),
        )

    async def _wait(self, delay: float) -> None:
        """Sleep for ``delay`` seconds, waking early if the run is cancelled."""
        if delay <= 0:
            return
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._cancelled.wait(), timeout=delay)

    def _outcome(
        self,
        script: Script,
        status: ScriptStatus,
        failure: FailureKind | None = None,
        message: str | None = None,
    ) -> ScriptOutcome:
        return ScriptOutcome(
            label=script.label,
            status=status,
            attempts=script.attempts,
            duration=script.elapsed,
            failure=failure,
            message=message or (f"{failure} check failed" if failure else None),
        )


async def _cancel(task: "asyncio.Future[Any]") -> None:
    if not task.done():
        task.cancel()
        await asyncio.wait({task})


def _parse_body(
    response: ActualResponse, expectation: ResponseExpectation
) -> ActualResponse:
    """Deserialize the body according to the expectation's type hint.

    Raises:
        ValueError: If the hint is "json" and the body is not valid JSON

    """
    if expectation.type == "text":
        return response.with_body(response.text)
    if not response.text.strip():
        if expectation.type == "json":
            raise ValueError("Empty response body, expected JSON")
        return response.with_body(None)
    try:
        return response.with_body(response.json())
    except ValueError:
        if expectation.type == "json":
            raise
        return response.with_body(response.text)


def _find_session(response: ActualResponse, name: str) -> Any | None:
    """Find a non-empty session token in the body, then in the headers."""
    if isinstance(response.body, Mapping):
        value = resolve_path(response.body, name)
        if value is not MISSING and value not in (None, ""):
            return value
    header = response.header(name)
    return header or None
