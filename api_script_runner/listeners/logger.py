"""Listener that reports lifecycle events through the logging module."""

import logging
from dataclasses import dataclass
from typing import Self

from api_script_runner.context import ExecutionContext
from api_script_runner.errors import TemplateError
from api_script_runner.listeners.base import RunnerListener
from api_script_runner.models.definition import Check
from api_script_runner.models.response import ActualResponse
from api_script_runner.script import Script

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class LoggingListener(RunnerListener):
    """Logs every event. Never aborts a run."""

    name: str = "logging"
    level: int = logging.DEBUG

    def clone(self) -> Self:
        return type(self)(name=self.name, level=self.level)

    def _failure_level(self, script: Script) -> int:
        return logging.ERROR if script.timed_out else logging.INFO

    def before_script(self, script: Script, ctx: ExecutionContext) -> None:
        if script.definition.before:
            log.log(
                self.level,
                "[%s] starting %s (before: %s)",
                self.name,
                script.label,
                script.definition.before,
            )
        else:
            log.log(self.level, "[%s] starting %s", self.name, script.label)

    def after_script(self, script: Script, ctx: ExecutionContext) -> None:
        if script.definition.after:
            log.log(
                self.level,
                "[%s] finished %s (after: %s)",
                self.name,
                script.label,
                script.definition.after,
            )
        else:
            log.log(self.level, "[%s] finished %s", self.name, script.label)

    def before_call(self, script: Script, ctx: ExecutionContext) -> None:
        log.log(
            self.level,
            "[%s] attempt %d: %s",
            self.name,
            script.attempts,
            script.request_line,
        )

    def after_call(
        self,
        script: Script,
        ctx: ExecutionContext,
        response: ActualResponse | None,
    ) -> None:
        log.log(
            self.level,
            "[%s] %s -> %s",
            self.name,
            script.request_line,
            response.status if response is not None else "no response",
        )

    def status_check_failed(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        log.log(
            self._failure_level(script),
            "[%s] %s: expected status %d but was %d",
            self.name,
            script.label,
            script.response.status,
            response.status,
        )

    def condition_check_failed(
        self,
        script: Script,
        response: ActualResponse,
        check: Check,
        ctx: ExecutionContext,
    ) -> None:
        log.log(
            self._failure_level(script),
            "[%s] %s: check failed: %s",
            self.name,
            script.label,
            check,
        )

    def session_id_not_found(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        log.log(
            self._failure_level(script),
            "[%s] %s: session field '%s' not found",
            self.name,
            script.label,
            script.response.session,
        )

    def unexpected_response(
        self,
        script: Script,
        response: ActualResponse | None,
        error: BaseException | None,
        ctx: ExecutionContext,
    ) -> None:
        log.log(
            self._failure_level(script),
            "[%s] %s: unexpected response %s (error=%r)",
            self.name,
            script.label,
            response,
            error,
        )

    def script_completed(self, script: Script) -> None:
        log.info(
            "[%s] %s completed after %d attempt(s) in %.2fs",
            self.name,
            script.label,
            script.attempts,
            script.elapsed,
        )

    def script_timed_out(self, script: Script, ctx: ExecutionContext) -> None:
        log.error(
            "[%s] %s timed out after %.2fs", self.name, script.label, script.timeout
        )

    def template_failed(
        self, script: Script, error: TemplateError, ctx: ExecutionContext
    ) -> None:
        log.error("[%s] %s: %s", self.name, script.label, error)
