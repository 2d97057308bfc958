"""Listener interface and the default abort-on-timeout listener."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Self

from api_script_runner.context import ExecutionContext
from api_script_runner.errors import (
    ConditionCheckFailedError,
    ScriptTimedOutError,
    SessionIdNotFoundError,
    StatusCheckFailedError,
    TemplateError,
    TemplateFailedError,
    UnexpectedResponseError,
)
from api_script_runner.models.definition import Check
from api_script_runner.models.response import ActualResponse
from api_script_runner.script import Script


class RunnerListener(ABC):
    """Observer of runner lifecycle events.

    Every hook has a no-op default. Hooks run synchronously: the runner does
    not continue until a hook returns. Raising from a hook aborts the run.
    Implementations must provide ``clone`` so each concurrent runner gets
    its own listener state.
    """

    @abstractmethod
    def clone(self) -> Self:
        """Return an independent copy with no shared mutable state."""

    def before_script(self, script: Script, ctx: ExecutionContext) -> None:
        pass

    def after_script(self, script: Script, ctx: ExecutionContext) -> None:
        pass

    def before_call(self, script: Script, ctx: ExecutionContext) -> None:
        pass

    def after_call(
        self,
        script: Script,
        ctx: ExecutionContext,
        response: ActualResponse | None,
    ) -> None:
        pass

    def status_check_failed(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        pass

    def condition_check_failed(
        self,
        script: Script,
        response: ActualResponse,
        check: Check,
        ctx: ExecutionContext,
    ) -> None:
        pass

    def session_id_not_found(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        pass

    def unexpected_response(
        self,
        script: Script,
        response: ActualResponse | None,
        error: BaseException | None,
        ctx: ExecutionContext,
    ) -> None:
        pass

    def script_completed(self, script: Script) -> None:
        pass

    def script_timed_out(self, script: Script, ctx: ExecutionContext) -> None:
        pass

    def template_failed(
        self, script: Script, error: TemplateError, ctx: ExecutionContext
    ) -> None:
        pass

    def skip_check(self, script: Script, check: Check) -> bool:
        return False


@dataclass(kw_only=True)
class ListenerBase(RunnerListener):
    """Listener that aborts the run on a failure once the script timed out.

    Before the deadline failures are transient and ignored here, so the
    runner keeps retrying.
    """

    name: str = "default"

    def clone(self) -> Self:
        return type(self)(name=self.name)

    def status_check_failed(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        if script.timed_out:
            detail = (
                f"statusCheckFailed({self.name}): request {script.request_line} "
                f"expected {script.response.status} but was {response.status}"
            )
            if response.status == 422:
                detail += f", validation errors: {response.text}"
            raise StatusCheckFailedError(script, detail, ctx.snapshot())

    def condition_check_failed(
        self,
        script: Script,
        response: ActualResponse,
        check: Check,
        ctx: ExecutionContext,
    ) -> None:
        if script.timed_out:
            detail = (
                f"conditionCheckFailed({self.name}): {script.request_line}:\n"
                f"failed condition={check}\nserver response={response}"
            )
            raise ConditionCheckFailedError(script, detail, ctx.snapshot())

    def session_id_not_found(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        if script.timed_out:
            detail = (
                f"sessionIdNotFound({self.name}): {script.request_line} expected "
                f"{script.response.session}, server response={response}"
            )
            raise SessionIdNotFoundError(script, detail, ctx.snapshot())

    def unexpected_response(
        self,
        script: Script,
        response: ActualResponse | None,
        error: BaseException | None,
        ctx: ExecutionContext,
    ) -> None:
        if script.timed_out:
            detail = f"unexpectedResponse({self.name}): {script.request_line}"
            if response is not None:
                detail += f", server response={response}"
            if error is not None:
                detail += f", error={error!r}"
            raise UnexpectedResponseError(script, detail, ctx.snapshot())

    def script_timed_out(self, script: Script, ctx: ExecutionContext) -> None:
        raise ScriptTimedOutError(
            script,
            f"scriptTimedOut({self.name}): {script.request_line} timed out "
            f"after {script.timeout}s",
            ctx.snapshot(),
        )

    def template_failed(
        self, script: Script, error: TemplateError, ctx: ExecutionContext
    ) -> None:
        raise TemplateFailedError(
            script,
            f"templateFailed({self.name}): {script.request_line}: {error}",
            ctx.snapshot(),
        )
