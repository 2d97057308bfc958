"""Composite listener fanning every event out to registered sub-listeners."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Self

from api_script_runner.context import ExecutionContext
from api_script_runner.errors import TemplateError
from api_script_runner.listeners.base import RunnerListener
from api_script_runner.models.definition import Check
from api_script_runner.models.response import ActualResponse
from api_script_runner.script import Script


@dataclass(kw_only=True)
class MultiListener(RunnerListener):
    """Dispatches each hook to every sub-listener in registration order.

    The first sub-listener that raises aborts the dispatch and the
    exception propagates to the runner.
    """

    name: str = "multi"
    _listeners: list[RunnerListener] = field(default_factory=list, repr=False)

    @property
    def listeners(self) -> Sequence[RunnerListener]:
        return tuple(self._listeners)

    def add(self, listener: RunnerListener) -> Self:
        self._listeners.append(listener)
        return self

    def clone(self) -> Self:
        copy = type(self)(name=self.name)
        for listener in self._listeners:
            copy.add(listener.clone())
        return copy

    def before_script(self, script: Script, ctx: ExecutionContext) -> None:
        for listener in self._listeners:
            listener.before_script(script, ctx)

    def after_script(self, script: Script, ctx: ExecutionContext) -> None:
        for listener in self._listeners:
            listener.after_script(script, ctx)

    def before_call(self, script: Script, ctx: ExecutionContext) -> None:
        for listener in self._listeners:
            listener.before_call(script, ctx)

    def after_call(
        self,
        script: Script,
        ctx: ExecutionContext,
        response: ActualResponse | None,
    ) -> None:
        for listener in self._listeners:
            listener.after_call(script, ctx, response)

    def status_check_failed(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        for listener in self._listeners:
            listener.status_check_failed(script, response, ctx)

    def condition_check_failed(
        self,
        script: Script,
        response: ActualResponse,
        check: Check,
        ctx: ExecutionContext,
    ) -> None:
        for listener in self._listeners:
            listener.condition_check_failed(script, response, check, ctx)

    def session_id_not_found(
        self, script: Script, response: ActualResponse, ctx: ExecutionContext
    ) -> None:
        for listener in self._listeners:
            listener.session_id_not_found(script, response, ctx)

    def unexpected_response(
        self,
        script: Script,
        response: ActualResponse | None,
        error: BaseException | None,
        ctx: ExecutionContext,
    ) -> None:
        for listener in self._listeners:
            listener.unexpected_response(script, response, error, ctx)

    def script_completed(self, script: Script) -> None:
        for listener in self._listeners:
            listener.script_completed(script)

    def script_timed_out(self, script: Script, ctx: ExecutionContext) -> None:
        for listener in self._listeners:
            listener.script_timed_out(script, ctx)

    def template_failed(
        self, script: Script, error: TemplateError, ctx: ExecutionContext
    ) -> None:
        for listener in self._listeners:
            listener.template_failed(script, error, ctx)

    def skip_check(self, script: Script, check: Check) -> bool:
        skip = False
        for listener in self._listeners:
            if listener.skip_check(script, check):
                skip = True
        return skip


def add_listener(
    multi: RunnerListener | None, listener: RunnerListener
) -> MultiListener:
    """Register a listener on a listener that must be a MultiListener."""
    if multi is None:
        raise TypeError("add_listener: multi was None")
    if not isinstance(multi, MultiListener):
        raise TypeError(
            f"add_listener: expected MultiListener, but was {type(multi).__name__}"
        )
    return multi.add(listener)
