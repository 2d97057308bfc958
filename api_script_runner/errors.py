"""Exceptions raised by the script engine."""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from api_script_runner.script import Script


class ApiRunnerError(Exception):
    """Base class for all engine errors."""


class TemplateError(ApiRunnerError):
    """Raised when a required template variable is not set."""

    def __init__(self, variable: str) -> None:
        super().__init__(f"Template variable '{variable}' is not set")
        self.variable = variable


class TransportError(ApiRunnerError):
    """Raised by transports for network-level failures."""


class FatalRunError(ApiRunnerError):
    """A condition that aborts the whole run.

    Carries the originating script, a description of the mismatch and a
    snapshot of the execution context at the time of failure so the driver
    can report which workflow step failed and why.
    """

    def __init__(
        self,
        script: "Script",
        detail: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.script = script
        self.detail = detail
        self.context = dict(context) if context is not None else {}
        super().__init__(self._format())

    def _format(self) -> str:
        message = f"{self.script.label}: {self.detail}"
        if self.context:
            message += f"\nctx={self.context}"
        return message


class StatusCheckFailedError(FatalRunError):
    """Response status never matched the expected status."""


class ConditionCheckFailedError(FatalRunError):
    """A response check never evaluated to true."""


class SessionIdNotFoundError(FatalRunError):
    """The configured session field never appeared in a response."""


class UnexpectedResponseError(FatalRunError):
    """The response could not be classified, or the transport failed."""


class ScriptTimedOutError(FatalRunError):
    """The script deadline passed without any classifiable response."""


class TemplateFailedError(FatalRunError):
    """The request could not be rendered from the execution context."""


class BracketHookError(FatalRunError):
    """A before_script or after_script hook raised."""
