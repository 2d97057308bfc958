"""Models for script definitions loaded from script files."""

import re
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from pydantic import Field, field_validator

from api_script_runner.models.base import Model

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")

DURATION_UNITS: Mapping[str, float] = {
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")

type CheckOperator = Literal[
    "equals",
    "not_equals",
    "exists",
    "not_exists",
    "gt",
    "gte",
    "lt",
    "lte",
    "contains",
    "not_contains",
    "matches",
    "is_empty",
    "not_empty",
]


def parse_duration(value: Any) -> float:
    """Convert a duration such as ``"250ms"``, ``"2s"`` or ``5`` to seconds.

    Bare numbers (and unit-less strings) are taken as seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int | float):
        if value < 0:
            raise ValueError(f"Duration must not be negative: {value!r}")
        return float(value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            amount, unit = match.groups()
            if unit == "ms":
                return float(amount) / 1000
            return float(amount) * DURATION_UNITS[unit or "s"]
    raise ValueError(f"Invalid duration: {value!r}")


class RequestDefinition(Model):
    """HTTP request template."""

    method: str = Field(default="GET", description="HTTP method")
    url: str = Field(..., description="URL or path, may hold {{variables}}")
    headers: Mapping[str, str] = Field(
        default_factory=dict, description="Request headers, may hold {{variables}}"
    )
    body: Any | None = Field(
        default=None, description="JSON-compatible body or raw string"
    )

    @field_validator("method")
    @classmethod
    def _validate_method(cls, value: str) -> str:
        method = value.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"method must be one of {HTTP_METHODS}, got '{value}'")
        return method

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.url}"


class Check(Model):
    """Named condition evaluated against a response and the context."""

    name: str = Field(..., description="Check identity, reported on failure")
    path: str = Field(..., description="Path into status, headers, body or ctx")
    operator: CheckOperator = Field(default="exists", description="Comparison")
    value: Any | None = Field(default=None, description="Comparison operand")
    comment: str | None = Field(default=None, description="Free text")

    def __str__(self) -> str:
        text = f"{self.name} ({self.path} {self.operator}"
        if self.operator not in {"exists", "not_exists", "is_empty", "not_empty"}:
            text += f" {self.value!r}"
        text += ")"
        if self.comment:
            text += f" # {self.comment}"
        return text


class ResponseExpectation(Model):
    """What a successful response must look like."""

    status: int = Field(default=200, description="Expected HTTP status code")
    session: str | None = Field(
        default=None, description="Response field holding the session token"
    )
    session_name: str | None = Field(
        default=None, description="Context variable receiving the session token"
    )
    store: str | None = Field(
        default=None, description="Context variable receiving the response body"
    )
    type: Literal["json", "text"] | None = Field(
        default=None, description="How to deserialize the response body"
    )
    checks: Sequence[Check] = Field(
        default_factory=list, description="Conditions evaluated in order"
    )

    @property
    def has_session(self) -> bool:
        return bool(self.session)

    @property
    def has_store(self) -> bool:
        return bool(self.store)

    @property
    def has_checks(self) -> bool:
        return bool(self.checks)

    @property
    def session_variable(self) -> str | None:
        """Context variable name for the extracted session token."""
        return self.session_name or self.session


class ScriptDefinition(Model):
    """One declarative HTTP call plus its expected response and timeout."""

    name: str | None = Field(default=None, description="Human-readable label")
    comment: str | None = Field(default=None, description="Free text")
    request: RequestDefinition = Field(..., description="Request template")
    response: ResponseExpectation = Field(
        default_factory=ResponseExpectation, description="Expected response"
    )
    timeout: float = Field(
        default=0.0, description="Retry window (e.g., 2.5, '250ms', '2s', '5m')"
    )
    delay: float = Field(default=0.0, description="Pause before the first attempt")
    before: str | None = Field(default=None, description="Label for before_script")
    after: str | None = Field(default=None, description="Label for after_script")

    @field_validator("timeout", "delay", mode="before")
    @classmethod
    def _parse_duration(cls, value: Any) -> float:
        return parse_duration(value)

    @property
    def request_line(self) -> str:
        return self.request.request_line

    @property
    def label(self) -> str:
        return self.name or self.request_line


class ScriptFile(Model):
    """Complete script file: initial variables and an ordered script list."""

    version: str = Field(..., description="Script file schema version")
    vars: Mapping[str, Any] = Field(
        default_factory=dict, description="Initial context variables"
    )
    scripts: Sequence[ScriptDefinition] = Field(
        default_factory=list, description="Scripts, executed in order"
    )
