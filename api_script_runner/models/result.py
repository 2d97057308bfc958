"""Models for script and run results."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

type ScriptStatus = Literal["completed", "failed", "skipped"]

type FailureKind = Literal[
    "status",
    "condition",
    "session",
    "unexpected",
    "timeout",
    "template",
]


@dataclass(frozen=True, kw_only=True)
class ScriptOutcome:
    """Result of a single script execution within a run."""

    label: str
    status: ScriptStatus
    attempts: int
    duration: float
    failure: FailureKind | None = None
    message: str | None = None


@dataclass(frozen=True, kw_only=True)
class RunResult:
    """Result of one runner executing a full script list.

    The context holds every value stored during the run, which is the
    output channel for downstream consumers.
    """

    runner_id: int
    status: Literal["success", "failure", "timeout", "error"]
    duration: float
    outcomes: Sequence[ScriptOutcome] = field(default_factory=list)
    message: str | None = None
    context: Mapping[str, Any] = field(default_factory=dict)
