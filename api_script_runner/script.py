"""Runtime state of a script while a runner executes it."""

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from api_script_runner.models.definition import ResponseExpectation, ScriptDefinition


@dataclass(kw_only=True)
class Script:
    """A script definition plus the mutable timing state of one execution.

    Only the runner that owns the instance mutates it. Runners executing
    the same definitions concurrently each build their own Script objects.
    """

    definition: ScriptDefinition
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    started_at: float | None = None
    attempts: int = 0
    _pinned_at: float | None = field(default=None, repr=False)
    _expired: bool = field(default=False, repr=False)

    @property
    def label(self) -> str:
        return self.definition.label

    @property
    def request_line(self) -> str:
        return self.definition.request_line

    @property
    def response(self) -> ResponseExpectation:
        return self.definition.response

    @property
    def timeout(self) -> float:
        return self.definition.timeout

    @property
    def now(self) -> float:
        return self._pinned_at if self._pinned_at is not None else self.clock()

    @property
    def deadline(self) -> float | None:
        if self.started_at is None:
            return None
        return self.started_at + self.timeout

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return max(0.0, self.now - self.started_at)

    @property
    def remaining(self) -> float:
        if self.started_at is None:
            return self.timeout
        if self._expired:
            return 0.0
        return max(0.0, self.timeout - self.elapsed)

    @property
    def timed_out(self) -> bool:
        """True once ``now - started_at >= timeout``."""
        if self._expired:
            return True
        if self.started_at is None:
            return False
        return self.now - self.started_at >= self.timeout

    def start(self) -> None:
        self.reset()
        self.started_at = self.clock()

    def reset(self) -> None:
        """Clear timing state before a new attempt sequence."""
        self.started_at = None
        self.attempts = 0
        self._pinned_at = None
        self._expired = False

    def expire(self) -> None:
        """Latch the script as timed out regardless of the clock."""
        self._expired = True

    @contextmanager
    def pinned_clock(self) -> Iterator[bool]:
        """Freeze ``now`` so every reader agrees on whether the script timed out.

        Yields the timed_out value for the pinned instant.
        """
        self._pinned_at = self.clock()
        try:
            yield self.timed_out
        finally:
            self._pinned_at = None

    def __str__(self) -> str:
        return f"Script({self.label}, timeout={self.timeout}s)"
