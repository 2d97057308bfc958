"""Request and response values exchanged with transports."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, kw_only=True)
class PreparedRequest:
    """A fully rendered request, ready to hand to a transport."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any | None = None

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.url}"


@dataclass(frozen=True, kw_only=True)
class ActualResponse:
    """Outcome of a single HTTP call."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""
    body: Any | None = None

    def header(self, name: str) -> str | None:
        """Look up a header case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        """Parse the raw text as JSON.

        Raises:
            ValueError: If the text is not valid JSON

        """
        return json.loads(self.text)

    def with_body(self, body: Any) -> "ActualResponse":
        return ActualResponse(
            status=self.status, headers=self.headers, text=self.text, body=body
        )

    def __str__(self) -> str:
        text = self.text if len(self.text) <= 500 else self.text[:500] + "..."
        return f"status={self.status} body={text}"
