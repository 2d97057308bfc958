"""Execution context shared by the scripts of one run, and request templating."""

import logging
import re
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any, Final

from api_script_runner.errors import TemplateError

log = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()

PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}?\s]+)\s*(\?)?\s*\}\}")
_PATH_PART_RE = re.compile(r"\[(\d+)\]|\.?([^.\[\]]+)")


def resolve_path(data: Any, path: str) -> Any:
    """Resolve a dotted path with ``[n]`` indices against nested data.

    Returns MISSING when any segment does not exist. A key that holds
    ``None`` resolves to ``None``.
    """
    if not path:
        return MISSING

    current = data
    for match in _PATH_PART_RE.finditer(path):
        index, key = match.groups()
        if index is not None:
            if not isinstance(current, list | tuple):
                return MISSING
            position = int(index)
            if position >= len(current):
                return MISSING
            current = current[position]
        elif isinstance(current, Mapping):
            if key in current:
                current = current[key]
            else:
                return MISSING
        else:
            return MISSING
    return current


class ExecutionContext(MutableMapping[str, Any]):
    """Insertion-ordered variable store for one runner.

    Never shared across runners; within a runner it is only touched from
    the sequential script loop, so it needs no locking.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._vars: dict[str, Any] = dict(initial or {})

    def __getitem__(self, name: str) -> Any:
        return self._vars[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self._vars[name] = value

    def __delitem__(self, name: str) -> None:
        del self._vars[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __repr__(self) -> str:
        return f"ExecutionContext({self._vars!r})"

    def get(self, name: str, default: Any = MISSING) -> Any:  # type: ignore[override]
        """Return a variable, following dotted paths into nested values."""
        if name in self._vars:
            return self._vars[name]
        value = resolve_path(self._vars, name)
        return default if value is MISSING else value

    def set(self, name: str, value: Any) -> None:
        self._vars[name] = value

    def snapshot(self) -> dict[str, Any]:
        return dict(self._vars)

    def render(self, template: Any) -> Any:
        """Substitute placeholders through strings, lists and mappings.

        ``{{name}}`` must be set, ``{{name?}}`` is left untouched when unset.
        A string made of a single placeholder becomes the raw value so typed
        values survive in JSON bodies.

        Raises:
            TemplateError: If a required variable is not set

        """
        if isinstance(template, str):
            return self._render_string(template)
        if isinstance(template, Mapping):
            return {
                self._render_string(str(key)): self.render(value)
                for key, value in template.items()
            }
        if isinstance(template, list | tuple):
            return [self.render(item) for item in template]
        return template

    def _render_string(self, template: str) -> Any:
        whole = PLACEHOLDER_RE.fullmatch(template.strip())
        if whole and template.strip() == template:
            value = self._lookup(whole)
            return template if value is MISSING else value

        def _replace(match: re.Match[str]) -> str:
            value = self._lookup(match)
            return match.group(0) if value is MISSING else _format(value)

        return PLACEHOLDER_RE.sub(_replace, template)

    def _lookup(self, match: re.Match[str]) -> Any:
        name, optional = match.groups()
        value = self.get(name)
        if value is MISSING:
            if not optional:
                raise TemplateError(name)
            log.debug("Optional template variable '%s' is not set", name)
        return value


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
