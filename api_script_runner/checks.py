"""Evaluation of response checks."""

import logging
import math
import re
from collections.abc import Callable, Mapping, Sized
from typing import Any

from api_script_runner.context import MISSING, ExecutionContext, resolve_path
from api_script_runner.models.definition import Check
from api_script_runner.models.response import ActualResponse

log = logging.getLogger(__name__)


def check_namespace(
    response: ActualResponse, ctx: ExecutionContext
) -> Mapping[str, Any]:
    """Build the mapping that check paths are resolved against."""
    return {
        "status": response.status,
        "headers": {key.lower(): value for key, value in response.headers.items()},
        "body": response.body,
        "ctx": ctx.snapshot(),
    }


def evaluate_check(
    check: Check, response: ActualResponse, ctx: ExecutionContext
) -> bool:
    """Return True if the check holds for this response and context.

    Raises:
        TemplateError: If the check operand references an unset variable

    """
    path = check.path
    if path.startswith("headers."):
        path = path.lower()
    actual = resolve_path(check_namespace(response, ctx), path)
    expected = ctx.render(check.value)

    result = OPERATORS[check.operator](actual, expected)
    log.debug(
        "Check %s: actual=%r expected=%r result=%s",
        check.name,
        actual,
        expected,
        result,
    )
    return result


def _coerce(actual: Any, expected: Any) -> tuple[Any, Any]:
    """Bring the operand to the type of the actual value where possible."""
    if actual is MISSING or expected is None:
        return actual, expected
    if isinstance(actual, bool) or isinstance(expected, bool):
        if isinstance(expected, str) and expected.lower() in {"true", "false"}:
            return actual, expected.lower() == "true"
        return actual, expected
    if isinstance(actual, int | float) and isinstance(expected, str):
        try:
            return actual, float(expected)
        except ValueError:
            return actual, expected
    if isinstance(actual, str) and isinstance(expected, int | float):
        return actual, str(expected)
    return actual, expected


def _equals(actual: Any, expected: Any) -> bool:
    actual, expected = _coerce(actual, expected)
    return actual is not MISSING and actual == expected


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def _apply(actual: Any, expected: Any) -> bool:
        if actual is MISSING or actual is None or expected is None:
            return False
        if isinstance(actual, str):
            try:
                actual = float(actual)
            except ValueError:
                return False
        actual, expected = _coerce(actual, expected)
        if isinstance(actual, float) and math.isnan(actual):
            return False
        try:
            return op(actual, expected)
        except TypeError:
            return False

    return _apply


def _contains(actual: Any, expected: Any) -> bool:
    if actual is MISSING or actual is None:
        return False
    if isinstance(actual, str):
        return str(expected) in actual
    if isinstance(actual, Mapping):
        return expected in actual
    try:
        return expected in actual
    except TypeError:
        return False


def _matches(actual: Any, expected: Any) -> bool:
    if actual is MISSING or actual is None or expected is None:
        return False
    return re.search(str(expected), str(actual)) is not None


def _is_empty(actual: Any, expected: Any) -> bool:
    if actual is MISSING or actual is None:
        return True
    if isinstance(actual, Sized):
        return len(actual) == 0
    return False


OPERATORS: Mapping[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "not_equals": lambda actual, expected: not _equals(actual, expected),
    "exists": lambda actual, expected: actual is not MISSING and actual is not None,
    "not_exists": lambda actual, expected: actual is MISSING or actual is None,
    "gt": _compare(lambda a, b: a > b),
    "gte": _compare(lambda a, b: a >= b),
    "lt": _compare(lambda a, b: a < b),
    "lte": _compare(lambda a, b: a <= b),
    "contains": _contains,
    "not_contains": lambda actual, expected: not _contains(actual, expected),
    "matches": _matches,
    "is_empty": _is_empty,
    "not_empty": lambda actual, expected: not _is_empty(actual, expected),
}
