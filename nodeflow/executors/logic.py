"""Branching executors: condition and switch."""

import operator as op
from typing import Any, Callable, Dict, Optional

from ..core.executor_registry import ExecutorResult
from ..core.logging import get_logger
from .base import ExecutorParams, input_data, node_executor

logger = get_logger(__name__)

_MISSING = object()

OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": op.eq,
    "!=": op.ne,
    ">": op.gt,
    "<": op.lt,
    ">=": op.ge,
    "<=": op.le,
}


class ConditionParams(ExecutorParams):
    value1: Any = None
    operator: str = "=="
    value2: Any = None
    field: Optional[str] = None


class SwitchParams(ExecutorParams):
    value: Any = None
    field: Optional[str] = None
    cases: Dict[str, Any] = {}


def lookup_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted path such as ``user.address.city`` or ``items.0.id``.

    Returns None when any segment is missing.
    """
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, (list, tuple)) and part.lstrip("-").isdigit():
            index = int(part)
            current = current[index] if -len(current) <= index < len(current) else _MISSING
        else:
            return None
        if current is _MISSING:
            return None
    return current


def compare(left: Any, operator: str, right: Any) -> bool:
    """
    Compare two operands with one of ``==, !=, >, <, >=, <=``.

    A numeric string compared against a number is converted first. Unknown
    operators and incomparable operands evaluate to False.
    """
    func = OPERATORS.get((operator or "").strip())
    if func is None:
        logger.debug(f"Unknown comparison operator: {operator!r}")
        return False

    left, right = _coerce_pair(left, right)
    try:
        return bool(func(left, right))
    except TypeError:
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: str) -> Any:
    try:
        number = float(value.strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() and "." not in value else number


def _coerce_pair(left: Any, right: Any):
    if _is_number(left) and isinstance(right, str):
        converted = _to_number(right)
        if converted is not None:
            return left, converted
    elif _is_number(right) and isinstance(left, str):
        converted = _to_number(left)
        if converted is not None:
            return converted, right
    return left, right


def _subject(value: Any, field: Optional[str], node_input) -> Any:
    if value is not None and value != "":
        return value
    data = input_data(node_input)
    if field:
        return lookup_path(data, field)
    return data


@node_executor(ConditionParams)
def condition(node, params, node_input, context):
    left = _subject(params.value1, params.field, node_input)
    result = compare(left, params.operator, params.value2)
    port = "true" if result else "false"
    return ExecutorResult.ok({"result": result, "output": port}, output=port)


@node_executor(SwitchParams)
def switch(node, params, node_input, context):
    subject = _subject(params.value, params.field, node_input)

    port = "default"
    for case_name, expected in params.cases.items():
        if compare(subject, "==", expected):
            port = case_name
            break

    return ExecutorResult.ok({"value": subject, "output": port}, output=port)
