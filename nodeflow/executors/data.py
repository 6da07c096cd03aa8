"""Data-shaping executors: transform/code, json-parse and json-stringify."""

import builtins
import copy
import json
import textwrap
from typing import Any, Dict, Optional

from ..core.executor_registry import ExecutorResult
from ..core.logging import get_logger
from .base import ExecutorParams, input_data, node_executor

logger = get_logger(__name__)

_ALLOWED_BUILTINS = (
    "abs", "all", "any", "bool", "dict", "divmod", "enumerate", "filter", "float",
    "format", "int", "isinstance", "len", "list", "map", "max", "min", "pow",
    "range", "repr", "reversed", "round", "set", "sorted", "str", "sum", "tuple",
    "zip", "Exception", "KeyError", "NameError", "TypeError", "ValueError",
)

SAFE_BUILTINS: Dict[str, Any] = {name: getattr(builtins, name) for name in _ALLOWED_BUILTINS}


class TransformParams(ExecutorParams):
    code: str = ""


class JsonParseParams(ExecutorParams):
    json_string: Optional[str] = None


class JsonStringifyParams(ExecutorParams):
    data: Any = None
    pretty: bool = False


_FUNCTION_NAME = "__transform"

# Appended to every function body; reached only when the code does not return
_FALLBACK = """
    try:
        return result
    except NameError:
        return data
"""


def _as_function_source(code: str) -> str:
    body = textwrap.indent(textwrap.dedent(code), "    ")
    return f"def {_FUNCTION_NAME}(data, input, context):\n{body}\n{_FALLBACK}"


def run_user_code(code: str, node_input: Dict[str, Any], context: Any) -> Any:
    """
    Evaluate user code against the resolved input.

    A single expression is evaluated and its value returned. Anything else is
    run as the body of a function taking ``data`` (the input data), ``input``
    (the whole envelope) and ``context``, so it can ``return`` its value.
    A body that never returns yields its ``result`` variable, or the
    (possibly mutated) ``data`` when ``result`` is never assigned.

    ``json`` is available as a global. Inputs are deep-copied so user code
    cannot alter another node's captured output.

    Raises:
        Exception: Whatever the user code raises, including SyntaxError
    """
    envelope = copy.deepcopy(node_input or {})
    namespace: Dict[str, Any] = {"__builtins__": SAFE_BUILTINS, "json": json}

    try:
        compiled = compile(code, "<transform>", "eval")
    except SyntaxError:
        compiled = None

    if compiled is not None:
        return eval(compiled, {**namespace, "data": envelope.get("data"), "input": envelope, "context": context})

    exec(compile(_as_function_source(code), "<transform>", "exec"), namespace)
    return namespace[_FUNCTION_NAME](envelope.get("data"), envelope, context)


@node_executor(TransformParams)
def transform(node, params, node_input, context):
    if not params.code.strip():
        return ExecutorResult.ok(input_data(node_input))

    try:
        result = run_user_code(params.code, node_input, context)
    except Exception as e:
        return ExecutorResult.fail(f"Transform error: {e}")

    return ExecutorResult.ok(result)


@node_executor(JsonParseParams)
def json_parse(node, params, node_input, context):
    source = params.json_string if params.json_string else input_data(node_input)

    if isinstance(source, (bytes, bytearray)):
        source = source.decode("utf-8", errors="replace")
    if not isinstance(source, str):
        return ExecutorResult.fail(f"Invalid JSON: expected a string, got {type(source).__name__}")

    try:
        return ExecutorResult.ok(json.loads(source))
    except json.JSONDecodeError as e:
        return ExecutorResult.fail(f"Invalid JSON: {e}")


@node_executor(JsonStringifyParams)
def json_stringify(node, params, node_input, context):
    value = params.data if params.data is not None else input_data(node_input)
    try:
        text = json.dumps(value, indent=2 if params.pretty else None, default=str)
    except (TypeError, ValueError) as e:
        return ExecutorResult.fail(f"Cannot serialize to JSON: {e}")
    return ExecutorResult.ok(text)
