"""Shared plumbing for the built-in node executors."""

import functools
from typing import Any, Callable, Dict, Optional, Type, TYPE_CHECKING
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from ..core.executor_registry import ExecutorResult
from ..core.logging import get_logger
from ..models.core import NodeDefinition

if TYPE_CHECKING:
    from ..core.execution_context import ExecutionContext

logger = get_logger(__name__)


class ExecutorParams(BaseModel):
    """Base for per-node-type parameter models.

    Parameters come from the editor's ``data`` bag, so camelCase keys are
    accepted and unrelated editor keys (labels, descriptions) are ignored.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def node_executor(params_model: Type[ExecutorParams]) -> Callable:
    """
    Decorator binding an executor function to its parameter model.

    The decorated function is called as ``func(node, params, node_input, context)``
    and the wrapper exposes the registry signature ``(node, node_input, context)``.
    Invalid parameters become a failed result instead of an exception.

    Args:
        params_model: Pydantic model used to parse ``node.data``

    Returns:
        Decorator producing a registry-compatible executor
    """
    def decorator(func: Callable[..., ExecutorResult]) -> Callable[..., ExecutorResult]:
        @functools.wraps(func)
        def wrapper(node: NodeDefinition, node_input: Dict[str, Any], context: "ExecutionContext") -> ExecutorResult:
            try:
                params = params_model.model_validate(node.data or {})
            except ValidationError as e:
                logger.debug(f"Invalid parameters for node {node.id}: {e}")
                return ExecutorResult.fail(f"Invalid parameters for {node.type} node: {_first_error(e)}")
            return func(node, params, node_input, context)

        wrapper.params_model = params_model
        return wrapper

    return decorator


def input_data(node_input: Optional[Dict[str, Any]]) -> Any:
    """Return the ``data`` member of a resolved input envelope."""
    if not node_input:
        return None
    return node_input.get("data")


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
