"""Registry mapping node types to the executors that perform them."""

import inspect
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
from pydantic import BaseModel, Field

from ..models.core import NodeDefinition, NodeType
from .exceptions import ExecutorRegistryError, UnknownExecutorError
from .logging import get_logger

if TYPE_CHECKING:
    from .execution_context import ExecutionContext

logger = get_logger(__name__)


class ExecutorResult(BaseModel):
    """Outcome of a single executor call."""
    success: bool = Field(..., description="Whether the operation succeeded")
    data: Any = Field(None, description="Payload produced by the operation")
    output: Optional[str] = Field(None, description="Named output port selecting outgoing edges")
    error: Optional[str] = Field(None, description="Error description when the operation failed")

    @classmethod
    def ok(cls, data: Any = None, output: Optional[str] = None) -> "ExecutorResult":
        return cls(success=True, data=data, output=output)

    @classmethod
    def fail(cls, error: str) -> "ExecutorResult":
        return cls(success=False, error=error)


Executor = Callable[[NodeDefinition, Dict[str, Any], "ExecutionContext"], ExecutorResult]


class RegisteredExecutor:
    """An executor together with its catalog description."""

    def __init__(self, node_type: str, executor: Executor, description: str = ""):
        self.node_type = node_type
        self.executor = executor
        self.description = description


class ExecutorRegistry:
    """Capability table keyed by node type.

    A registry is a plain value: build one, register executors on it, and
    hand it to the scheduler. Nothing is registered process-wide, so tests
    can substitute executors freely.
    """

    def __init__(self):
        self._executors: Dict[str, RegisteredExecutor] = {}

    @classmethod
    def default(cls, http_timeout_ms: int = 30000) -> "ExecutorRegistry":
        """Build a registry holding every built-in executor.

        Args:
            http_timeout_ms: Default timeout for http-request nodes that do not set one

        Returns:
            A registry covering every NodeType member
        """
        from ..executors import register_builtin_executors

        registry = cls()
        register_builtin_executors(registry, http_timeout_ms=http_timeout_ms)
        return registry

    def register(self, node_type: str, executor: Executor, description: str = "", replace: bool = False) -> None:
        """Register an executor for a node type.

        Args:
            node_type: Node type string, or a NodeType member
            executor: Callable taking (node, input, context) and returning an ExecutorResult
            description: Optional description for the node catalog
            replace: Allow overwriting an existing registration

        Raises:
            ExecutorRegistryError: If the type is empty, already registered, or the executor is invalid
        """
        node_type = self._normalize(node_type)

        if not callable(executor):
            raise ExecutorRegistryError(f"Executor for '{node_type}' must be callable", node_type=node_type, operation="register")

        try:
            params = inspect.signature(executor).parameters.values()
            variadic = any(p.kind == inspect.Parameter.VAR_POSITIONAL for p in params)
            if not variadic and len(params) < 3:
                raise ExecutorRegistryError(
                    f"Executor for '{node_type}' must accept (node, input, context)",
                    node_type=node_type,
                    operation="register"
                )
        except (ValueError, TypeError) as e:
            raise ExecutorRegistryError(f"Cannot inspect executor signature for '{node_type}': {e}", node_type=node_type)

        if node_type in self._executors and not replace:
            raise ExecutorRegistryError(f"Executor for '{node_type}' is already registered", node_type=node_type, operation="register")

        self._executors[node_type] = RegisteredExecutor(node_type, executor, description.strip() if description else "")
        logger.debug(f"Registered executor for node type '{node_type}'")

    def unregister(self, node_type: str) -> bool:
        """Remove an executor. Returns False if the type was not registered."""
        return self._executors.pop(self._normalize(node_type), None) is not None

    def get(self, node_type: str, node_id: Optional[str] = None) -> Executor:
        """Look up the executor for a node type.

        Raises:
            UnknownExecutorError: If no executor is registered for the type
        """
        registered = self._executors.get(self._normalize_lookup(node_type))
        if registered is None:
            raise UnknownExecutorError(node_type, node_id=node_id)
        return registered.executor

    def has(self, node_type: str) -> bool:
        return self._normalize_lookup(node_type) in self._executors

    def list_types(self) -> Dict[str, str]:
        """List registered node types with their descriptions."""
        return {name: entry.description for name, entry in self._executors.items()}

    def missing_types(self) -> List[str]:
        """NodeType members without a registered executor."""
        return [member.value for member in NodeType if member.value not in self._executors]

    def execute(self, node: NodeDefinition, node_input: Dict[str, Any], context: "ExecutionContext") -> ExecutorResult:
        """
        Run the executor registered for a node.

        Unexpected exceptions raised by the executor are converted into a
        failed result; only an unknown node type escapes as an exception.

        Args:
            node: Node to execute
            node_input: Resolved input envelope ({"data": ...})
            context: Execution context of the current run

        Returns:
            ExecutorResult: Success or failure of the operation

        Raises:
            UnknownExecutorError: If no executor is registered for node.type
        """
        executor = self.get(node.type, node_id=node.id)

        try:
            result = executor(node, node_input, context)
        except Exception as e:
            logger.error(f"Executor for node {node.id} ({node.type}) raised: {e}", exc_info=True)
            return ExecutorResult.fail(f"{type(e).__name__}: {e}")

        if not isinstance(result, ExecutorResult):
            return ExecutorResult.fail(
                f"Executor for node type '{node.type}' returned {type(result).__name__} instead of ExecutorResult"
            )
        return result

    def _normalize(self, node_type: Any) -> str:
        if isinstance(node_type, NodeType):
            return node_type.value
        if not node_type or not str(node_type).strip():
            raise ExecutorRegistryError("Node type cannot be empty")
        return str(node_type).strip()

    def _normalize_lookup(self, node_type: Any) -> str:
        if isinstance(node_type, NodeType):
            return node_type.value
        return str(node_type).strip() if node_type else ""
