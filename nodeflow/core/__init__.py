"""Core workflow engine components."""

from .exceptions import (
    WorkflowEngineError,
    NoEntryPointError,
    UnknownExecutorError,
    NodeExecutionError,
    RunStateError,
    ExecutionEngineError,
    ExecutorRegistryError,
    StorageError,
    NotFoundError,
    ConfigurationError,
    APIError,
)
from .logging import setup_logging, get_logger
from .graph_builder import ExecutionGraph, build_execution_graph, validate_workflow
from .executor_registry import ExecutorRegistry, ExecutorResult
from .execution_context import ExecutionContext
from .scheduler import TraversalScheduler, Worklist
from .event_publisher import EventChannel, EventPublisher, InMemoryEventChannel
from .run_lifecycle import RunLifecycleManager
from .run_store import RunStore
from .workflow_store import WorkflowStore
from .execution_engine import ExecutionEngine

__all__ = [
    "WorkflowEngineError",
    "NoEntryPointError",
    "UnknownExecutorError",
    "NodeExecutionError",
    "RunStateError",
    "ExecutionEngineError",
    "ExecutorRegistryError",
    "StorageError",
    "NotFoundError",
    "ConfigurationError",
    "APIError",
    "setup_logging",
    "get_logger",
    "ExecutionGraph",
    "build_execution_graph",
    "validate_workflow",
    "ExecutorRegistry",
    "ExecutorResult",
    "ExecutionContext",
    "TraversalScheduler",
    "Worklist",
    "EventChannel",
    "EventPublisher",
    "InMemoryEventChannel",
    "RunLifecycleManager",
    "RunStore",
    "WorkflowStore",
    "ExecutionEngine",
]
