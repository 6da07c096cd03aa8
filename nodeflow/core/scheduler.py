"""Breadth-first traversal of an execution graph."""

from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set

from ..models.core import NodeExecutionRecord, NodeExecutionStatus, utc_now
from .execution_context import ExecutionContext
from .executor_registry import ExecutorRegistry, ExecutorResult
from .exceptions import NoEntryPointError, NodeExecutionError, UnknownExecutorError
from .graph_builder import EdgeRef, ExecutionGraph
from .logging import get_logger

logger = get_logger(__name__)

RecordHook = Callable[[NodeExecutionRecord], None]


class Worklist:
    """FIFO queue of node ids plus the set of ids already executed."""

    def __init__(self, seed: Iterable[str] = ()):
        self._pending: Deque[str] = deque(seed)
        self._executed: Set[str] = set()
        self._order: List[str] = []

    def push(self, node_id: str) -> None:
        self._pending.append(node_id)

    def pop(self) -> Optional[str]:
        """Next id that has not executed yet, or None when the queue is drained."""
        while self._pending:
            node_id = self._pending.popleft()
            if node_id not in self._executed:
                return node_id
        return None

    def mark_executed(self, node_id: str) -> None:
        self._executed.add(node_id)
        self._order.append(node_id)

    def is_executed(self, node_id: str) -> bool:
        return node_id in self._executed

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    @property
    def executed(self) -> List[str]:
        """Executed ids in completion order."""
        return list(self._order)

    def __len__(self) -> int:
        return len(self._pending)


class TraversalScheduler:
    """Walks a graph from its start nodes, one node at a time.

    Each dequeued node is dispatched through the registry. On success its
    output is captured and the targets of matching outgoing edges are
    enqueued; on failure the walk stops and the error is raised.
    """

    def __init__(self, registry: ExecutorRegistry):
        self.registry = registry

    def run(
        self,
        graph: ExecutionGraph,
        context: ExecutionContext,
        run_input: Any = None,
        on_record: Optional[RecordHook] = None
    ) -> Any:
        """
        Execute every node reachable from the start nodes.

        Args:
            graph: Immutable execution graph
            context: Execution context of the run
            run_input: The run's input, used by nodes without a captured predecessor
            on_record: Called with each finished NodeExecutionRecord; defaults to
                appending it to ``context.run.node_executions``

        Returns:
            The data of the last successful node, or an empty dict if nothing ran

        Raises:
            NoEntryPointError: If no node is free of incoming edges
            NodeExecutionError: If a node fails or has no registered executor
        """
        record = on_record or context.run.node_executions.append

        start_nodes = graph.start_nodes()
        if not start_nodes:
            raise NoEntryPointError()

        context.add_log("info", f"Found {len(start_nodes)} starting node(s)")

        worklist = Worklist(start_nodes)
        last_result: Optional[ExecutorResult] = None

        node_id = worklist.pop()
        while node_id is not None:
            graph_node = graph[node_id]
            node = graph_node.node

            context.add_log("info", f"Executing node: {node.type} ({node.id})")

            node_input = self._resolve_input(graph, node_id, context, run_input)
            execution = NodeExecutionRecord(node_id=node.id, input=node_input)

            try:
                result = self.registry.execute(node, node_input, context)
            except UnknownExecutorError as e:
                self._finish(execution, NodeExecutionStatus.FAILED, error=e.message)
                record(execution)
                raise NodeExecutionError(e.message, node_id=node.id, run_id=context.run_id) from e

            if not result.success:
                message = result.error or f"Node {node.id} failed"
                self._finish(execution, NodeExecutionStatus.FAILED, error=message)
                record(execution)
                raise NodeExecutionError(message, node_id=node.id, run_id=context.run_id)

            context.record_output(node.id, result)
            last_result = result
            self._finish(execution, NodeExecutionStatus.SUCCESS, output=result.data)
            record(execution)
            worklist.mark_executed(node.id)

            context.add_log("info", f"Node completed: {node.type} ({node.id})")

            for edge in graph_node.outgoing:
                if self._should_follow(edge, result.output):
                    worklist.push(edge.target)

            node_id = worklist.pop()

        return last_result.data if last_result is not None else {}

    def _resolve_input(self, graph: ExecutionGraph, node_id: str, context: ExecutionContext, run_input: Any) -> Dict[str, Any]:
        """Input envelope from the first incoming source's capture, else the run input."""
        incoming = graph[node_id].incoming
        if incoming:
            captured = context.get_output(incoming[0].source)
            if captured is not None:
                return {"data": captured.data}
        return {"data": run_input}

    @staticmethod
    def _should_follow(edge: EdgeRef, port: Optional[str]) -> bool:
        return not port or not edge.source_handle or edge.source_handle == port

    @staticmethod
    def _finish(execution: NodeExecutionRecord, status: NodeExecutionStatus, output: Any = None, error: Optional[str] = None) -> None:
        execution.status = status
        execution.output = output
        execution.error = error
        execution.finished_at = utc_now()
