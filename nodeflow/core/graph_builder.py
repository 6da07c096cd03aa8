"""Construction and validation of the execution graph."""

from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple
from pydantic import BaseModel, ConfigDict

from ..models.core import EdgeDefinition, NodeDefinition, ValidationResult, WorkflowDefinition
from .logging import get_logger

logger = get_logger(__name__)


class EdgeRef(BaseModel):
    """One end of an edge as seen from a graph node."""
    model_config = ConfigDict(frozen=True)

    edge_id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class GraphNode(BaseModel):
    """A node together with its incoming and outgoing edges."""
    model_config = ConfigDict(frozen=True)

    node: NodeDefinition
    incoming: Tuple[EdgeRef, ...] = ()
    outgoing: Tuple[EdgeRef, ...] = ()


class ExecutionGraph(Mapping):
    """Immutable adjacency snapshot addressed by node id.

    Iteration follows node declaration order.
    """

    def __init__(self, nodes: Dict[str, GraphNode], dropped_edges: Tuple[EdgeDefinition, ...] = ()):
        self._nodes = dict(nodes)
        self._order = tuple(nodes.keys())
        self.dropped_edges = dropped_edges

    def __getitem__(self, node_id: str) -> GraphNode:
        return self._nodes[node_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def start_nodes(self) -> List[str]:
        """Ids of nodes with no incoming edges, in declaration order."""
        return [node_id for node_id in self._order if not self._nodes[node_id].incoming]

    def successors(self, node_id: str) -> List[str]:
        return [edge.target for edge in self._nodes[node_id].outgoing]


def build_execution_graph(nodes: Iterable[NodeDefinition], edges: Iterable[EdgeDefinition]) -> ExecutionGraph:
    """
    Build the adjacency structure for a workflow.

    Edges naming an unknown source or target are dropped without error so
    that half-edited workflows still run.

    Args:
        nodes: Node definitions in declaration order
        edges: Edge definitions

    Returns:
        ExecutionGraph: Immutable snapshot including isolated nodes
    """
    node_list = list(nodes)
    incoming: Dict[str, List[EdgeRef]] = {node.id: [] for node in node_list}
    outgoing: Dict[str, List[EdgeRef]] = {node.id: [] for node in node_list}
    dropped: List[EdgeDefinition] = []

    for edge in edges:
        if edge.source not in outgoing or edge.target not in incoming:
            dropped.append(edge)
            continue

        ref = EdgeRef(
            edge_id=edge.id,
            source=edge.source,
            target=edge.target,
            source_handle=edge.source_handle,
            target_handle=edge.target_handle,
        )
        outgoing[edge.source].append(ref)
        incoming[edge.target].append(ref)

    if dropped:
        logger.debug(f"Dropped {len(dropped)} edge(s) referencing unknown nodes")

    graph_nodes: Dict[str, GraphNode] = {}
    for node in node_list:
        # Later duplicates win, matching a map keyed by id
        graph_nodes[node.id] = GraphNode(
            node=node,
            incoming=tuple(incoming[node.id]),
            outgoing=tuple(outgoing[node.id]),
        )

    return ExecutionGraph(graph_nodes, tuple(dropped))


def validate_workflow(workflow: WorkflowDefinition, known_types: Optional[Iterable[str]] = None) -> ValidationResult:
    """
    Check a workflow for structural problems without raising.

    Errors describe workflows that cannot run at all; warnings describe
    state the engine tolerates.

    Args:
        workflow: The workflow to validate
        known_types: Node types with a registered executor, if known

    Returns:
        ValidationResult: Validation results with errors and warnings
    """
    errors: List[str] = []
    warnings: List[str] = []

    node_ids = [node.id for node in workflow.nodes]
    duplicates = sorted({node_id for node_id in node_ids if node_ids.count(node_id) > 1})
    if duplicates:
        errors.append(f"Duplicate node ids: {', '.join(duplicates)}")

    if not workflow.nodes:
        errors.append("Workflow contains no nodes")

    graph = build_execution_graph(workflow.nodes, workflow.edges)

    for edge in graph.dropped_edges:
        warnings.append(
            f"Edge '{edge.id or ''}' references unknown node(s): {edge.source} -> {edge.target}"
        )

    if known_types is not None:
        known = set(known_types)
        unknown = sorted({node.type for node in workflow.nodes if node.type not in known})
        if unknown:
            warnings.append(f"No executor registered for node type(s): {', '.join(unknown)}")

    start_nodes = graph.start_nodes()
    if workflow.nodes and not start_nodes:
        errors.append("No starting nodes found in workflow")

    if _has_cycles(graph):
        warnings.append("Workflow contains cycles; nodes on a cycle execute at most once per run")

    if start_nodes:
        unreachable = set(graph) - _reachable_from(graph, start_nodes)
        if unreachable:
            warnings.append(f"Unreachable nodes detected: {', '.join(sorted(unreachable))}")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def _reachable_from(graph: ExecutionGraph, start_nodes: List[str]) -> Set[str]:
    """Find all nodes reachable from the start nodes."""
    reachable = set(start_nodes)
    queue = list(start_nodes)
    while queue:
        current = queue.pop(0)
        for neighbor in graph.successors(current):
            if neighbor not in reachable:
                reachable.add(neighbor)
                queue.append(neighbor)
    return reachable


def _has_cycles(graph: ExecutionGraph) -> bool:
    """Check if the graph contains cycles using an iterative DFS."""
    visited: Set[str] = set()
    on_stack: Set[str] = set()

    for root in graph:
        if root in visited:
            continue
        stack = [(root, iter(graph.successors(root)))]
        visited.add(root)
        on_stack.add(root)
        while stack:
            node_id, neighbors = stack[-1]
            advanced = False
            for neighbor in neighbors:
                if neighbor in on_stack:
                    return True
                if neighbor not in visited:
                    visited.add(neighbor)
                    on_stack.add(neighbor)
                    stack.append((neighbor, iter(graph.successors(neighbor))))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                on_stack.discard(node_id)

    return False
