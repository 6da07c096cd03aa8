"""Pytest configuration and fixtures."""

import pytest
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from nodeflow.core.event_publisher import EventPublisher, InMemoryEventChannel
from nodeflow.core.execution_context import ExecutionContext
from nodeflow.core.execution_engine import ExecutionEngine
from nodeflow.core.executor_registry import ExecutorRegistry
from nodeflow.core.run_store import RunStore
from nodeflow.core.workflow_store import WorkflowStore
from nodeflow.models.core import EdgeDefinition, NodeDefinition, Run, WorkflowDefinition
from nodeflow.storage import models  # noqa: F401  registers the mapped classes
from nodeflow.storage.database import Base

NodeSpec = Union[Tuple[str, str], Tuple[str, str, Dict[str, Any]]]
EdgeSpec = Union[Tuple[str, str], Tuple[str, str, Optional[str]]]


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a temporary SQLite database file."""
    db_path = tmp_path / "nodeflow_test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    engine.dispose()


@pytest.fixture
def run_store(session_factory):
    return RunStore(session_factory=session_factory)


@pytest.fixture
def workflow_store(session_factory):
    return WorkflowStore(session_factory=session_factory)


@pytest.fixture
def registry():
    """Registry with every built-in executor and a short HTTP timeout."""
    return ExecutorRegistry.default(http_timeout_ms=2000)


@pytest.fixture
def channel():
    """Channel recording every published event."""
    return InMemoryEventChannel()


@pytest.fixture
def publisher(channel):
    return EventPublisher([channel])


@pytest.fixture
def engine(registry, run_store, publisher):
    """Execution engine wired to the temporary database and recording channel."""
    execution_engine = ExecutionEngine(registry, run_store=run_store, publisher=publisher, max_concurrent_runs=4)
    yield execution_engine
    execution_engine.shutdown(wait=True)


def build_workflow(
    nodes: Sequence[NodeSpec],
    edges: Sequence[EdgeSpec] = (),
    name: str = "Test workflow",
    workflow_id: Optional[str] = None
) -> WorkflowDefinition:
    """Build a workflow from (id, type[, data]) and (source, target[, handle]) tuples."""
    node_defs: List[NodeDefinition] = []
    for node_spec in nodes:
        node_id, node_type = node_spec[0], node_spec[1]
        data = node_spec[2] if len(node_spec) > 2 else {}
        node_defs.append(NodeDefinition(id=node_id, type=node_type, data=data))

    edge_defs: List[EdgeDefinition] = []
    for index, edge_spec in enumerate(edges):
        source, target = edge_spec[0], edge_spec[1]
        handle = edge_spec[2] if len(edge_spec) > 2 else None
        edge_defs.append(EdgeDefinition(id=f"e{index}", source=source, target=target, source_handle=handle))

    return WorkflowDefinition(id=workflow_id, name=name, nodes=node_defs, edges=edge_defs)


@pytest.fixture
def workflow_builder():
    """Build an unsaved workflow definition."""
    return build_workflow


@pytest.fixture
def make_workflow(workflow_store):
    """Build a workflow and store it so runs can reference it."""
    def factory(nodes: Sequence[NodeSpec], edges: Sequence[EdgeSpec] = (), name: str = "Test workflow") -> WorkflowDefinition:
        return workflow_store.create_workflow(build_workflow(nodes, edges, name=name))
    return factory


@pytest.fixture
def make_run(run_store):
    """Create and persist a pending run for a workflow."""
    def factory(workflow: WorkflowDefinition, run_input: Any = None) -> Run:
        run = Run(workflow_id=workflow.id, input=run_input if run_input is not None else {})
        return run_store.create_run(run)
    return factory


@pytest.fixture
def context():
    """Execution context for a standalone run, without a publisher."""
    return ExecutionContext(Run(workflow_id="wf-test"))
