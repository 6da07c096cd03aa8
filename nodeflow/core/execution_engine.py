"""Execution Engine hosting workflow runs on a thread pool."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, Future, wait as wait_futures
from typing import Any, Dict, List, Optional

from ..models.core import Run, RunStatus, WorkflowDefinition
from .event_publisher import EventPublisher
from .exceptions import ExecutionEngineError, RunStateError
from .execution_context import ExecutionContext
from .executor_registry import ExecutorRegistry
from .graph_builder import build_execution_graph
from .logging import get_logger, set_logging_context, clear_logging_context
from .run_lifecycle import RunLifecycleManager
from .run_store import RunStore
from .scheduler import TraversalScheduler

logger = get_logger(__name__)


class ExecutionEngine:
    """Runs workflows in the background, one worker thread per run.

    Every run works on its own deep copy of the workflow and its own
    execution context; the only shared pieces are the read-only registry,
    the run store and the event publisher.
    """

    def __init__(
        self,
        registry: ExecutorRegistry,
        run_store: Optional[RunStore] = None,
        publisher: Optional[EventPublisher] = None,
        max_concurrent_runs: int = 10
    ):
        """Initialize the execution engine.

        Args:
            registry: Executors available to the runs
            run_store: Store used to persist run records; runs stay in memory when None
            publisher: Event publisher for status, log and error events
            max_concurrent_runs: Size of the worker pool
        """
        self.registry = registry
        self.run_store = run_store
        self.publisher = publisher or EventPublisher()
        self.scheduler = TraversalScheduler(registry)
        self.lifecycle = RunLifecycleManager(run_store, self.publisher)

        self._executor = ThreadPoolExecutor(max_workers=max_concurrent_runs, thread_name_prefix="nodeflow-run")
        self._active_runs: Dict[str, Future] = {}
        self._lock = threading.RLock()
        self._max_concurrent_runs = max_concurrent_runs

        logger.info(f"ExecutionEngine initialized with max_concurrent_runs={max_concurrent_runs}")

    def submit_workflow(self, workflow: WorkflowDefinition, run_input: Any = None, executed_by: Optional[str] = None) -> Run:
        """
        Create a pending run for a workflow, persist it and start it.

        Args:
            workflow: Workflow to execute
            run_input: Input handed to the start nodes
            executed_by: Identity that initiated the run

        Returns:
            Snapshot of the pending run as it was created

        Raises:
            ExecutionEngineError: If the workflow has no id or the run cannot be started
        """
        if not workflow.id:
            raise ExecutionEngineError("Workflow must be stored before it can run")

        run = Run(workflow_id=workflow.id, input=run_input if run_input is not None else {}, executed_by=executed_by)
        if self.run_store is not None:
            self.run_store.create_run(run)

        snapshot = run.model_copy(deep=True)
        try:
            self.start_run(workflow, run)
        except (ExecutionEngineError, RunStateError) as e:
            # The stored run must not stay pending
            self.lifecycle.fail(run, e)
            self.lifecycle.finalize(run)
            raise
        return snapshot

    def start_run(self, workflow: WorkflowDefinition, run: Run) -> Future:
        """
        Start executing a pending run in the background.

        The workflow is copied here, so later edits to the stored definition
        do not reach the running instance.

        Args:
            workflow: Workflow definition to execute
            run: Pending run record, mutated in place by the worker

        Returns:
            Future resolving to the finished Run

        Raises:
            RunStateError: If the run is not pending
            ExecutionEngineError: If the engine has been shut down
        """
        self._ensure_pending(run)
        snapshot = workflow.model_copy(deep=True)

        with self._lock:
            if run.id in self._active_runs:
                raise ExecutionEngineError(f"Run {run.id} is already active", run_id=run.id, workflow_id=workflow.id)
            try:
                future = self._executor.submit(self.execute_run, snapshot, run)
            except RuntimeError as e:
                raise ExecutionEngineError(f"Failed to start run: {str(e)}", run_id=run.id, workflow_id=workflow.id)
            self._active_runs[run.id] = future

        future.add_done_callback(lambda _: self._cleanup_run(run.id))
        logger.info(f"Started run {run.id} for workflow {workflow.id}")
        return future

    def execute_run(self, workflow: WorkflowDefinition, run: Run) -> Run:
        """
        Execute a pending run to completion in the calling thread.

        Failures of any kind end as a failed run; this method only raises
        when the run was not pending to begin with.

        Args:
            workflow: Workflow definition to execute
            run: Pending run record

        Returns:
            The finalized run
        """
        self._ensure_pending(run)
        started_clock = time.monotonic()
        set_logging_context(run_id=run.id, workflow_id=workflow.id)

        context: Optional[ExecutionContext] = None
        try:
            self.lifecycle.start(run)

            context = ExecutionContext(run, self.publisher)
            context.add_log("info", "Workflow execution started")

            graph = build_execution_graph(workflow.nodes, workflow.edges)
            output = self.scheduler.run(
                graph,
                context,
                run.input,
                on_record=lambda record: self.lifecycle.record_node_execution(run, record)
            )

            self.lifecycle.succeed(run, output)
            context.add_log("info", "Workflow execution completed successfully")

        except Exception as e:
            logger.error(f"Run {run.id} failed: {str(e)}")
            node_id = getattr(e, "node_id", None)
            if context is not None:
                context.add_log("error", f"Workflow execution failed: {getattr(e, 'message', str(e))}", node_id)
            if not run.status.is_terminal:
                self.lifecycle.fail(run, e, node_id=node_id)

        finally:
            try:
                self.lifecycle.finalize(run, started_clock)
            except RunStateError as e:
                logger.error(f"Could not finalize run {run.id}: {e.message}")
            clear_logging_context()

        return run

    def wait(self, run_id: str, timeout: Optional[float] = None) -> Optional[Run]:
        """Block until an active run finishes. Returns None if the run is not active."""
        with self._lock:
            future = self._active_runs.get(run_id)
        if future is None:
            return None
        return future.result(timeout=timeout)

    def wait_all(self, timeout: Optional[float] = None) -> None:
        """Block until every currently active run finishes."""
        with self._lock:
            futures = list(self._active_runs.values())
        wait_futures(futures, timeout=timeout)

    def get_active_runs(self) -> List[str]:
        """Ids of runs that have been started and not yet finished."""
        with self._lock:
            return list(self._active_runs.keys())

    def is_run_active(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._active_runs

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            active = len(self._active_runs)
        return {
            "active_runs": active,
            "max_concurrent_runs": self._max_concurrent_runs,
            "registered_node_types": len(self.registry.list_types()),
        }

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting runs and optionally wait for active ones to finish.

        In-flight runs cannot be cancelled; they always run to completion.
        """
        try:
            self._executor.shutdown(wait=wait)
            logger.info("ExecutionEngine shutdown completed")
        except Exception as e:
            logger.error(f"Error during ExecutionEngine shutdown: {str(e)}")

    def _cleanup_run(self, run_id: str) -> None:
        with self._lock:
            self._active_runs.pop(run_id, None)

    @staticmethod
    def _ensure_pending(run: Run) -> None:
        if run.status != RunStatus.PENDING or run.finished_at is not None:
            raise RunStateError(
                f"Run {run.id} must be pending to execute, found {run.status.value}",
                run_id=run.id,
                operation="execute"
            )
