"""Run state machine and persistence milestones."""

import time
import traceback
from typing import Any, Optional

from ..models.core import NodeExecutionRecord, Run, RunError, RunStatus, utc_now
from .event_publisher import EventPublisher
from .exceptions import RunStateError, StorageError, WorkflowEngineError
from .logging import get_logger
from .run_store import RunStore

logger = get_logger(__name__)


class RunLifecycleManager:
    """Owns the pending -> running -> success/failed transitions of a run.

    The run is persisted when it enters running and again when it is
    finalized. Status events are published at the same two points and the
    error event once on failure. A finalized run is read-only.
    """

    def __init__(self, run_store: Optional[RunStore] = None, publisher: Optional[EventPublisher] = None):
        self.run_store = run_store
        self.publisher = publisher or EventPublisher()

    def start(self, run: Run) -> None:
        """
        Move a pending run to running and persist it.

        Raises:
            RunStateError: If the run is not pending
            StorageError: If the run cannot be persisted
        """
        self._ensure_mutable(run, "start")
        if run.status != RunStatus.PENDING:
            raise RunStateError(
                f"Cannot start run {run.id} from status {run.status.value}",
                run_id=run.id,
                operation="start"
            )

        run.status = RunStatus.RUNNING
        run.started_at = utc_now()
        self._persist(run)

        self.publisher.publish_status(run.id, RunStatus.RUNNING)
        logger.info(f"Run {run.id} started")

    def record_node_execution(self, run: Run, record: NodeExecutionRecord) -> None:
        """Append a finished node execution record to the run."""
        self._ensure_mutable(run, "record_node_execution")
        run.node_executions.append(record)

    def succeed(self, run: Run, output: Any) -> None:
        """
        Mark a running run as successful.

        Raises:
            RunStateError: If the run is not running
        """
        self._ensure_mutable(run, "succeed")
        if run.status != RunStatus.RUNNING:
            raise RunStateError(
                f"Cannot mark run {run.id} successful from status {run.status.value}",
                run_id=run.id,
                operation="succeed"
            )

        run.status = RunStatus.SUCCESS
        run.output = output if output is not None else {}

    def fail(self, run: Run, error: Any, node_id: Optional[str] = None) -> None:
        """
        Mark a run as failed and publish the error message.

        Args:
            run: The run to fail, pending or running
            error: Exception or message describing the failure
            node_id: Failing node, when the failure belongs to one

        Raises:
            RunStateError: If the run is already in a terminal status
        """
        self._ensure_mutable(run, "fail")
        if run.status.is_terminal:
            raise RunStateError(
                f"Cannot fail run {run.id} from status {run.status.value}",
                run_id=run.id,
                operation="fail"
            )

        if isinstance(error, BaseException):
            message = error.message if isinstance(error, WorkflowEngineError) else str(error)
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            if node_id is None:
                node_id = getattr(error, "node_id", None)
        else:
            message = str(error)
            stack = None

        run.status = RunStatus.FAILED
        run.error = RunError(message=message or type(error).__name__, stack=stack, node_id=node_id)

        self.publisher.publish_error(run.id, run.error.message)
        logger.warning(f"Run {run.id} failed: {run.error.message}")

    def finalize(self, run: Run, started_clock: Optional[float] = None) -> None:
        """
        Close the run: set finished_at and duration, persist, publish the final status.

        Runs exactly once per run. A storage failure here is logged, not raised,
        so the terminal event is still published.

        Args:
            run: Run in a terminal status
            started_clock: ``time.monotonic()`` value taken when execution began

        Raises:
            RunStateError: If the run was already finalized or is not terminal
        """
        self._ensure_mutable(run, "finalize")
        if not run.status.is_terminal:
            raise RunStateError(
                f"Cannot finalize run {run.id} in status {run.status.value}",
                run_id=run.id,
                operation="finalize"
            )

        run.finished_at = utc_now()
        if started_clock is not None:
            run.duration = int((time.monotonic() - started_clock) * 1000)
        else:
            reference = run.started_at or run.created_at
            run.duration = int((run.finished_at - reference).total_seconds() * 1000)

        try:
            self._persist(run)
        except StorageError as e:
            logger.error(f"Failed to persist finalized run {run.id}: {e.message}")

        self.publisher.publish_status(run.id, run.status, duration=run.duration)
        logger.info(f"Run {run.id} finished with status {run.status.value} in {run.duration}ms")

    def _persist(self, run: Run) -> None:
        if self.run_store is not None:
            self.run_store.save_run(run)

    @staticmethod
    def _ensure_mutable(run: Run, operation: str) -> None:
        if run.finished_at is not None:
            raise RunStateError(f"Run {run.id} is already finalized", run_id=run.id, operation=operation)
