"""Per-run execution context."""

from typing import Any, Dict, List, Optional

from ..models.core import LogEntry, LogLevel, Run
from .event_publisher import EventPublisher
from .exceptions import RunStateError
from .executor_registry import ExecutorResult


class ExecutionContext:
    """Mutable state owned by exactly one run.

    Holds the captured output of every node that succeeded and the run's
    log buffer. The context is created when a run starts and dropped when
    it finishes; it is never shared between runs.
    """

    def __init__(self, run: Run, publisher: Optional[EventPublisher] = None):
        self.run = run
        self.run_id = run.id
        self.publisher = publisher
        self.node_outputs: Dict[str, ExecutorResult] = {}
        self.logs: List[LogEntry] = []

    def add_log(self, level: Any, message: str, node_id: Optional[str] = None, data: Any = None) -> LogEntry:
        """
        Append a log entry to the context and the run, and publish it.

        Args:
            level: LogLevel or its string value; unknown levels fall back to info
            message: Log message
            node_id: Node that emitted the entry, if any
            data: Optional structured payload

        Returns:
            The appended LogEntry

        Raises:
            RunStateError: If the run has already been finalized
        """
        if self.run.finished_at is not None:
            raise RunStateError(f"Run {self.run_id} is finished; cannot append logs", run_id=self.run_id, operation="add_log")

        entry = LogEntry(level=_coerce_level(level), message=str(message), node_id=node_id, data=data)
        self.logs.append(entry)
        self.run.logs.append(entry)

        if self.publisher is not None:
            self.publisher.publish_log(self.run_id, entry)

        return entry

    def record_output(self, node_id: str, result: ExecutorResult) -> None:
        self.node_outputs[node_id] = result

    def get_output(self, node_id: str) -> Optional[ExecutorResult]:
        return self.node_outputs.get(node_id)


def _coerce_level(level: Any) -> LogLevel:
    if isinstance(level, LogLevel):
        return level
    try:
        return LogLevel(str(level).lower())
    except ValueError:
        # Editors occasionally send "warning"
        if str(level).lower() == "warning":
            return LogLevel.WARN
        return LogLevel.INFO
