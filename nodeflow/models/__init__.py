"""Data models for the workflow engine."""

from .core import (
    RunStatus,
    NodeExecutionStatus,
    LogLevel,
    NodeType,
    ValidationResult,
    Position,
    NodeDefinition,
    EdgeDefinition,
    RetryPolicy,
    ScheduleSettings,
    WorkflowSettings,
    WorkflowDefinition,
    LogEntry,
    NodeExecutionRecord,
    RunError,
    Run,
    WorkflowSummary,
    utc_now,
)

__all__ = [
    "RunStatus",
    "NodeExecutionStatus",
    "LogLevel",
    "NodeType",
    "ValidationResult",
    "Position",
    "NodeDefinition",
    "EdgeDefinition",
    "RetryPolicy",
    "ScheduleSettings",
    "WorkflowSettings",
    "WorkflowDefinition",
    "LogEntry",
    "NodeExecutionRecord",
    "RunError",
    "Run",
    "WorkflowSummary",
    "utc_now",
]
