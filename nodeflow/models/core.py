"""Core Pydantic models for the workflow engine."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class EditorModel(BaseModel):
    """Base model accepting both the editor's camelCase keys and snake_case names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RunStatus(str, Enum):
    """Enumeration of run statuses."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.FAILED, RunStatus.CANCELLED)


class NodeExecutionStatus(str, Enum):
    """Status of a single node execution record."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class LogLevel(str, Enum):
    """Levels accepted on run log entries."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"


class NodeType(str, Enum):
    """Closed set of node kinds the engine knows how to execute."""
    MANUAL_TRIGGER = "manual-trigger"
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"
    CONDITION = "condition"
    SWITCH = "switch"
    TRANSFORM = "transform"
    CODE = "code"
    JSON_PARSE = "json-parse"
    JSON_STRINGIFY = "json-stringify"
    LOG = "log"
    DELAY = "delay"
    HTTP_REQUEST = "http-request"
    EMAIL = "email"
    DATABASE_QUERY = "database-query"
    MONGODB = "mongodb"
    SLACK = "slack"

    @property
    def is_trigger(self) -> bool:
        return self in (NodeType.MANUAL_TRIGGER, NodeType.WEBHOOK, NodeType.SCHEDULE)


class ValidationResult(BaseModel):
    """Result of workflow validation."""
    is_valid: bool = Field(..., description="Whether the workflow is valid")
    errors: List[str] = Field(default_factory=list, description="List of validation errors")
    warnings: List[str] = Field(default_factory=list, description="List of validation warnings")


class Position(EditorModel):
    """Canvas position of a node. Not used by the engine."""
    x: float = 0.0
    y: float = 0.0


class NodeDefinition(EditorModel):
    """Definition of a workflow node."""
    id: str = Field(..., description="Unique identifier for the node within its workflow")
    type: str = Field(..., description="Node kind, selects the executor")
    position: Position = Field(default_factory=Position, description="Editor position")
    data: Dict[str, Any] = Field(default_factory=dict, description="Operation-specific parameters")

    @field_validator('id', 'type')
    @classmethod
    def validate_not_empty(cls, value):
        """Ensure identifiers are not blank."""
        if not value or not value.strip():
            raise ValueError("Node id and type cannot be empty")
        return value.strip()


class EdgeDefinition(EditorModel):
    """Definition of an edge between workflow nodes."""
    id: Optional[str] = Field(None, description="Edge identifier")
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    source_handle: Optional[str] = Field(None, description="Output port on the source node")
    target_handle: Optional[str] = Field(None, description="Input port on the target node")
    label: Optional[str] = Field(None, description="Edge label")
    data: Dict[str, Any] = Field(default_factory=dict, description="Editor data attached to the edge")


class RetryPolicy(EditorModel):
    """Retry settings. Advisory only, the engine never retries."""
    enabled: bool = False
    max_retries: int = 3
    retry_delay: int = 1000


class ScheduleSettings(EditorModel):
    """Cron schedule settings. Advisory only."""
    enabled: bool = False
    cron: Optional[str] = None


class WorkflowSettings(EditorModel):
    """Workflow-level settings. None of these are enforced by the engine."""
    concurrency: int = Field(default=1, ge=1)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    timeout: int = Field(default=300000, description="Run timeout in milliseconds")


class WorkflowDefinition(EditorModel):
    """Complete definition of a workflow graph."""
    id: Optional[str] = Field(None, description="Workflow identifier, assigned on creation")
    name: str = Field(..., description="Name of the workflow")
    description: str = Field(default="", description="Description of the workflow")
    nodes: List[NodeDefinition] = Field(default_factory=list, description="Nodes in declaration order")
    edges: List[EdgeDefinition] = Field(default_factory=list, description="Edges connecting nodes")
    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)
    version: int = Field(default=1, description="Optimistic version counter")
    is_active: bool = True

    @field_validator('name')
    @classmethod
    def validate_name_not_empty(cls, name):
        """Ensure workflow name is not empty."""
        if not name or not name.strip():
            raise ValueError("Workflow name cannot be empty")
        return name.strip()


class LogEntry(EditorModel):
    """A single run log line."""
    level: LogLevel = LogLevel.INFO
    message: str
    node_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    data: Optional[Any] = None


class NodeExecutionRecord(EditorModel):
    """Record of one dequeued node."""
    node_id: str
    status: NodeExecutionStatus = NodeExecutionStatus.RUNNING
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    error: Optional[str] = None


class RunError(EditorModel):
    """Error details of a failed run."""
    message: str
    stack: Optional[str] = None
    node_id: Optional[str] = None


class Run(EditorModel):
    """One execution attempt of a workflow."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    status: RunStatus = RunStatus.PENDING
    created_at: datetime = Field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, description="Wall-clock duration in milliseconds")
    input: Any = Field(default_factory=dict)
    output: Any = Field(default_factory=dict)
    error: Optional[RunError] = None
    logs: List[LogEntry] = Field(default_factory=list)
    node_executions: List[NodeExecutionRecord] = Field(default_factory=list)
    executed_by: Optional[str] = None


class WorkflowSummary(EditorModel):
    """Summary information about a stored workflow."""
    id: str
    name: str
    description: str = ""
    node_count: int
    version: int
    created_at: Optional[datetime] = None
