"""FastAPI REST endpoints for nodeflow."""

import json
from typing import Any, Dict, List, NoReturn, Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from ..core.execution_engine import ExecutionEngine
from ..core.executor_registry import ExecutorRegistry
from ..core.graph_builder import validate_workflow
from ..core.middleware import status_code_for_error
from ..core.run_store import RunStore
from ..core.websocket_manager import WebSocketManager
from ..core.workflow_store import WorkflowStore
from ..core.exceptions import APIError, WorkflowEngineError, create_error_response
from ..models.core import (
    EditorModel,
    Run,
    ValidationResult,
    WorkflowDefinition,
    WorkflowSummary,
    utc_now
)
from ..core.logging import get_logger

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/api/v1", tags=["workflow"])

# Global instances (initialized by the application factory)
_workflow_store: Optional[WorkflowStore] = None
_run_store: Optional[RunStore] = None
_execution_engine: Optional[ExecutionEngine] = None
_registry: Optional[ExecutorRegistry] = None
_websocket_manager: Optional[WebSocketManager] = None
_run_list_limit = 50


def init_dependencies(
    workflow_store: WorkflowStore,
    run_store: RunStore,
    execution_engine: ExecutionEngine,
    registry: ExecutorRegistry,
    websocket_manager: Optional[WebSocketManager] = None,
    run_list_limit: int = 50
):
    """Initialize the global dependencies."""
    global _workflow_store, _run_store, _execution_engine, _registry, _websocket_manager, _run_list_limit
    _workflow_store = workflow_store
    _run_store = run_store
    _execution_engine = execution_engine
    _registry = registry
    _websocket_manager = websocket_manager
    _run_list_limit = run_list_limit


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{name} not initialized"
        )
    return component


def get_workflow_store() -> WorkflowStore:
    """Dependency to get the workflow store."""
    return _require(_workflow_store, "Workflow store")


def get_run_store() -> RunStore:
    """Dependency to get the run store."""
    return _require(_run_store, "Run store")


def get_execution_engine() -> ExecutionEngine:
    """Dependency to get the execution engine."""
    return _require(_execution_engine, "Execution engine")


def get_registry() -> ExecutorRegistry:
    """Dependency to get the executor registry."""
    return _require(_registry, "Executor registry")


def _raise_http_error(error: Exception, action: str) -> NoReturn:
    """Translate an exception raised while handling a request into an HTTPException."""
    if isinstance(error, HTTPException):
        raise error
    if isinstance(error, WorkflowEngineError):
        logger.warning(f"Workflow engine error while {action}: {error.message}")
        raise HTTPException(status_code=status_code_for_error(error), detail=create_error_response(error))

    logger.error(f"Unexpected error while {action}: {str(error)}", exc_info=True)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "InternalError",
            "message": f"An unexpected error occurred while {action}",
            "details": {"original_error": str(error)},
            "timestamp": utc_now().isoformat()
        }
    )


# Request/Response models
class RunWorkflowRequest(EditorModel):
    """Request model for starting a run."""
    input: Any = Field(default_factory=dict, description="Input handed to the start nodes")
    executed_by: Optional[str] = Field(None, description="Identity starting the run")


class NodeTypeInfo(BaseModel):
    """A node type the engine can execute."""
    type: str
    description: str = ""


class MessageResponse(BaseModel):
    message: str


# Workflow endpoints

@router.post(
    "/workflows",
    response_model=WorkflowDefinition,
    status_code=status.HTTP_201_CREATED,
    summary="Create a workflow"
)
async def create_workflow(
    workflow: WorkflowDefinition,
    workflow_store: WorkflowStore = Depends(get_workflow_store)
) -> WorkflowDefinition:
    """
    Store a new workflow definition.

    The definition is stored even when validation would report problems,
    so editors can save work in progress.
    """
    try:
        return workflow_store.create_workflow(workflow)
    except Exception as e:
        _raise_http_error(e, "creating the workflow")


@router.get("/workflows", response_model=List[WorkflowSummary], summary="List workflows")
async def list_workflows(workflow_store: WorkflowStore = Depends(get_workflow_store)) -> List[WorkflowSummary]:
    try:
        return workflow_store.list_workflows()
    except Exception as e:
        _raise_http_error(e, "listing workflows")


@router.get("/workflows/{workflow_id}", response_model=WorkflowDefinition, summary="Get a workflow")
async def get_workflow(
    workflow_id: str,
    workflow_store: WorkflowStore = Depends(get_workflow_store)
) -> WorkflowDefinition:
    try:
        return workflow_store.get_workflow(workflow_id)
    except Exception as e:
        _raise_http_error(e, "retrieving the workflow")


@router.put("/workflows/{workflow_id}", response_model=WorkflowDefinition, summary="Replace a workflow")
async def update_workflow(
    workflow_id: str,
    workflow: WorkflowDefinition,
    workflow_store: WorkflowStore = Depends(get_workflow_store)
) -> WorkflowDefinition:
    """Replace a workflow definition; runs already in flight are unaffected."""
    try:
        return workflow_store.update_workflow(workflow_id, workflow)
    except Exception as e:
        _raise_http_error(e, "updating the workflow")


@router.delete("/workflows/{workflow_id}", response_model=MessageResponse, summary="Delete a workflow")
async def delete_workflow(
    workflow_id: str,
    workflow_store: WorkflowStore = Depends(get_workflow_store)
) -> MessageResponse:
    try:
        deleted = workflow_store.delete_workflow(workflow_id)
    except Exception as e:
        _raise_http_error(e, "deleting the workflow")

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "NotFoundError", "message": f"Workflow '{workflow_id}' not found"}
        )
    return MessageResponse(message=f"Workflow '{workflow_id}' deleted")


@router.post(
    "/workflows/{workflow_id}/validate",
    response_model=ValidationResult,
    summary="Validate a stored workflow"
)
async def validate_stored_workflow(
    workflow_id: str,
    workflow_store: WorkflowStore = Depends(get_workflow_store),
    registry: ExecutorRegistry = Depends(get_registry)
) -> ValidationResult:
    try:
        workflow = workflow_store.get_workflow(workflow_id)
        return validate_workflow(workflow, known_types=registry.list_types().keys())
    except Exception as e:
        _raise_http_error(e, "validating the workflow")


# Run endpoints

@router.post(
    "/workflows/{workflow_id}/run",
    response_model=Run,
    status_code=status.HTTP_201_CREATED,
    summary="Start a run",
    description="Create a pending run and execute it in the background"
)
async def run_workflow(
    workflow_id: str,
    request: Optional[RunWorkflowRequest] = None,
    workflow_store: WorkflowStore = Depends(get_workflow_store),
    execution_engine: ExecutionEngine = Depends(get_execution_engine)
) -> Run:
    """
    Start a run of a stored workflow.

    Returns immediately with the pending run; progress is available from
    ``GET /runs/{run_id}`` and the ``/ws/monitor`` WebSocket.
    """
    request = request or RunWorkflowRequest()
    try:
        workflow = workflow_store.get_workflow(workflow_id)
        if not workflow.is_active:
            raise APIError(f"Workflow '{workflow_id}' is not active", status_code=status.HTTP_409_CONFLICT)

        run = execution_engine.submit_workflow(workflow, request.input, executed_by=request.executed_by)
        logger.info(f"Started run {run.id} for workflow {workflow_id}")
        return run
    except Exception as e:
        _raise_http_error(e, "starting the run")


@router.get("/workflows/{workflow_id}/runs", response_model=List[Run], summary="List runs of a workflow")
async def list_workflow_runs(
    workflow_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    workflow_store: WorkflowStore = Depends(get_workflow_store),
    run_store: RunStore = Depends(get_run_store)
) -> List[Run]:
    try:
        workflow_store.get_workflow(workflow_id)
        return run_store.list_runs(workflow_id, limit=limit or _run_list_limit)
    except Exception as e:
        _raise_http_error(e, "listing runs")


@router.get("/runs/{run_id}", response_model=Run, summary="Get a run")
async def get_run(run_id: str, run_store: RunStore = Depends(get_run_store)) -> Run:
    try:
        return run_store.get_run(run_id)
    except Exception as e:
        _raise_http_error(e, "retrieving the run")


@router.get("/node-types", response_model=List[NodeTypeInfo], summary="List executable node types")
async def list_node_types(registry: ExecutorRegistry = Depends(get_registry)) -> List[NodeTypeInfo]:
    return [NodeTypeInfo(type=name, description=description) for name, description in registry.list_types().items()]


@router.get("/metrics", summary="Engine and connection metrics")
async def get_metrics(execution_engine: ExecutionEngine = Depends(get_execution_engine)) -> Dict[str, Any]:
    metrics: Dict[str, Any] = {"engine": execution_engine.get_metrics()}
    if _websocket_manager is not None:
        metrics["websocket"] = _websocket_manager.get_connection_info()
    return metrics


# WebSocket endpoint for real-time monitoring

@router.websocket("/ws/monitor")
async def websocket_monitor(websocket: WebSocket):
    """
    WebSocket endpoint for real-time run monitoring.

    Message format for client messages:
    {
        "action": "subscribe" | "unsubscribe" | "ping" | "get_status",
        "run_id": "run id, or * for every run"
    }

    Message format for run events:
    {
        "event": "run:<id>" | "run:<id>:log" | "run:<id>:error",
        "run_id": "run id",
        "timestamp": "iso_timestamp",
        "data": {...}
    }
    """
    if not _websocket_manager:
        await websocket.close(code=1011, reason="WebSocket monitoring not available")
        return

    manager = _websocket_manager
    connection_id = None
    try:
        connection_id = await manager.connect(websocket)

        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except json.JSONDecodeError:
                await manager.send_to_connection(connection_id, {
                    "event": "error",
                    "message": "Invalid JSON message format",
                    "timestamp": utc_now().isoformat()
                })
                continue

            if not isinstance(message, dict):
                message = {}
            action = message.get("action")
            run_id = message.get("run_id") or message.get("runId")

            if action == "subscribe" and run_id:
                if not await manager.subscribe_to_run(connection_id, run_id):
                    await manager.send_to_connection(connection_id, {
                        "event": "error",
                        "message": f"Failed to subscribe to run {run_id}",
                        "timestamp": utc_now().isoformat()
                    })

            elif action == "unsubscribe" and run_id:
                if await manager.unsubscribe_from_run(connection_id, run_id):
                    await manager.send_to_connection(connection_id, {
                        "event": "unsubscribed",
                        "run_id": run_id,
                        "timestamp": utc_now().isoformat()
                    })

            elif action == "ping":
                await manager.send_to_connection(connection_id, {
                    "event": "pong",
                    "timestamp": utc_now().isoformat()
                })

            elif action == "get_status":
                await manager.send_to_connection(connection_id, {
                    "event": "status_info",
                    "data": manager.get_connection_info(),
                    "timestamp": utc_now().isoformat()
                })

            else:
                await manager.send_to_connection(connection_id, {
                    "event": "error",
                    "message": f"Unknown action: {action}",
                    "timestamp": utc_now().isoformat()
                })

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected: {connection_id}")
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {str(e)}")
    finally:
        if connection_id:
            await manager.disconnect(connection_id)
