"""Persistence of run records."""

import json
from typing import Any, Callable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..storage.database import SessionLocal, get_database_engine
from ..storage.models import RunModel, RunLogModel, NodeExecutionModel
from ..models.core import (
    LogEntry, NodeExecutionRecord, NodeExecutionStatus, Run, RunError, RunStatus, LogLevel
)
from .exceptions import NotFoundError, StorageError
from .logging import get_logger

logger = get_logger(__name__)


def to_json_value(value: Any) -> Any:
    """Reduce a value to what a JSON column can hold."""
    if value is None:
        return None
    return json.loads(json.dumps(value, default=str))


class RunStore:
    """Reads and writes Run records, including their logs and node executions."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            get_database_engine()
            session_factory = SessionLocal
        self._session_factory = session_factory
        logger.info("RunStore initialized")

    def create_run(self, run: Run) -> Run:
        """
        Insert a new run record.

        Args:
            run: Run to insert, normally in pending status

        Returns:
            The same run

        Raises:
            StorageError: If the insert fails
        """
        db = self._session_factory()
        try:
            db.add(self._to_model(run))
            db.commit()
            logger.info(f"Created run {run.id} for workflow {run.workflow_id}")
            return run
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to create run: {str(e)}", operation="create_run", table="runs")
        finally:
            db.close()

    def save_run(self, run: Run) -> None:
        """
        Write the full run record.

        The header row is updated and the log and node-execution rows are
        rewritten in order, so saving the same run twice is harmless.

        Raises:
            StorageError: If the write fails
        """
        db = self._session_factory()
        try:
            run_model = db.get(RunModel, run.id)
            if run_model is None:
                db.add(self._to_model(run))
            else:
                self._apply_header(run_model, run)
                db.query(RunLogModel).filter(RunLogModel.run_id == run.id).delete(synchronize_session=False)
                db.query(NodeExecutionModel).filter(NodeExecutionModel.run_id == run.id).delete(synchronize_session=False)
                db.add_all(self._log_rows(run))
                db.add_all(self._execution_rows(run))

            db.commit()
            logger.debug(f"Saved run {run.id} ({run.status.value})")
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to save run {run.id}: {str(e)}", operation="save_run", table="runs")
        finally:
            db.close()

    def get_run(self, run_id: str) -> Run:
        """
        Load a run with its logs and node executions.

        Raises:
            NotFoundError: If the run does not exist
            StorageError: If the read fails
        """
        db = self._session_factory()
        try:
            run_model = db.get(RunModel, run_id)
            if run_model is None:
                raise NotFoundError("Run", run_id, operation="get_run", table="runs")
            return self._from_model(run_model)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load run {run_id}: {str(e)}", operation="get_run", table="runs")
        finally:
            db.close()

    def list_runs(self, workflow_id: Optional[str] = None, limit: int = 50) -> List[Run]:
        """List runs, newest first, optionally for one workflow."""
        db = self._session_factory()
        try:
            query = db.query(RunModel)
            if workflow_id:
                query = query.filter(RunModel.workflow_id == workflow_id)
            models = query.order_by(RunModel.created_at.desc()).limit(limit).all()
            return [self._from_model(model) for model in models]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list runs: {str(e)}", operation="list_runs", table="runs")
        finally:
            db.close()

    def _to_model(self, run: Run) -> RunModel:
        run_model = RunModel(id=run.id, workflow_id=run.workflow_id, created_at=run.created_at)
        self._apply_header(run_model, run)
        run_model.logs = self._log_rows(run)
        run_model.node_executions = self._execution_rows(run)
        return run_model

    @staticmethod
    def _apply_header(run_model: RunModel, run: Run) -> None:
        run_model.status = RunStatus(run.status).value
        run_model.input = to_json_value(run.input)
        run_model.output = to_json_value(run.output)
        run_model.error = run.error.model_dump() if run.error else None
        run_model.executed_by = run.executed_by
        run_model.started_at = run.started_at
        run_model.finished_at = run.finished_at
        run_model.duration = run.duration

    @staticmethod
    def _log_rows(run: Run) -> List[RunLogModel]:
        return [
            RunLogModel(
                run_id=run.id,
                seq=index,
                level=LogLevel(entry.level).value,
                message=entry.message,
                node_id=entry.node_id,
                timestamp=entry.timestamp,
                data=to_json_value(entry.data),
            )
            for index, entry in enumerate(run.logs)
        ]

    @staticmethod
    def _execution_rows(run: Run) -> List[NodeExecutionModel]:
        return [
            NodeExecutionModel(
                run_id=run.id,
                seq=index,
                node_id=record.node_id,
                status=NodeExecutionStatus(record.status).value,
                started_at=record.started_at,
                finished_at=record.finished_at,
                input=to_json_value(record.input),
                output=to_json_value(record.output),
                error=record.error,
            )
            for index, record in enumerate(run.node_executions)
        ]

    @staticmethod
    def _from_model(run_model: RunModel) -> Run:
        return Run(
            id=run_model.id,
            workflow_id=run_model.workflow_id,
            status=RunStatus(run_model.status),
            created_at=run_model.created_at,
            started_at=run_model.started_at,
            finished_at=run_model.finished_at,
            duration=run_model.duration,
            input=run_model.input if run_model.input is not None else {},
            output=run_model.output if run_model.output is not None else {},
            error=RunError(**run_model.error) if run_model.error else None,
            executed_by=run_model.executed_by,
            logs=[
                LogEntry(
                    level=LogLevel(row.level),
                    message=row.message,
                    node_id=row.node_id,
                    timestamp=row.timestamp,
                    data=row.data,
                )
                for row in run_model.logs
            ],
            node_executions=[
                NodeExecutionRecord(
                    node_id=row.node_id,
                    status=NodeExecutionStatus(row.status),
                    started_at=row.started_at,
                    finished_at=row.finished_at,
                    input=row.input,
                    output=row.output,
                    error=row.error,
                )
                for row in run_model.node_executions
            ],
        )
