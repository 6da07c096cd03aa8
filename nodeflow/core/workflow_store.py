"""Storage of workflow definitions."""

import uuid
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..models.core import WorkflowDefinition, WorkflowSettings, WorkflowSummary, utc_now
from ..storage.database import SessionLocal, get_database_engine
from ..storage.models import WorkflowModel
from .exceptions import NotFoundError, StorageError
from .logging import get_logger

logger = get_logger(__name__)


class WorkflowStore:
    """Creates, reads, updates and deletes workflow definitions.

    Definitions are stored as the editor sends them; structural checks are
    left to ``validate_workflow`` so half-finished workflows can be saved.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            get_database_engine()
            session_factory = SessionLocal
        self._session_factory = session_factory

    def create_workflow(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """
        Store a new workflow and return it with its assigned id.

        Args:
            workflow: The workflow definition to create

        Returns:
            WorkflowDefinition: Stored copy with id and version 1

        Raises:
            StorageError: If storage operation fails
        """
        logger.info(f"Creating new workflow: {workflow.name}")

        stored = workflow.model_copy(update={"id": workflow.id or str(uuid.uuid4()), "version": 1}, deep=True)

        db = self._session_factory()
        try:
            if db.get(WorkflowModel, stored.id) is not None:
                raise StorageError(f"Workflow '{stored.id}' already exists", operation="create_workflow", table="workflows")

            model = WorkflowModel(id=stored.id, created_at=utc_now())
            self._apply(model, stored)
            db.add(model)
            db.commit()

            logger.info(f"Successfully created workflow '{stored.name}' with ID: {stored.id}")
            return stored

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while creating workflow: {str(e)}")
            raise StorageError(f"Failed to store workflow: {str(e)}", operation="create_workflow", table="workflows")
        finally:
            db.close()

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """
        Retrieve a workflow definition by its ID.

        Raises:
            NotFoundError: If the workflow does not exist
            StorageError: If storage operation fails
        """
        db = self._session_factory()
        try:
            model = db.get(WorkflowModel, workflow_id)
            if model is None:
                raise NotFoundError("Workflow", workflow_id, operation="get_workflow", table="workflows")
            return self._from_model(model)
        except SQLAlchemyError as e:
            logger.error(f"Database error while retrieving workflow: {str(e)}")
            raise StorageError(f"Failed to retrieve workflow: {str(e)}", operation="get_workflow", table="workflows")
        finally:
            db.close()

    def list_workflows(self) -> List[WorkflowSummary]:
        """List summaries of all stored workflows, newest first."""
        db = self._session_factory()
        try:
            models = db.query(WorkflowModel).order_by(WorkflowModel.created_at.desc()).all()
            return [
                WorkflowSummary(
                    id=model.id,
                    name=model.name,
                    description=model.description or "",
                    node_count=len(model.nodes or []),
                    version=model.version,
                    created_at=model.created_at,
                )
                for model in models
            ]
        except SQLAlchemyError as e:
            logger.error(f"Database error while listing workflows: {str(e)}")
            raise StorageError(f"Failed to list workflows: {str(e)}", operation="list_workflows", table="workflows")
        finally:
            db.close()

    def update_workflow(self, workflow_id: str, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """
        Replace a stored definition and bump its version.

        Runs already in flight keep the snapshot they started with.

        Raises:
            NotFoundError: If the workflow does not exist
            StorageError: If storage operation fails
        """
        db = self._session_factory()
        try:
            model = db.get(WorkflowModel, workflow_id)
            if model is None:
                raise NotFoundError("Workflow", workflow_id, operation="update_workflow", table="workflows")

            updated = workflow.model_copy(update={"id": workflow_id, "version": (model.version or 0) + 1}, deep=True)
            self._apply(model, updated)
            db.commit()

            logger.info(f"Updated workflow {workflow_id} to version {updated.version}")
            return updated

        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while updating workflow: {str(e)}")
            raise StorageError(f"Failed to update workflow: {str(e)}", operation="update_workflow", table="workflows")
        finally:
            db.close()

    def delete_workflow(self, workflow_id: str) -> bool:
        """
        Delete a workflow together with its runs.

        Returns:
            bool: False if the workflow did not exist
        """
        db = self._session_factory()
        try:
            model = db.get(WorkflowModel, workflow_id)
            if model is None:
                return False
            db.delete(model)
            db.commit()
            logger.info(f"Deleted workflow {workflow_id}")
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database error while deleting workflow: {str(e)}")
            raise StorageError(f"Failed to delete workflow: {str(e)}", operation="delete_workflow", table="workflows")
        finally:
            db.close()

    @staticmethod
    def _apply(model: WorkflowModel, workflow: WorkflowDefinition) -> None:
        model.name = workflow.name
        model.description = workflow.description
        model.nodes = [node.model_dump(mode="json", by_alias=True) for node in workflow.nodes]
        model.edges = [edge.model_dump(mode="json", by_alias=True) for edge in workflow.edges]
        model.settings = workflow.settings.model_dump(mode="json", by_alias=True)
        model.version = workflow.version
        model.is_active = workflow.is_active

    @staticmethod
    def _from_model(model: WorkflowModel) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=model.id,
            name=model.name,
            description=model.description or "",
            nodes=model.nodes or [],
            edges=model.edges or [],
            settings=WorkflowSettings.model_validate(model.settings or {}),
            version=model.version,
            is_active=model.is_active,
        )
