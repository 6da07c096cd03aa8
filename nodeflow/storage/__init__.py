"""Database models and storage layer."""

from .database import Base, get_db, init_database, create_tables, drop_tables, reset_database_engine
from .models import WorkflowModel, RunModel, RunLogModel, NodeExecutionModel

__all__ = [
    "Base",
    "get_db",
    "init_database",
    "create_tables",
    "drop_tables",
    "reset_database_engine",
    "WorkflowModel",
    "RunModel",
    "RunLogModel",
    "NodeExecutionModel",
]
