"""SQLAlchemy database models for workflows and runs."""

from sqlalchemy import Column, String, DateTime, Text, JSON, Integer, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from ..models.core import utc_now
from .database import Base


class WorkflowModel(Base):
    """Database model for workflow definitions."""
    __tablename__ = "workflows"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    nodes = Column(JSON, nullable=False, default=list)
    edges = Column(JSON, nullable=False, default=list)
    settings = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    runs = relationship("RunModel", back_populates="workflow", cascade="all, delete-orphan")


class RunModel(Base):
    """Database model for workflow runs."""
    __tablename__ = "runs"

    id = Column(String, primary_key=True)
    workflow_id = Column(String, ForeignKey("workflows.id"), nullable=False, index=True)
    status = Column(String, nullable=False)  # pending, running, success, failed, cancelled
    input = Column(JSON)
    output = Column(JSON)
    error = Column(JSON)  # {message, stack, node_id}
    executed_by = Column(String)
    created_at = Column(DateTime, default=utc_now)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    duration = Column(Integer)  # milliseconds

    workflow = relationship("WorkflowModel", back_populates="runs")
    logs = relationship(
        "RunLogModel",
        back_populates="run",
        order_by="RunLogModel.seq",
        cascade="all, delete-orphan"
    )
    node_executions = relationship(
        "NodeExecutionModel",
        back_populates="run",
        order_by="NodeExecutionModel.seq",
        cascade="all, delete-orphan"
    )


class RunLogModel(Base):
    """Database model for run log entries."""
    __tablename__ = "run_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, ForeignKey("runs.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    level = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    node_id = Column(String)
    timestamp = Column(DateTime, default=utc_now)
    data = Column(JSON)

    run = relationship("RunModel", back_populates="logs")


class NodeExecutionModel(Base):
    """Database model for per-node execution records."""
    __tablename__ = "node_executions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, ForeignKey("runs.id"), nullable=False, index=True)
    seq = Column(Integer, nullable=False)
    node_id = Column(String, nullable=False)
    status = Column(String, nullable=False)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    input = Column(JSON)
    output = Column(JSON)
    error = Column(Text)

    run = relationship("RunModel", back_populates="node_executions")
