"""nodeflow: a workflow execution engine for node graphs."""

__version__ = "1.0.0"
