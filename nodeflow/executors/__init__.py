"""Built-in node executors."""

from ..models.core import NodeType
from .base import ExecutorParams, input_data, node_executor
from .data import json_parse, json_stringify, run_user_code, transform
from .integrations import database_query, mongodb, send_email, slack_message
from .logic import compare, condition, lookup_path, switch
from .network import make_http_request_executor
from .triggers import manual_trigger, schedule_trigger, webhook_trigger
from .utilities import delay, log_message


def register_builtin_executors(registry, http_timeout_ms: int = 30000) -> None:
    """
    Register an executor for every NodeType member.

    Args:
        registry: ExecutorRegistry to populate
        http_timeout_ms: Default timeout for http-request nodes
    """
    builtin = {
        NodeType.MANUAL_TRIGGER: (manual_trigger, "Start a run manually"),
        NodeType.WEBHOOK: (webhook_trigger, "Start a run from an incoming webhook"),
        NodeType.SCHEDULE: (schedule_trigger, "Start a run on a cron schedule"),
        NodeType.CONDITION: (condition, "Route on a comparison of two values"),
        NodeType.SWITCH: (switch, "Route to the first matching case"),
        NodeType.TRANSFORM: (transform, "Reshape data with a Python expression"),
        NodeType.CODE: (transform, "Run a Python code block"),
        NodeType.JSON_PARSE: (json_parse, "Parse a JSON string"),
        NodeType.JSON_STRINGIFY: (json_stringify, "Serialize data to JSON"),
        NodeType.LOG: (log_message, "Write a run log entry"),
        NodeType.DELAY: (delay, "Wait for a number of milliseconds"),
        NodeType.HTTP_REQUEST: (make_http_request_executor(http_timeout_ms), "Call an HTTP endpoint"),
        NodeType.EMAIL: (send_email, "Send an email (simulated)"),
        NodeType.DATABASE_QUERY: (database_query, "Run a database query (simulated)"),
        NodeType.MONGODB: (mongodb, "Run a MongoDB operation (simulated)"),
        NodeType.SLACK: (slack_message, "Post a Slack message (simulated)"),
    }

    for node_type, (executor, description) in builtin.items():
        registry.register(node_type, executor, description)


__all__ = [
    "ExecutorParams",
    "compare",
    "input_data",
    "lookup_path",
    "make_http_request_executor",
    "node_executor",
    "register_builtin_executors",
    "run_user_code",
]
