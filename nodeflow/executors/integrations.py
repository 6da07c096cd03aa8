"""Stand-ins for external integrations.

These executors record what they would have done in the run log and
succeed. No mail is sent and no external store is contacted.
"""

from typing import Any, Dict, List, Optional
from pydantic import Field

from ..core.executor_registry import ExecutorResult
from .base import ExecutorParams, node_executor


class EmailParams(ExecutorParams):
    to: str = ""
    subject: str = ""
    body: str = ""
    sender: Optional[str] = Field(default=None, alias="from")
    secret_id: Optional[str] = None


class DatabaseQueryParams(ExecutorParams):
    query: str = ""
    parameters: List[Any] = Field(default_factory=list)
    secret_id: Optional[str] = None


class MongoParams(ExecutorParams):
    operation: str = "find"
    collection: str = ""
    filter: Dict[str, Any] = Field(default_factory=dict)
    secret_id: Optional[str] = None


class SlackParams(ExecutorParams):
    channel: str = ""
    message: str = ""
    secret_id: Optional[str] = None


@node_executor(EmailParams)
def send_email(node, params, node_input, context):
    context.add_log("info", f"Email sent to {params.to}: {params.subject}", node.id)
    return ExecutorResult.ok({"sent": True, "to": params.to, "subject": params.subject})


@node_executor(DatabaseQueryParams)
def database_query(node, params, node_input, context):
    context.add_log("info", f"Executing query: {params.query}", node.id)
    return ExecutorResult.ok({"results": [], "row_count": 0})


@node_executor(MongoParams)
def mongodb(node, params, node_input, context):
    context.add_log("info", f"MongoDB {params.operation} on collection '{params.collection}'", node.id)
    return ExecutorResult.ok({"documents": [], "count": 0})


@node_executor(SlackParams)
def slack_message(node, params, node_input, context):
    context.add_log("info", f"Slack message posted to {params.channel}: {params.message}", node.id)
    return ExecutorResult.ok({"posted": True, "channel": params.channel})
