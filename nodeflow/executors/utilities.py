"""Log and delay executors."""

import json
import time
from typing import Optional
from pydantic import Field

from ..core.executor_registry import ExecutorResult
from .base import ExecutorParams, node_executor


class LogParams(ExecutorParams):
    message: Optional[str] = None
    level: str = "info"


class DelayParams(ExecutorParams):
    duration: int = Field(default=1000, ge=0, description="Delay in milliseconds")


@node_executor(LogParams)
def log_message(node, params, node_input, context):
    message = params.message or json.dumps(node_input, default=str)
    context.add_log(params.level, message, node.id)
    return ExecutorResult.ok({"logged": True, "message": message})


@node_executor(DelayParams)
def delay(node, params, node_input, context):
    # Blocks only this run's worker thread
    time.sleep(params.duration / 1000.0)
    return ExecutorResult.ok({"delayed": params.duration})
