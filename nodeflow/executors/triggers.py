"""Entry-point executors.

Triggers start a run; by the time one executes the run input has already
been delivered, so every trigger passes it through unchanged.
"""

from typing import Optional

from ..core.executor_registry import ExecutorResult
from .base import ExecutorParams, input_data, node_executor


class ManualTriggerParams(ExecutorParams):
    pass


class WebhookParams(ExecutorParams):
    path: Optional[str] = None
    method: str = "POST"


class ScheduleParams(ExecutorParams):
    cron: Optional[str] = None
    timezone: Optional[str] = None


@node_executor(ManualTriggerParams)
def manual_trigger(node, params, node_input, context):
    return ExecutorResult.ok(input_data(node_input))


@node_executor(WebhookParams)
def webhook_trigger(node, params, node_input, context):
    return ExecutorResult.ok(input_data(node_input))


@node_executor(ScheduleParams)
def schedule_trigger(node, params, node_input, context):
    return ExecutorResult.ok(input_data(node_input))
