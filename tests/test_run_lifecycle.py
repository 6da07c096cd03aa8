"""Tests for run lifecycle transitions."""

import pytest

from nodeflow.core.event_publisher import error_event, status_event
from nodeflow.core.exceptions import NodeExecutionError, RunStateError
from nodeflow.core.execution_context import ExecutionContext
from nodeflow.core.run_lifecycle import RunLifecycleManager
from nodeflow.models.core import LogLevel, NodeExecutionRecord, Run, RunStatus


@pytest.fixture
def lifecycle(run_store, publisher):
    return RunLifecycleManager(run_store, publisher)


@pytest.fixture
def pending_run(make_workflow, make_run):
    workflow = make_workflow([("a", "manual-trigger")])
    return make_run(workflow, {"value": 1})


class TestRunLifecycleManager:
    """Test cases for RunLifecycleManager."""

    def test_start_persists_and_publishes(self, lifecycle, pending_run, run_store, channel):
        lifecycle.start(pending_run)

        assert pending_run.status == RunStatus.RUNNING
        assert pending_run.started_at is not None
        assert run_store.get_run(pending_run.id).status == RunStatus.RUNNING
        assert channel.events_for(status_event(pending_run.id)) == [
            {"status": "running", "runId": pending_run.id}
        ]

    def test_start_requires_pending(self, lifecycle, pending_run):
        lifecycle.start(pending_run)

        with pytest.raises(RunStateError):
            lifecycle.start(pending_run)

    def test_success_path(self, lifecycle, pending_run, run_store, channel):
        lifecycle.start(pending_run)
        lifecycle.record_node_execution(pending_run, NodeExecutionRecord(node_id="a"))
        lifecycle.succeed(pending_run, {"done": True})
        lifecycle.finalize(pending_run)

        stored = run_store.get_run(pending_run.id)
        assert stored.status == RunStatus.SUCCESS
        assert stored.output == {"done": True}
        assert stored.finished_at is not None
        assert stored.duration is not None and stored.duration >= 0
        assert [record.node_id for record in stored.node_executions] == ["a"]

        statuses = channel.events_for(status_event(pending_run.id))
        assert [payload["status"] for payload in statuses] == ["running", "success"]
        assert statuses[-1]["duration"] == pending_run.duration

    def test_succeed_defaults_output(self, lifecycle, pending_run):
        lifecycle.start(pending_run)
        lifecycle.succeed(pending_run, None)

        assert pending_run.output == {}

    def test_succeed_requires_running(self, lifecycle, pending_run):
        with pytest.raises(RunStateError):
            lifecycle.succeed(pending_run, {})

    def test_fail_with_exception(self, lifecycle, pending_run, channel):
        lifecycle.start(pending_run)
        try:
            raise NodeExecutionError("Node broke", node_id="a")
        except NodeExecutionError as e:
            lifecycle.fail(pending_run, e)

        assert pending_run.status == RunStatus.FAILED
        assert pending_run.error.message == "Node broke"
        assert pending_run.error.node_id == "a"
        assert "NodeExecutionError" in pending_run.error.stack
        assert channel.events_for(error_event(pending_run.id)) == [{"error": "Node broke"}]

    def test_fail_pending_run_with_message(self, lifecycle, pending_run):
        lifecycle.fail(pending_run, "Cancelled before start")

        assert pending_run.status == RunStatus.FAILED
        assert pending_run.error.message == "Cancelled before start"
        assert pending_run.error.stack is None

    def test_fail_rejects_terminal_runs(self, lifecycle, pending_run):
        lifecycle.start(pending_run)
        lifecycle.succeed(pending_run, {})

        with pytest.raises(RunStateError):
            lifecycle.fail(pending_run, "too late")

    def test_finalize_requires_terminal_status(self, lifecycle, pending_run):
        lifecycle.start(pending_run)

        with pytest.raises(RunStateError):
            lifecycle.finalize(pending_run)

    def test_finalized_run_is_read_only(self, lifecycle, pending_run):
        lifecycle.start(pending_run)
        lifecycle.succeed(pending_run, {})
        lifecycle.finalize(pending_run)

        with pytest.raises(RunStateError):
            lifecycle.finalize(pending_run)
        with pytest.raises(RunStateError):
            lifecycle.record_node_execution(pending_run, NodeExecutionRecord(node_id="late"))
        with pytest.raises(RunStateError):
            ExecutionContext(pending_run).add_log(LogLevel.INFO, "late")

    def test_works_without_store(self, channel, publisher):
        lifecycle = RunLifecycleManager(publisher=publisher)
        run = Run(workflow_id="wf")

        lifecycle.start(run)
        lifecycle.succeed(run, {"ok": True})
        lifecycle.finalize(run)

        assert run.status == RunStatus.SUCCESS
        assert len(channel.events_for(status_event(run.id))) == 2
