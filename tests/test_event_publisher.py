"""Tests for run event publication."""

from nodeflow.core.event_publisher import (
    EventChannel, EventPublisher, InMemoryEventChannel, error_event, log_event, run_id_from_event, status_event
)
from nodeflow.core.execution_context import ExecutionContext
from nodeflow.models.core import LogEntry, LogLevel, Run, RunStatus


class TestEventNames:
    """Test cases for event naming helpers."""

    def test_names(self):
        assert status_event("r1") == "run:r1"
        assert log_event("r1") == "run:r1:log"
        assert error_event("r1") == "run:r1:error"

    def test_run_id_from_event(self):
        assert run_id_from_event("run:r1") == "r1"
        assert run_id_from_event("run:r1:log") == "r1"
        assert run_id_from_event("workflow:r1") is None
        assert run_id_from_event("run") is None


class TestEventPublisher:
    """Test cases for EventPublisher."""

    def test_status_payload(self, publisher, channel):
        publisher.publish_status("r1", RunStatus.RUNNING)
        publisher.publish_status("r1", "success", duration=12)

        assert channel.events == [
            ("run:r1", {"status": "running", "runId": "r1"}),
            ("run:r1", {"status": "success", "runId": "r1", "duration": 12}),
        ]

    def test_log_payload_uses_editor_keys(self, publisher, channel):
        publisher.publish_log("r1", LogEntry(level=LogLevel.WARN, message="careful", node_id="n1"))

        payload = channel.events_for("run:r1:log")[0]
        assert payload["level"] == "warn"
        assert payload["message"] == "careful"
        assert payload["nodeId"] == "n1"
        assert isinstance(payload["timestamp"], str)

    def test_error_payload(self, publisher, channel):
        publisher.publish_error("r1", "it broke")

        assert channel.events_for("run:r1:error") == [{"error": "it broke"}]

    def test_failing_channel_is_skipped(self, channel):
        class Failing(EventChannel):
            def publish(self, event, payload):
                raise RuntimeError("down")

        publisher = EventPublisher([Failing(), channel])
        publisher.publish_error("r1", "still delivered")

        assert channel.events_for("run:r1:error") == [{"error": "still delivered"}]

    def test_add_and_remove_channels(self):
        publisher = EventPublisher()
        channel = InMemoryEventChannel()

        publisher.publish_error("r1", "nobody listens")
        publisher.add_channel(channel)
        publisher.publish_error("r1", "heard")
        publisher.remove_channel(channel)
        publisher.publish_error("r1", "gone")

        assert [payload["error"] for _, payload in channel.events] == ["heard"]

    def test_context_logs_are_published(self, publisher, channel):
        context = ExecutionContext(Run(workflow_id="wf"), publisher)

        context.add_log("warning", "odd level", node_id="n1")

        payload = channel.events_for(log_event(context.run_id))[0]
        assert payload["level"] == "warn"
        assert context.run.logs[0].level == LogLevel.WARN

    def test_clear(self, publisher, channel):
        publisher.publish_error("r1", "x")
        channel.clear()

        assert channel.events == []
