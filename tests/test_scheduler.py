"""Tests for the breadth-first traversal scheduler."""

import pytest

from nodeflow.core.exceptions import NoEntryPointError, NodeExecutionError
from nodeflow.core.executor_registry import ExecutorRegistry, ExecutorResult
from nodeflow.core.graph_builder import build_execution_graph
from nodeflow.core.scheduler import TraversalScheduler, Worklist
from nodeflow.models.core import NodeExecutionStatus


def run_workflow(registry, context, workflow, run_input=None):
    graph = build_execution_graph(workflow.nodes, workflow.edges)
    return TraversalScheduler(registry).run(graph, context, run_input)


def executed_ids(context):
    return [record.node_id for record in context.run.node_executions]


class TestWorklist:
    """Test cases for Worklist."""

    def test_pop_skips_executed_ids(self):
        worklist = Worklist(["a", "b"])
        worklist.push("a")

        assert worklist.pop() == "a"
        worklist.mark_executed("a")
        assert worklist.pop() == "b"
        worklist.mark_executed("b")
        assert worklist.pop() is None
        assert worklist.executed == ["a", "b"]
        assert len(worklist) == 0

    def test_pending_is_a_copy(self):
        worklist = Worklist(["a"])
        worklist.pending.append("x")

        assert worklist.pending == ["a"]


class TestTraversalScheduler:
    """Test cases for TraversalScheduler.run."""

    def test_linear_chain_passes_data_along(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [
                ("a", "manual-trigger"),
                ("b", "transform", {"code": "{'value': data['value'] * 2}"}),
                ("c", "transform", {"code": "{'value': data['value'] + 1}"}),
            ],
            [("a", "b"), ("b", "c")]
        )

        output = run_workflow(registry, context, workflow, {"value": 5})

        assert output == {"value": 11}
        assert executed_ids(context) == ["a", "b", "c"]
        assert context.run.node_executions[1].input == {"data": {"value": 5}}
        assert context.run.node_executions[2].output == {"value": 11}

    def test_diamond_join_executes_once(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [("a", "manual-trigger"), ("b", "log"), ("c", "log"), ("d", "log")],
            [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d")]
        )

        run_workflow(registry, context, workflow)

        assert executed_ids(context) == ["a", "b", "c", "d"]

    def test_pure_cycle_has_no_entry_point(self, registry, context, workflow_builder):
        workflow = workflow_builder([("a", "log"), ("b", "log")], [("a", "b"), ("b", "a")])

        with pytest.raises(NoEntryPointError) as exc_info:
            run_workflow(registry, context, workflow)

        assert exc_info.value.message == "No starting nodes found in workflow"
        assert executed_ids(context) == []

    def test_back_edge_does_not_repeat_nodes(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [("a", "manual-trigger"), ("b", "log"), ("c", "log")],
            [("a", "b"), ("b", "c"), ("c", "b")]
        )

        run_workflow(registry, context, workflow)

        assert executed_ids(context) == ["a", "b", "c"]

    def test_condition_routes_to_matching_port(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [
                ("start", "manual-trigger"),
                ("check", "condition", {"field": "value", "operator": ">", "value2": 3}),
                ("yes", "log", {"message": "big"}),
                ("no", "log", {"message": "small"}),
            ],
            [("start", "check"), ("check", "yes", "true"), ("check", "no", "false")]
        )

        output = run_workflow(registry, context, workflow, {"value": 5})

        assert executed_ids(context) == ["start", "check", "yes"]
        assert output == {"logged": True, "message": "big"}

    def test_edges_without_handle_always_follow(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [("check", "condition", {"value1": 1, "operator": "==", "value2": 2}), ("after", "log")],
            [("check", "after")]
        )

        run_workflow(registry, context, workflow)

        assert executed_ids(context) == ["check", "after"]

    def test_failure_stops_the_walk(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [("a", "manual-trigger"), ("bad", "json-parse"), ("after", "log")],
            [("a", "bad"), ("bad", "after")]
        )

        with pytest.raises(NodeExecutionError) as exc_info:
            run_workflow(registry, context, workflow, "{not json")

        assert exc_info.value.node_id == "bad"
        assert exc_info.value.message.startswith("Invalid JSON:")
        assert executed_ids(context) == ["a", "bad"]
        failed = context.run.node_executions[-1]
        assert failed.status == NodeExecutionStatus.FAILED
        assert failed.error == exc_info.value.message
        assert failed.finished_at is not None

    def test_unknown_type_fails_with_record(self, registry, context, workflow_builder):
        workflow = workflow_builder([("a", "manual-trigger"), ("h", "error-handler")], [("a", "h")])

        with pytest.raises(NodeExecutionError) as exc_info:
            run_workflow(registry, context, workflow)

        assert exc_info.value.message == "No executor found for node type: error-handler"
        assert exc_info.value.node_id == "h"
        assert context.run.node_executions[-1].status == NodeExecutionStatus.FAILED

    def test_input_falls_back_to_run_input(self, registry, context, workflow_builder):
        # skipped never runs, so c has no capture from its first predecessor
        seen = []

        def capture(node, node_input, context):
            seen.append((node.id, node_input))
            return ExecutorResult.ok(node_input["data"])

        registry.register("capture", capture)
        workflow = workflow_builder(
            [
                ("a", "transform", {"code": "'from a'"}),
                ("check", "condition", {"value1": 1, "operator": "==", "value2": 2}),
                ("skipped", "log"),
                ("c", "capture"),
            ],
            [("check", "skipped", "true"), ("skipped", "c"), ("a", "c")]
        )
        graph = build_execution_graph(workflow.nodes, workflow.edges)

        TraversalScheduler(registry).run(graph, context, {"run": True})

        assert seen == [("c", {"data": {"run": True}})]

    def test_input_uses_first_incoming_capture(self, registry, context, workflow_builder):
        workflow = workflow_builder(
            [
                ("a", "transform", {"code": "'from a'"}),
                ("b", "transform", {"code": "'from b'"}),
                ("join", "transform", {"code": "data"}),
            ],
            [("b", "join"), ("a", "join")]
        )

        output = run_workflow(registry, context, workflow)

        assert output == "from b"

    def test_returns_last_node_data(self, context, workflow_builder):
        registry = ExecutorRegistry()
        registry.register("noop", lambda node, node_input, context: ExecutorResult.ok())
        workflow = workflow_builder([("a", "noop")])

        assert run_workflow(registry, context, workflow) is None

    def test_progress_logs(self, registry, context, workflow_builder):
        workflow = workflow_builder([("a", "manual-trigger")])

        run_workflow(registry, context, workflow)

        messages = [entry.message for entry in context.logs]
        assert messages == [
            "Found 1 starting node(s)",
            "Executing node: manual-trigger (a)",
            "Node completed: manual-trigger (a)",
        ]

    def test_custom_record_hook(self, registry, context, workflow_builder):
        records = []
        workflow = workflow_builder([("a", "manual-trigger")])
        graph = build_execution_graph(workflow.nodes, workflow.edges)

        TraversalScheduler(registry).run(graph, context, on_record=records.append)

        assert [record.node_id for record in records] == ["a"]
        assert context.run.node_executions == []
