"""Tests for the executor registry."""

import pytest

from nodeflow.core.exceptions import ExecutorRegistryError, UnknownExecutorError
from nodeflow.core.executor_registry import ExecutorRegistry, ExecutorResult
from nodeflow.models.core import NodeDefinition, NodeType


def echo(node, node_input, context):
    return ExecutorResult.ok(node_input.get("data"))


class TestExecutorRegistry:
    """Test cases for ExecutorRegistry."""

    def test_default_covers_every_node_type(self):
        registry = ExecutorRegistry.default()

        assert registry.missing_types() == []
        for member in NodeType:
            assert registry.has(member)
            assert registry.has(member.value)

    def test_default_descriptions(self):
        types = ExecutorRegistry.default().list_types()

        assert types["http-request"] == "Call an HTTP endpoint"
        assert all(description for description in types.values())

    def test_unknown_type_raises(self):
        registry = ExecutorRegistry()

        with pytest.raises(UnknownExecutorError) as exc_info:
            registry.get("error-handler", node_id="n1")

        assert exc_info.value.message == "No executor found for node type: error-handler"
        assert exc_info.value.node_id == "n1"

    def test_error_handler_is_not_registered(self, registry):
        assert not registry.has("error-handler")

    def test_register_and_execute(self, context):
        registry = ExecutorRegistry()
        registry.register("echo", echo, "Echo the input")

        result = registry.execute(NodeDefinition(id="n1", type="echo"), {"data": 42}, context)

        assert result.success
        assert result.data == 42
        assert registry.list_types() == {"echo": "Echo the input"}

    def test_duplicate_registration_is_rejected(self):
        registry = ExecutorRegistry()
        registry.register("echo", echo)

        with pytest.raises(ExecutorRegistryError):
            registry.register("echo", echo)

        registry.register("echo", echo, "Replaced", replace=True)
        assert registry.list_types()["echo"] == "Replaced"

    def test_invalid_executors_are_rejected(self):
        registry = ExecutorRegistry()

        with pytest.raises(ExecutorRegistryError):
            registry.register("bad", "not callable")
        with pytest.raises(ExecutorRegistryError):
            registry.register("bad", lambda node: None)
        with pytest.raises(ExecutorRegistryError):
            registry.register("  ", echo)

    def test_unregister(self):
        registry = ExecutorRegistry()
        registry.register("echo", echo)

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert not registry.has("echo")

    def test_raising_executor_becomes_failure(self, context):
        def broken(node, node_input, context):
            raise RuntimeError("boom")

        registry = ExecutorRegistry()
        registry.register("broken", broken)

        result = registry.execute(NodeDefinition(id="n1", type="broken"), {"data": None}, context)

        assert not result.success
        assert result.error == "RuntimeError: boom"

    def test_wrong_return_type_becomes_failure(self, context):
        registry = ExecutorRegistry()
        registry.register("plain", lambda node, node_input, context: {"data": 1})

        result = registry.execute(NodeDefinition(id="n1", type="plain"), {"data": None}, context)

        assert not result.success
        assert "instead of ExecutorResult" in result.error

    def test_registries_are_independent(self):
        first = ExecutorRegistry()
        first.register("echo", echo)

        assert not ExecutorRegistry().has("echo")
