"""Tests for executor registry."""

import pytest

from flightclub.core.types import ExecutionResult
from flightclub.tasks.execution import ExecutionContext, TaskExecutor
from flightclub.tasks.registry import ExecutorRegistry


class StubExecutor(TaskExecutor):
    def __init__(self, task_type: str):
        self.task_type = task_type

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        return ExecutionResult.ok(self.task_type)


def test_lookup_is_case_insensitive():
    """Executors resolve regardless of task type case."""
    executor = StubExecutor("ReserveBuntzen")
    registry = ExecutorRegistry([executor])

    assert registry.get("ReserveBuntzen") is executor
    assert registry.get("reservebuntzen") is executor
    assert registry.get("RESERVEBUNTZEN") is executor
    assert registry.has_executor("reserveBuntzen")


def test_missing_executor():
    """Unknown types return None."""
    registry = ExecutorRegistry()
    assert registry.get("Unregistered") is None
    assert not registry.has_executor("Unregistered")


def test_reregister_overwrites():
    """Registering the same type again replaces the previous executor."""
    first = StubExecutor("Notification")
    second = StubExecutor("NOTIFICATION")
    registry = ExecutorRegistry([first])
    registry.register(second)

    assert registry.get("notification") is second
    assert len(registry) == 1
    assert registry.list_task_types() == ["NOTIFICATION"]


def test_list_task_types_sorted():
    """Task types are listed in sorted order."""
    registry = ExecutorRegistry(
        [StubExecutor("ReserveBuntzen"), StubExecutor("Cleanup"), StubExecutor("notification")]
    )
    assert registry.list_task_types() == ["Cleanup", "notification", "ReserveBuntzen"]


def test_register_requires_task_type():
    """Executors without a task type are rejected."""
    registry = ExecutorRegistry()
    with pytest.raises(ValueError):
        registry.register(StubExecutor("  "))
