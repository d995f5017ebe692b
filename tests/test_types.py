"""Tests for core and task types."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from flightclub.core.types import ErrorCategory, ExecutionResult
from flightclub.tasks.types import ScheduledTask, TaskStatus


def test_result_duration():
    """Duration is end minus start."""
    start = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    result = ExecutionResult(
        success=True,
        started_at=start,
        finished_at=start + timedelta(seconds=3),
    )
    assert result.duration == timedelta(seconds=3)


def test_result_fail_defaults():
    """Failures carry a category and no data by default."""
    result = ExecutionResult.fail("Boom", error="detail")
    assert result.success is False
    assert result.message == "Boom"
    assert result.error == "detail"
    assert result.category == ErrorCategory.UNEXPECTED
    assert result.data is None
    assert not result.cancelled


def test_result_cancelled_flag():
    """Timeout and cancellation both count as cancelled."""
    assert ExecutionResult.fail("x", category=ErrorCategory.TIMEOUT).cancelled
    assert ExecutionResult.fail("x", category=ErrorCategory.CANCELLED).cancelled
    assert not ExecutionResult.fail("x", category=ErrorCategory.AUTH_FAILURE).cancelled


def test_result_to_dict():
    """Result serializes category by value."""
    result = ExecutionResult.fail("Nope", category=ErrorCategory.NOT_FOUND)
    data = result.to_dict()
    assert data["success"] is False
    assert data["category"] == "not_found"
    assert "duration_ms" in data


def test_status_parse_case_insensitive():
    """Status names parse regardless of case."""
    assert TaskStatus.parse("pending") == TaskStatus.PENDING
    assert TaskStatus.parse("CANCELLED") == TaskStatus.CANCELLED
    assert TaskStatus.parse(TaskStatus.RUNNING) == TaskStatus.RUNNING
    with pytest.raises(ValueError):
        TaskStatus.parse("Paused")


def test_scheduled_time_normalized_to_utc():
    """Scheduled time is stored as aware UTC."""
    pacific = timezone(timedelta(hours=-8))
    task = ScheduledTask(
        id=1,
        name="t",
        scheduled_time=datetime(2026, 1, 1, 4, 0, tzinfo=pacific),
        task_type="Notification",
    )
    assert task.scheduled_time == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert task.scheduled_time.tzinfo == UTC


def test_task_is_due():
    """Only pending tasks at or past their time are due."""
    now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    task = ScheduledTask(id=1, name="t", scheduled_time=now, task_type="x")
    assert task.is_due(now)
    assert not task.is_due(now - timedelta(seconds=1))

    task.status = TaskStatus.RUNNING
    assert not task.is_due(now + timedelta(hours=1))


def test_task_dict_round_trip():
    """Task survives to_dict/from_dict."""
    task = ScheduledTask(
        id=7,
        name="Reserve",
        scheduled_time=datetime(2026, 5, 1, 8, 0, tzinfo=UTC),
        task_type="ReserveBuntzen",
        parameters='{"AuthToken": "x"}',
        status=TaskStatus.FAILED,
        priority=3,
        created_at=datetime(2026, 4, 1, tzinfo=UTC),
        created_by="me",
    )
    assert ScheduledTask.from_dict(task.to_dict()) == task
