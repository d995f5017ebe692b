"""Tests for the notification executor."""

import json
from datetime import UTC, datetime

import pytest

from flightclub.executors.notification import NotificationExecutor
from flightclub.tasks.execution import ExecutionContext

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_context(parameters: dict | None = None) -> ExecutionContext:
    return ExecutionContext(
        task_id=3,
        task_name="Weekly reminder",
        task_type="Notification",
        parameters=json.dumps(parameters) if parameters is not None else None,
        scheduled_time=NOW,
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("channel, delay", [("Email", 1.0), ("SMS", 0.5), ("Push", 0.2), ("Pigeon", 1.0)])
async def test_sends_with_channel_delay(channel, delay):
    """Each channel has its own simulated delivery time."""
    sleep = RecordingSleep()
    executor = NotificationExecutor(sleep=sleep, clock=lambda: NOW)

    result = await executor.execute(
        make_context({"recipient": "pat@example.com", "message": "Lake day", "type": channel})
    )

    assert result.success is True
    assert result.message == f"{channel} notification sent to pat@example.com"
    assert result.data == {
        "recipient": "pat@example.com",
        "message": "Lake day",
        "type": channel,
        "sent_at": NOW.isoformat(),
    }
    assert sleep.delays == [delay]


@pytest.mark.asyncio
async def test_defaults_without_parameters():
    """Missing parameters fall back to an unknown recipient and the task name."""
    executor = NotificationExecutor(sleep=RecordingSleep(), clock=lambda: NOW)

    result = await executor.execute(make_context())

    assert result.success is True
    assert result.data["recipient"] == "Unknown"
    assert result.data["message"] == "Weekly reminder"
    assert result.data["type"] == "Email"


@pytest.mark.asyncio
async def test_capitalized_parameter_names():
    executor = NotificationExecutor(sleep=RecordingSleep(), clock=lambda: NOW)

    result = await executor.execute(make_context({"Recipient": "sam", "Type": "Push"}))

    assert result.message == "Push notification sent to sam"


@pytest.mark.asyncio
async def test_delivery_error_returns_failure():
    async def broken_sleep(delay: float) -> None:
        raise OSError("gateway down")

    executor = NotificationExecutor(sleep=broken_sleep, clock=lambda: NOW)

    result = await executor.execute(make_context({"recipient": "sam"}))

    assert result.success is False
    assert result.error == "gateway down"
