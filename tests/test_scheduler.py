"""Tests for the scheduler loop."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from flightclub.core.types import ExecutionResult
from flightclub.tasks.dispatcher import TaskDispatcher
from flightclub.tasks.execution import ExecutionContext, TaskExecutor
from flightclub.tasks.registry import ExecutorRegistry
from flightclub.tasks.scheduler import SchedulerState, TaskScheduler
from flightclub.tasks.store import InMemoryTaskStore
from flightclub.tasks.types import TaskStatus

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


class GatedExecutor(TaskExecutor):
    """Blocks every execution on a gate and tracks peak concurrency."""

    task_type = "Gated"

    def __init__(self, open_gate: bool = False):
        self.gate = asyncio.Event()
        if open_gate:
            self.gate.set()
        self.active = 0
        self.peak = 0
        self.executed: list[int] = []
        self.started = asyncio.Event()

    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.started.set()
        try:
            await self.gate.wait()
        finally:
            self.active -= 1
        self.executed.append(context.task_id)
        return ExecutionResult.ok(f"ran {context.task_id}")


def make_scheduler(store, executor, **kwargs):
    dispatcher = TaskDispatcher(store, ExecutorRegistry([executor]), clock=lambda: NOW)
    kwargs.setdefault("clock", lambda: NOW)
    return TaskScheduler(store, dispatcher, **kwargs)


@pytest.mark.asyncio
async def test_poll_dispatches_only_due_tasks():
    """Only Pending tasks at or before now are executed."""
    store = InMemoryTaskStore()
    executor = GatedExecutor(open_gate=True)
    scheduler = make_scheduler(store, executor)

    due = await store.create_task("due", "Gated", NOW - timedelta(minutes=1))
    exact = await store.create_task("exact", "Gated", NOW)
    future = await store.create_task("future", "Gated", NOW + timedelta(seconds=1))
    done = await store.create_task("done", "Gated", NOW - timedelta(hours=1))
    await store.update_status(done.id, TaskStatus.COMPLETED)

    count = await scheduler.poll_once()

    assert count == 2
    assert sorted(executor.executed) == [due.id, exact.id]
    assert (await store.get_task(future.id)).status == TaskStatus.PENDING
    assert (await store.get_task(due.id)).status == TaskStatus.COMPLETED
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_poll_with_nothing_due():
    """An empty tick dispatches nothing."""
    store = InMemoryTaskStore()
    executor = GatedExecutor(open_gate=True)
    scheduler = make_scheduler(store, executor)
    await store.create_task("later", "Gated", NOW + timedelta(days=1))

    assert await scheduler.poll_once() == 0
    assert executor.executed == []


@pytest.mark.asyncio
async def test_concurrency_bounded():
    """No more than max_concurrent executions run at once."""
    store = InMemoryTaskStore()
    executor = GatedExecutor()
    scheduler = make_scheduler(store, executor, max_concurrent=3)
    for i in range(8):
        await store.create_task(f"t{i}", "Gated", NOW - timedelta(minutes=i))

    tick = asyncio.create_task(scheduler.poll_once())
    await asyncio.wait_for(executor.started.wait(), timeout=1)
    # Let every dispatch reach the semaphore
    for _ in range(10):
        await asyncio.sleep(0)
    assert executor.active == 3
    assert scheduler.in_flight == 8

    executor.gate.set()
    assert await asyncio.wait_for(tick, timeout=1) == 8

    assert executor.peak == 3
    assert len(executor.executed) == 8
    tasks = await store.list_tasks(status=TaskStatus.COMPLETED)
    assert len(tasks) == 8
    assert scheduler.in_flight == 0


@pytest.mark.asyncio
async def test_per_task_timeout_cancels():
    """A scheduled execution exceeding the task timeout is marked Cancelled."""
    store = InMemoryTaskStore()
    executor = GatedExecutor()
    scheduler = make_scheduler(store, executor, task_timeout=0.05)
    task = await store.create_task("slow", "Gated", NOW)

    await asyncio.wait_for(scheduler.poll_once(), timeout=1)

    assert (await store.get_task(task.id)).status == TaskStatus.CANCELLED


class FlakyListStore(InMemoryTaskStore):
    """Raises on the first list_tasks call."""

    def __init__(self):
        super().__init__()
        self.calls = 0
        self.recovered = asyncio.Event()

    async def list_tasks(self, status=None, task_type=None):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("database is locked")
        self.recovered.set()
        return await super().list_tasks(status, task_type)


@pytest.mark.asyncio
async def test_loop_survives_store_errors():
    """A failing poll is logged and the loop carries on."""
    store = FlakyListStore()
    executor = GatedExecutor(open_gate=True)
    scheduler = make_scheduler(store, executor, poll_interval=0.01)
    task = await store.create_task("t", "Gated", NOW)

    await scheduler.start()
    assert scheduler.running
    await asyncio.wait_for(store.recovered.wait(), timeout=2)
    await scheduler.stop()

    assert store.calls >= 2
    assert executor.executed == [task.id]
    assert scheduler.state == SchedulerState.STOPPED
    assert not scheduler.running


@pytest.mark.asyncio
async def test_stop_cancels_in_flight():
    """Stopping the scheduler cancels running executions and records Cancelled."""
    store = InMemoryTaskStore()
    executor = GatedExecutor()
    scheduler = make_scheduler(store, executor, poll_interval=0.01)
    task = await store.create_task("t", "Gated", NOW)

    await scheduler.start()
    await asyncio.wait_for(executor.started.wait(), timeout=2)
    assert (await store.get_task(task.id)).status == TaskStatus.RUNNING

    await asyncio.wait_for(scheduler.stop(), timeout=2)

    assert (await store.get_task(task.id)).status == TaskStatus.CANCELLED
    assert scheduler.in_flight == 0
    assert executor.executed == []


@pytest.mark.asyncio
async def test_start_is_idempotent():
    """Calling start twice keeps a single loop."""
    store = InMemoryTaskStore()
    scheduler = make_scheduler(store, GatedExecutor(open_gate=True), poll_interval=0.01)

    await scheduler.start()
    first = scheduler._loop_task
    await scheduler.start()
    assert scheduler._loop_task is first

    await scheduler.stop()


def test_invalid_concurrency():
    """max_concurrent must be positive."""
    with pytest.raises(ValueError):
        TaskScheduler(InMemoryTaskStore(), None, max_concurrent=0)


@pytest.mark.asyncio
async def test_dispatch_errors_do_not_escape():
    """An exception from the dispatcher is logged and the tick completes."""
    store = InMemoryTaskStore()
    task = await store.create_task("t", "Gated", NOW)
    dispatcher = AsyncMock()
    dispatcher.execute.side_effect = RuntimeError("boom")
    scheduler = TaskScheduler(store, dispatcher, task_timeout=30.0, clock=lambda: NOW)

    assert await scheduler.poll_once() == 1
    dispatcher.execute.assert_awaited_once_with(task.id, timeout=30.0)
    assert scheduler.state == SchedulerState.IDLE


class BlockingListStore(InMemoryTaskStore):
    """list_tasks waits on a gate so shutdown can arrive mid-poll."""

    def __init__(self):
        super().__init__()
        self.listing = asyncio.Event()
        self.release = asyncio.Event()

    async def list_tasks(self, status=None, task_type=None):
        self.listing.set()
        await self.release.wait()
        return await super().list_tasks(status, task_type)


@pytest.mark.asyncio
async def test_shutdown_during_poll_dispatches_nothing():
    """Tasks found after stop() was requested are left Pending."""
    store = BlockingListStore()
    executor = GatedExecutor()
    scheduler = make_scheduler(store, executor, poll_interval=0.01)
    task = await store.create_task("t", "Gated", NOW)

    await scheduler.start()
    await asyncio.wait_for(store.listing.wait(), timeout=2)
    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0)
    store.release.set()
    await asyncio.wait_for(stopping, timeout=2)

    assert not executor.started.is_set()
    assert (await store.get_task(task.id)).status == TaskStatus.PENDING
    assert scheduler.state == SchedulerState.STOPPED
