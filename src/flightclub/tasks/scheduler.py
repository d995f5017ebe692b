"""Scheduler loop - polls the task store and dispatches due tasks."""

import asyncio
import contextlib
from enum import Enum

from flightclub.core.clock import Clock, utc_now
from flightclub.core.logging import get_logger
from flightclub.tasks.dispatcher import TaskDispatcher
from flightclub.tasks.store import TaskStore
from flightclub.tasks.types import TaskStatus

logger = get_logger("tasks.scheduler")


class SchedulerState(Enum):
    """Phase of the scheduler loop."""

    IDLE = "idle"
    POLLING = "polling"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


class TaskScheduler:
    """
    Background loop that executes due tasks.

    Every poll interval the store is queried for Pending tasks whose
    scheduled time has passed. Those are dispatched concurrently, at most
    `max_concurrent` at a time, each with its own timeout. The tick waits
    for its dispatches before the next poll.
    """

    def __init__(
        self,
        store: TaskStore,
        dispatcher: TaskDispatcher,
        poll_interval: float = 5.0,
        max_concurrent: int = 5,
        task_timeout: float | None = 600.0,
        clock: Clock = utc_now,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.store = store
        self.dispatcher = dispatcher
        self.poll_interval = poll_interval
        self.max_concurrent = max_concurrent
        self.task_timeout = task_timeout
        self._clock = clock
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._shutdown_event = asyncio.Event()
        self._in_flight: set[asyncio.Task] = set()
        self._loop_task: asyncio.Task | None = None
        self.state = SchedulerState.IDLE

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def in_flight(self) -> int:
        """Number of dispatches currently started and not finished."""
        return len(self._in_flight)

    async def start(self) -> None:
        """Start the scheduler loop in the background."""
        if self.running:
            return
        self._shutdown_event.clear()
        self._loop_task = asyncio.create_task(self.run())
        logger.info("Task scheduler started")

    async def stop(self) -> None:
        """Stop polling, cancel in-flight executions and wait for them to record it."""
        self._shutdown_event.set()
        for task in list(self._in_flight):
            task.cancel()
        if self._loop_task:
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        self.state = SchedulerState.STOPPED
        logger.info("Task scheduler stopped")

    async def run(self) -> None:
        """Main scheduler loop - runs until stop() is called."""
        logger.info(
            f"Task scheduler loop running (interval: {self.poll_interval}s, "
            f"max concurrent: {self.max_concurrent})"
        )
        while not self._shutdown_event.is_set():
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Error in task scheduler loop: {e}", exc_info=True)
                self.state = SchedulerState.IDLE

            # Sleep until the next tick, waking early on shutdown
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=self.poll_interval)

        self.state = SchedulerState.STOPPED
        logger.info("Task scheduler loop exited")

    async def poll_once(self) -> int:
        """
        Run one tick: query due tasks and dispatch them.

        Returns:
            Number of due tasks found
        """
        self.state = SchedulerState.POLLING
        now = self._clock()
        pending = await self.store.list_tasks(status=TaskStatus.PENDING)
        if self._shutdown_event.is_set():
            logger.info("Shutdown requested during poll, not dispatching")
            self.state = SchedulerState.IDLE
            return 0
        due = [task for task in pending if task.is_due(now)]

        if not due:
            logger.debug(f"No tasks due for execution at {now.isoformat()}")
            self.state = SchedulerState.IDLE
            return 0

        logger.info(f"Found {len(due)} tasks due for execution")
        self.state = SchedulerState.DISPATCHING

        dispatches = []
        for task in due:
            dispatch = asyncio.create_task(self._dispatch_one(task.id))
            self._in_flight.add(dispatch)
            dispatch.add_done_callback(self._in_flight.discard)
            dispatches.append(dispatch)

        await asyncio.gather(*dispatches, return_exceptions=True)
        self.state = SchedulerState.IDLE
        return len(due)

    async def _dispatch_one(self, task_id: int) -> None:
        """Execute one task inside a concurrency slot; never raises."""
        try:
            async with self._semaphore:
                logger.info(f"Starting background execution of task {task_id}")
                result = await self.dispatcher.execute(task_id, timeout=self.task_timeout)
        except asyncio.CancelledError:
            logger.info(f"Task {task_id} execution cancelled due to service shutdown")
            return
        except Exception as e:
            logger.error(f"Unexpected error executing task {task_id}: {e}", exc_info=True)
            return

        if result.success:
            logger.info(
                f"Task {task_id} executed successfully in "
                f"{result.duration.total_seconds() * 1000:.0f}ms"
            )
        else:
            logger.warning(f"Task {task_id} execution failed: {result.message}")
