"""
Execution dispatcher - runs one task end to end.

Fetches the task, checks preconditions, resolves its executor, claims the
task as Running, runs the executor and records the terminal status. Every
outcome is returned as an ExecutionResult; nothing raises past `execute`.
"""

import asyncio
from datetime import datetime, timedelta

from flightclub.core.clock import Clock, utc_now
from flightclub.core.logging import get_logger
from flightclub.core.types import ErrorCategory, ExecutionResult
from flightclub.tasks.execution import ExecutionContext
from flightclub.tasks.registry import ExecutorRegistry
from flightclub.tasks.store import TaskStore
from flightclub.tasks.types import TaskStatus

logger = get_logger("tasks.dispatcher")


class TaskDispatcher:
    """Executes tasks by id through the executor registry."""

    def __init__(self, store: TaskStore, registry: ExecutorRegistry, clock: Clock = utc_now):
        self.store = store
        self.registry = registry
        self._clock = clock

    async def execute(self, task_id: int, timeout: float | None = None) -> ExecutionResult:
        """
        Execute a task by ID.

        Args:
            task_id: Task to run
            timeout: Seconds the executor may run before it is cancelled

        Returns:
            The executor's result, or a synthesized failure
        """
        started_at = self._clock()

        try:
            task = await self.store.get_task(task_id)
        except Exception as e:
            logger.error(f"Failed to load task {task_id}: {e}", exc_info=True)
            return ExecutionResult.fail(
                "Unexpected error during task execution",
                error=str(e),
                category=ErrorCategory.UNEXPECTED,
                started_at=started_at,
            )

        if task is None:
            logger.warning(f"Task {task_id} not found")
            return ExecutionResult.fail(
                f"Task {task_id} not found",
                category=ErrorCategory.NOT_FOUND,
                started_at=started_at,
            )

        logger.info(f"Starting execution of task {task_id} ({task.task_type})")

        if task.status != TaskStatus.PENDING:
            logger.warning(
                f"Task {task_id} is not in pending state. Current status: {task.status.value}"
            )
            return ExecutionResult.fail(
                f"Task {task_id} is not in pending state. Current status: {task.status.value}",
                category=ErrorCategory.PRECONDITION_FAILED,
                started_at=started_at,
            )

        executor = self.registry.get(task.task_type)
        if executor is None:
            logger.error(f"No executor found for task type {task.task_type}")
            await self._set_status(task_id, TaskStatus.FAILED)
            return ExecutionResult.fail(
                f"No executor available for task type: {task.task_type}",
                category=ErrorCategory.NO_EXECUTOR,
                started_at=started_at,
            )

        deadline = started_at + timedelta(seconds=timeout) if timeout is not None else None
        context = ExecutionContext.from_task(task, deadline=deadline, clock=self._clock)

        if not executor.can_execute(context):
            logger.error(f"Executor for {task.task_type} cannot handle task {task_id}")
            await self._set_status(task_id, TaskStatus.FAILED)
            return ExecutionResult.fail(
                f"Executor for {task.task_type} cannot handle this task",
                category=ErrorCategory.PRECONDITION_FAILED,
                started_at=started_at,
            )

        deadline_scope = asyncio.timeout(timeout)
        try:
            claimed = await self.store.update_status(
                task_id, TaskStatus.RUNNING, expected=TaskStatus.PENDING
            )
            if claimed is None:
                # Another dispatch claimed it between our read and this write
                logger.warning(f"Task {task_id} was claimed by another dispatch")
                return ExecutionResult.fail(
                    f"Task {task_id} is no longer pending",
                    category=ErrorCategory.PRECONDITION_FAILED,
                    started_at=started_at,
                )
            logger.info(f"Task {task_id} status updated to Running")

            async with deadline_scope:
                result = await executor.execute(context)

        except TimeoutError as e:
            if not deadline_scope.expired():
                return await self._unexpected(task_id, e, started_at)
            return await self._timed_out(task_id, context, timeout, started_at)
        except asyncio.CancelledError:
            if context.timed_out and not context.cancel_event.is_set():
                # The executor saw the deadline before asyncio.timeout fired
                return await self._timed_out(task_id, context, timeout, started_at)
            context.cancel_event.set()
            logger.warning(f"Task {task_id} execution was cancelled")
            await self._set_status(task_id, TaskStatus.CANCELLED)
            return ExecutionResult.fail(
                "Task execution was cancelled",
                category=ErrorCategory.CANCELLED,
                started_at=started_at,
            )
        except Exception as e:
            return await self._unexpected(task_id, e, started_at)

        final_status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        await self._set_status(task_id, final_status)
        logger.info(
            f"Task {task_id} execution completed. Success: {result.success}, "
            f"Duration: {result.duration.total_seconds() * 1000:.0f}ms"
        )
        return result

    async def _timed_out(
        self, task_id: int, context: ExecutionContext, timeout: float | None, started_at: datetime
    ) -> ExecutionResult:
        context.cancel_event.set()
        logger.warning(f"Task {task_id} timed out after {timeout}s")
        await self._set_status(task_id, TaskStatus.CANCELLED)
        return ExecutionResult.fail(
            "Task execution was cancelled",
            error=f"Timed out after {timeout} seconds",
            category=ErrorCategory.TIMEOUT,
            started_at=started_at,
        )

    async def _unexpected(
        self, task_id: int, error: Exception, started_at: datetime
    ) -> ExecutionResult:
        logger.error(f"Unexpected error executing task {task_id}: {error}", exc_info=error)
        await self._set_status(task_id, TaskStatus.FAILED)
        return ExecutionResult.fail(
            "Unexpected error during task execution",
            error=str(error),
            category=ErrorCategory.UNEXPECTED,
            started_at=started_at,
        )

    async def _set_status(self, task_id: int, status: TaskStatus) -> None:
        """Persist a status transition; failures are logged, not raised."""
        try:
            updated = await self.store.update_status(task_id, status)
        except Exception as e:
            logger.error(f"Failed to set task {task_id} status to {status.value}: {e}")
            return
        if updated is None:
            logger.warning(f"Task {task_id} disappeared before status {status.value} was saved")
