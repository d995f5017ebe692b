"""
Task store interface and in-memory implementation.

The engine only needs get/list/update_status; create/delete exist for the
CLI and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime

from flightclub.core.clock import coerce_utc, utc_now
from flightclub.core.logging import get_logger
from flightclub.tasks.types import ScheduledTask, TaskStatus

logger = get_logger("tasks.store")


class TaskStore(ABC):
    """Abstract task storage interface."""

    @abstractmethod
    async def create_task(
        self,
        name: str,
        task_type: str,
        scheduled_time: datetime,
        parameters: str | None = None,
        description: str | None = None,
        priority: int = 1,
        created_by: str | None = None,
    ) -> ScheduledTask:
        """Create a new Pending task."""
        ...

    @abstractmethod
    async def get_task(self, task_id: int) -> ScheduledTask | None:
        """Get task by ID."""
        ...

    @abstractmethod
    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        task_type: str | None = None,
    ) -> list[ScheduledTask]:
        """List tasks ordered by scheduled time, optionally filtered."""
        ...

    @abstractmethod
    async def update_status(
        self,
        task_id: int,
        status: TaskStatus,
        expected: TaskStatus | None = None,
    ) -> ScheduledTask | None:
        """
        Set task status.

        When `expected` is given the update only applies if the current
        status matches it. Returns the updated task, or None if the task
        does not exist or the expected status did not match.
        """
        ...

    @abstractmethod
    async def delete_task(self, task_id: int) -> bool:
        """Delete a task."""
        ...

    async def close(self) -> None:
        """Release resources. No-op by default."""
        return None


class InMemoryTaskStore(TaskStore):
    """Process-local store, used for tests and ephemeral runs."""

    def __init__(self) -> None:
        self._tasks: dict[int, ScheduledTask] = {}
        self._next_id = 1

    async def create_task(
        self,
        name: str,
        task_type: str,
        scheduled_time: datetime,
        parameters: str | None = None,
        description: str | None = None,
        priority: int = 1,
        created_by: str | None = None,
    ) -> ScheduledTask:
        task = ScheduledTask(
            id=self._next_id,
            name=name,
            description=description,
            scheduled_time=coerce_utc(scheduled_time),
            task_type=task_type,
            parameters=parameters,
            status=TaskStatus.PENDING,
            priority=priority,
            created_at=utc_now(),
            created_by=created_by,
        )
        self._tasks[task.id] = task
        self._next_id += 1
        logger.info(f"Created task {task.id}: {name} ({task_type}) at {task.scheduled_time}")
        return replace(task)

    async def get_task(self, task_id: int) -> ScheduledTask | None:
        task = self._tasks.get(task_id)
        return replace(task) if task else None

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        task_type: str | None = None,
    ) -> list[ScheduledTask]:
        tasks = list(self._tasks.values())
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        if task_type:
            tasks = [t for t in tasks if t.task_type.lower() == task_type.lower()]
        tasks.sort(key=lambda t: (t.scheduled_time, t.id))
        return [replace(t) for t in tasks]

    async def update_status(
        self,
        task_id: int,
        status: TaskStatus,
        expected: TaskStatus | None = None,
    ) -> ScheduledTask | None:
        task = self._tasks.get(task_id)
        if task is None:
            return None
        if expected is not None and task.status != expected:
            logger.debug(
                f"Task {task_id} status is {task.status.value}, expected {expected.value}; not updated"
            )
            return None

        task.status = status
        task.updated_at = utc_now()
        logger.info(f"Updated task {task_id} status to: {status.value}")
        return replace(task)

    async def delete_task(self, task_id: int) -> bool:
        if self._tasks.pop(task_id, None) is None:
            return False
        logger.info(f"Deleted task {task_id}")
        return True
