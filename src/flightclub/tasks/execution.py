"""
Executor capability and per-dispatch execution context.

Every task type is handled by one TaskExecutor. The dispatcher builds an
ExecutionContext for each dispatch and hands it to the executor.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from flightclub.core.clock import Clock, utc_now
from flightclub.core.types import ExecutionResult
from flightclub.tasks.types import ScheduledTask


@dataclass
class ExecutionContext:
    """Everything an executor needs to run a single task."""

    task_id: int
    task_name: str
    task_type: str
    parameters: str | None
    scheduled_time: datetime
    created_by: str | None = None
    deadline: datetime | None = None  # When the per-task timeout fires
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    clock: Clock = field(default=utc_now, repr=False)  # Same clock that set the deadline

    @classmethod
    def from_task(
        cls, task: ScheduledTask, deadline: datetime | None = None, clock: Clock = utc_now
    ) -> "ExecutionContext":
        return cls(
            task_id=task.id,
            task_name=task.name,
            task_type=task.task_type,
            parameters=task.parameters,
            scheduled_time=task.scheduled_time,
            created_by=task.created_by,
            deadline=deadline,
            clock=clock,
        )

    @property
    def cancelled(self) -> bool:
        """True once shutdown or the task timeout has cancelled this execution."""
        return self.cancel_event.is_set() or self.timed_out

    @property
    def timed_out(self) -> bool:
        """True once the deadline has passed on this context's clock."""
        return self.deadline is not None and self.clock() >= self.deadline

    def raise_if_cancelled(self) -> None:
        """Unwind via CancelledError if this execution has been cancelled."""
        if self.cancelled:
            raise asyncio.CancelledError(f"Task {self.task_id} execution cancelled")


class TaskExecutor(ABC):
    """Runs tasks of one type."""

    task_type: str

    def can_execute(self, context: ExecutionContext) -> bool:
        """Final guard before the task is marked Running."""
        return context.task_type.lower() == self.task_type.lower()

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> ExecutionResult:
        """Execute the task and return a normalized result."""
        ...
