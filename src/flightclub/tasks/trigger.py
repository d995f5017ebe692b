"""Manual task triggering and execution statistics."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from flightclub.core.clock import Clock, utc_now
from flightclub.core.logging import get_logger
from flightclub.core.types import ExecutionResult, JSONDict
from flightclub.tasks.dispatcher import TaskDispatcher
from flightclub.tasks.store import TaskStore
from flightclub.tasks.types import TaskStatus

logger = get_logger("tasks.trigger")


@dataclass
class ExecutionStats:
    """Aggregate task counts by status and type."""

    total: int = 0
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=utc_now)

    def to_dict(self) -> JSONDict:
        return {
            "total": self.total,
            "pending": self.pending,
            "running": self.running,
            "completed": self.completed,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "by_type": dict(self.by_type),
            "last_updated": self.last_updated.isoformat(),
        }


class TriggerService:
    """
    On-demand entry point sharing the scheduler's dispatcher.

    Manual triggers do not take a scheduler concurrency slot, so they can
    run alongside a full set of scheduled executions.
    """

    def __init__(self, dispatcher: TaskDispatcher, store: TaskStore, clock: Clock = utc_now):
        self.dispatcher = dispatcher
        self.store = store
        self._clock = clock

    async def trigger(self, task_id: int, timeout: float | None = None) -> ExecutionResult:
        """Execute a task now, regardless of its scheduled time."""
        logger.info(f"Manual trigger requested for task {task_id}")
        result = await self.dispatcher.execute(task_id, timeout=timeout)
        logger.info(f"Manual trigger completed for task {task_id}. Success: {result.success}")
        return result

    async def get_execution_stats(self) -> ExecutionStats:
        tasks = await self.store.list_tasks()
        by_status = Counter(task.status for task in tasks)
        by_type = Counter(task.task_type for task in tasks)
        return ExecutionStats(
            total=len(tasks),
            pending=by_status[TaskStatus.PENDING],
            running=by_status[TaskStatus.RUNNING],
            completed=by_status[TaskStatus.COMPLETED],
            failed=by_status[TaskStatus.FAILED],
            cancelled=by_status[TaskStatus.CANCELLED],
            by_type=dict(by_type),
            last_updated=self._clock(),
        )

    def list_available_task_types(self) -> list[str]:
        return self.dispatcher.registry.list_task_types()

    async def get_health(self) -> JSONDict:
        """Health summary for task execution."""
        try:
            stats = await self.get_execution_stats()
        except Exception as e:
            logger.error(f"Error retrieving health status: {e}", exc_info=True)
            return {
                "status": "Unhealthy",
                "timestamp": self._clock().isoformat(),
                "error": str(e),
            }

        task_types = self.list_available_task_types()
        return {
            "status": "Healthy",
            "timestamp": self._clock().isoformat(),
            "task_execution": {
                "available_executors": len(task_types),
                "registered_task_types": task_types,
                "running_tasks": stats.running,
                "pending_tasks": stats.pending,
            },
            "statistics": stats.to_dict(),
        }
