"""Task scheduling and execution engine."""

from flightclub.tasks.dispatcher import TaskDispatcher
from flightclub.tasks.execution import ExecutionContext, TaskExecutor
from flightclub.tasks.registry import ExecutorRegistry
from flightclub.tasks.scheduler import SchedulerState, TaskScheduler
from flightclub.tasks.store import InMemoryTaskStore, TaskStore
from flightclub.tasks.trigger import ExecutionStats, TriggerService
from flightclub.tasks.types import ScheduledTask, TaskStatus

__all__ = [
    "ExecutionContext",
    "ExecutionStats",
    "ExecutorRegistry",
    "InMemoryTaskStore",
    "ScheduledTask",
    "SchedulerState",
    "TaskDispatcher",
    "TaskExecutor",
    "TaskScheduler",
    "TaskStatus",
    "TaskStore",
    "TriggerService",
]
