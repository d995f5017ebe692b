"""Executor registry - maps task types to executors."""

from flightclub.core.logging import get_logger
from flightclub.tasks.execution import TaskExecutor

logger = get_logger("tasks.registry")


class ExecutorRegistry:
    """Case-insensitive registry of task executors."""

    def __init__(self, executors: list[TaskExecutor] | None = None):
        # normalized type -> (registered name, executor)
        self._executors: dict[str, tuple[str, TaskExecutor]] = {}
        for executor in executors or []:
            self.register(executor)

    @staticmethod
    def _key(task_type: str) -> str:
        return task_type.strip().lower()

    def register(self, executor: TaskExecutor) -> None:
        """Register an executor under its task type."""
        if not executor.task_type or not executor.task_type.strip():
            raise ValueError("Executor must declare a task_type")
        key = self._key(executor.task_type)
        if key in self._executors:
            logger.warning(f"Executor for {executor.task_type} already registered, overwriting")
        self._executors[key] = (executor.task_type, executor)
        logger.info(f"Registered executor for task type: {executor.task_type}")

    def get(self, task_type: str) -> TaskExecutor | None:
        """Get executor by task type."""
        entry = self._executors.get(self._key(task_type))
        return entry[1] if entry else None

    def has_executor(self, task_type: str) -> bool:
        """Check if an executor exists for the task type."""
        return self._key(task_type) in self._executors

    def list_task_types(self) -> list[str]:
        """Registered task types in sorted order."""
        return sorted((name for name, _ in self._executors.values()), key=str.lower)

    def __len__(self) -> int:
        return len(self._executors)
