"""Task type definitions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from flightclub.core.clock import coerce_utc


class TaskStatus(Enum):
    """Lifecycle status of a scheduled task."""

    PENDING = "Pending"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: "str | TaskStatus") -> "TaskStatus":
        """Parse a status name case-insensitively."""
        if isinstance(value, TaskStatus):
            return value
        for status in cls:
            if status.value.lower() == value.strip().lower():
                return status
        raise ValueError(f"Unknown task status: {value}")


@dataclass
class ScheduledTask:
    """A persisted task waiting for (or done with) execution."""

    id: int
    name: str
    scheduled_time: datetime
    task_type: str
    status: TaskStatus = TaskStatus.PENDING
    description: str | None = None
    parameters: str | None = None  # Opaque blob, usually JSON
    priority: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None

    def __post_init__(self) -> None:
        self.scheduled_time = coerce_utc(self.scheduled_time)

    def is_due(self, now: datetime) -> bool:
        """Pending and scheduled at or before `now`."""
        return self.status == TaskStatus.PENDING and self.scheduled_time <= coerce_utc(now)

    def to_dict(self) -> dict:
        """Convert to dict for storage."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "scheduled_time": self.scheduled_time.isoformat(),
            "task_type": self.task_type,
            "parameters": self.parameters,
            "status": self.status.value,
            "priority": self.priority,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "created_by": self.created_by,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduledTask":
        """Create from dict loaded from storage."""
        return cls(
            id=int(data["id"]),
            name=data["name"],
            description=data.get("description"),
            scheduled_time=_as_datetime(data["scheduled_time"]),
            task_type=data["task_type"],
            parameters=data.get("parameters"),
            status=TaskStatus.parse(data.get("status") or TaskStatus.PENDING.value),
            priority=int(data.get("priority") or 1),
            created_at=_as_datetime(data["created_at"]) if data.get("created_at") else None,
            updated_at=_as_datetime(data["updated_at"]) if data.get("updated_at") else None,
            created_by=data.get("created_by"),
        )


def _as_datetime(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return coerce_utc(value)
    return coerce_utc(datetime.fromisoformat(value))
