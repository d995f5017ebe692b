"""
Shared type definitions.

Core data structures used across modules.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, TypeAlias

from flightclub.core.clock import utc_now

JSONDict: TypeAlias = dict[str, Any]
StringDict: TypeAlias = dict[str, str]


class ErrorCategory(Enum):
    """Machine-readable cause of a failed execution."""

    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    NO_EXECUTOR = "no_executor"
    INVALID_PARAMETERS = "invalid_parameters"
    AUTH_FAILURE = "auth_failure"
    TRANSIENT = "transient"  # Retryable failures that ran out of attempts
    REJECTED = "rejected"  # External service refused the request
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    NETWORK = "network"
    PROTOCOL = "external_protocol_error"
    UNEXPECTED = "unexpected"


@dataclass
class ExecutionResult:
    """Result of one task execution, returned by executors and the dispatcher."""

    success: bool
    message: str | None = None
    error: str | None = None  # Diagnostic detail, never shown as the headline
    data: JSONDict | None = None
    category: ErrorCategory | None = None
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime = field(default_factory=utc_now)

    @property
    def duration(self) -> timedelta:
        return self.finished_at - self.started_at

    @property
    def cancelled(self) -> bool:
        return self.category in (ErrorCategory.CANCELLED, ErrorCategory.TIMEOUT)

    @classmethod
    def ok(
        cls,
        message: str | None = None,
        data: JSONDict | None = None,
        started_at: datetime | None = None,
    ) -> "ExecutionResult":
        """Build a successful result finishing now."""
        now = utc_now()
        return cls(
            success=True,
            message=message,
            data=data,
            started_at=started_at or now,
            finished_at=now,
        )

    @classmethod
    def fail(
        cls,
        message: str,
        error: str | None = None,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        data: JSONDict | None = None,
        started_at: datetime | None = None,
    ) -> "ExecutionResult":
        """Build a failed result finishing now."""
        now = utc_now()
        return cls(
            success=False,
            message=message,
            error=error,
            data=data,
            category=category,
            started_at=started_at or now,
            finished_at=now,
        )

    def to_dict(self) -> JSONDict:
        """Convert to a JSON-friendly dict."""
        return {
            "success": self.success,
            "message": self.message,
            "error": self.error,
            "category": self.category.value if self.category else None,
            "data": self.data,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": round(self.duration.total_seconds() * 1000, 3),
        }
