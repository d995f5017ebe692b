"""
Core module - configuration, logging, shared types.

Components:
- config: Settings management via pydantic-settings
- types: Shared data structures (ExecutionResult, ErrorCategory)
- clock: UTC time helpers
- logging: Structured logging setup
"""

from flightclub.core.config import Settings
from flightclub.core.types import ErrorCategory, ExecutionResult

__all__ = ["Settings", "ExecutionResult", "ErrorCategory"]
