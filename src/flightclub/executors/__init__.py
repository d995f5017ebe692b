"""Concrete task executors and the default registry."""

import httpx

from flightclub.core.config import Settings
from flightclub.executors.notification import NotificationExecutor
from flightclub.executors.reservation import ReserveBuntzenExecutor
from flightclub.tasks.registry import ExecutorRegistry


def build_default_registry(settings: Settings, client: httpx.AsyncClient) -> ExecutorRegistry:
    """Registry with every executor enabled by the settings."""
    registry = ExecutorRegistry()
    registry.register(ReserveBuntzenExecutor.from_settings(settings, client))
    if settings.enable_notifications:
        registry.register(NotificationExecutor())
    return registry


__all__ = [
    "NotificationExecutor",
    "ReserveBuntzenExecutor",
    "build_default_registry",
]
