"""
CLI entry point.

Commands:
- init: Initialize data directory and database
- run: Start the task scheduler
- add: Create a task (add <type> <when> <name> [parameters-json])
- list: List tasks with redacted parameters
- trigger: Execute a task now (trigger <id>)
- stats: Show execution statistics
- types: List registered task types
- health: Show task execution health

Flags:
- --debug: Enable debug logging
"""

import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime

import httpx

from flightclub.core.clock import coerce_utc
from flightclub.core.config import Settings, get_settings
from flightclub.core.logging import get_logger, setup_logging
from flightclub.executors import build_default_registry
from flightclub.security import obfuscate_parameters
from flightclub.tasks.dispatcher import TaskDispatcher
from flightclub.tasks.scheduler import TaskScheduler
from flightclub.tasks.sqlite_store import SQLiteTaskStore
from flightclub.tasks.trigger import TriggerService

USAGE = """Usage: flightclub [--debug] <command>
Commands: init, run, add, list, trigger, stats, types, health
  add <task_type> <scheduled_time ISO-8601> <name> [parameters-json]
  trigger <task_id>
Flags: --debug (enable debug logging to data/flightclub.log)"""


@dataclass
class Engine:
    """Wired engine components sharing one store and HTTP client."""

    store: SQLiteTaskStore
    dispatcher: TaskDispatcher
    trigger: TriggerService


@contextlib.asynccontextmanager
async def open_engine(settings: Settings) -> AsyncIterator[Engine]:
    """Connect the store and HTTP client, build the registry, close on exit."""
    store = SQLiteTaskStore(settings.db_path)
    await store.connect()
    client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    try:
        registry = build_default_registry(settings, client)
        dispatcher = TaskDispatcher(store, registry)
        yield Engine(store=store, dispatcher=dispatcher, trigger=TriggerService(dispatcher, store))
    finally:
        await client.aclose()
        await store.close()


def main() -> int:
    """Main entry point."""
    settings = get_settings()

    debug_mode = "--debug" in sys.argv
    if debug_mode:
        sys.argv.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.INFO
    log_file = settings.data_dir / "flightclub.log"
    setup_logging(level=log_level, log_file=log_file)
    logger = get_logger("cli")

    if len(sys.argv) < 2:
        print(USAGE)
        return 1

    command, args = sys.argv[1], sys.argv[2:]

    if command == "init":
        return asyncio.run(_init(settings))
    if command == "run":
        logger.info("Starting task scheduler")
        return asyncio.run(_run_scheduler(settings))
    if command == "add":
        return asyncio.run(_add_task(settings, args))
    if command == "list":
        return asyncio.run(_list_tasks(settings))
    if command == "trigger":
        return asyncio.run(_trigger(settings, args))
    if command == "stats":
        return asyncio.run(_stats(settings))
    if command == "types":
        return asyncio.run(_types(settings))
    if command == "health":
        return asyncio.run(_health(settings))

    print(f"Unknown command: {command}")
    print(USAGE)
    return 1


async def _init(settings: Settings) -> int:
    store = SQLiteTaskStore(settings.db_path)
    await store.connect()
    tasks = await store.list_tasks()
    await store.close()
    print(f"Database ready: {settings.db_path} ({len(tasks)} tasks)")
    return 0


async def _run_scheduler(settings: Settings) -> int:
    """Run the scheduler until SIGINT/SIGTERM."""
    logger = get_logger("cli.run")
    shutdown = asyncio.Event()

    def handle_shutdown_signal(signum: int, frame: object | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, initiating graceful shutdown")
        shutdown.set()

    signal.signal(signal.SIGINT, handle_shutdown_signal)
    signal.signal(signal.SIGTERM, handle_shutdown_signal)

    async with open_engine(settings) as engine:
        types = engine.trigger.list_available_task_types()
        logger.info(f"Registered task types: {', '.join(types) or 'none'}")

        scheduler = TaskScheduler(
            engine.store,
            engine.dispatcher,
            poll_interval=settings.poll_interval_seconds,
            max_concurrent=settings.max_concurrent_tasks,
            task_timeout=settings.task_timeout_seconds,
        )
        try:
            await scheduler.start()
            print("Task scheduler running. Press Ctrl+C to stop.")

            while not shutdown.is_set():
                await asyncio.sleep(0.5)

            print("\nShutting down gracefully...")
        except Exception as e:
            logger.error(f"Error running scheduler: {e}", exc_info=True)
            print(f"Error: {e}")
            return 1
        finally:
            await scheduler.stop()
    return 0


async def _add_task(settings: Settings, args: list[str]) -> int:
    if len(args) < 3:
        print(USAGE)
        return 1

    task_type, when, name = args[0], args[1], args[2]
    parameters = args[3] if len(args) > 3 else None
    try:
        scheduled_time = coerce_utc(datetime.fromisoformat(when))
    except ValueError:
        print(f"Invalid scheduled time: {when}")
        return 1
    if parameters is not None:
        try:
            json.loads(parameters)
        except json.JSONDecodeError as e:
            print(f"Invalid parameters JSON: {e}")
            return 1

    store = SQLiteTaskStore(settings.db_path)
    await store.connect()
    try:
        task = await store.create_task(
            name=name,
            task_type=task_type,
            scheduled_time=scheduled_time,
            parameters=parameters,
            created_by="cli",
        )
    finally:
        await store.close()
    print(f"Created task {task.id}: {task.name} ({task.task_type}) at {task.scheduled_time.isoformat()}")
    return 0


async def _list_tasks(settings: Settings) -> int:
    store = SQLiteTaskStore(settings.db_path)
    await store.connect()
    try:
        tasks = await store.list_tasks()
    finally:
        await store.close()

    if not tasks:
        print("No tasks.")
        return 0
    for task in tasks:
        data = task.to_dict()
        data["parameters"] = obfuscate_parameters(task.parameters, task.task_type)
        print(json.dumps(data))
    return 0


async def _trigger(settings: Settings, args: list[str]) -> int:
    if not args or not args[0].isdigit():
        print("Usage: flightclub trigger <task_id>")
        return 1

    async with open_engine(settings) as engine:
        result = await engine.trigger.trigger(int(args[0]))
    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0 if result.success else 1


async def _stats(settings: Settings) -> int:
    async with open_engine(settings) as engine:
        stats = await engine.trigger.get_execution_stats()
    print(json.dumps(stats.to_dict(), indent=2))
    return 0


async def _types(settings: Settings) -> int:
    async with open_engine(settings) as engine:
        types = engine.trigger.list_available_task_types()
    for task_type in types:
        print(task_type)
    return 0


async def _health(settings: Settings) -> int:
    async with open_engine(settings) as engine:
        health = await engine.trigger.get_health()
    print(json.dumps(health, indent=2))
    return 0 if health["status"] == "Healthy" else 1


if __name__ == "__main__":
    sys.exit(main())
