"""SQLite task store backed by aiosqlite."""

import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite

from flightclub.core.clock import coerce_utc, utc_now
from flightclub.core.logging import get_logger
from flightclub.tasks.store import TaskStore
from flightclub.tasks.types import ScheduledTask, TaskStatus

logger = get_logger("tasks.sqlite_store")


# Python 3.12+ fix: Register datetime adapters explicitly
def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return coerce_utc(dt).isoformat()


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return coerce_utc(datetime.fromisoformat(val.decode()))


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)

SCHEMA = """
CREATE TABLE IF NOT EXISTS scheduled_tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT,
    scheduled_time DATETIME NOT NULL,
    task_type TEXT NOT NULL,
    parameters TEXT,
    status TEXT NOT NULL DEFAULT 'Pending',
    priority INTEGER NOT NULL DEFAULT 1,
    created_at DATETIME NOT NULL,
    updated_at DATETIME,
    created_by TEXT
);

CREATE INDEX IF NOT EXISTS idx_tasks_status_time
    ON scheduled_tasks(status, scheduled_time);
"""

_COLUMNS = (
    "id, name, description, scheduled_time, task_type, parameters, "
    "status, priority, created_at, updated_at, created_by"
)


def _row_to_task(row: tuple) -> ScheduledTask:
    return ScheduledTask(
        id=row[0],
        name=row[1],
        description=row[2],
        scheduled_time=row[3],
        task_type=row[4],
        parameters=row[5],
        status=TaskStatus.parse(row[6]),
        priority=row[7],
        created_at=row[8],
        updated_at=row[9],
        created_by=row[10],
    )


class SQLiteTaskStore(TaskStore):
    """SQLite-backed task store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Use detect_types to enable our custom datetime converters
        self._conn = await aiosqlite.connect(
            self.db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        )
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to task store: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Task store not connected. Call connect() first.")
        return self._conn

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
        cursor = await self.conn.execute(
            """INSERT INTO scheduled_tasks
               (name, description, scheduled_time, task_type, parameters,
                status, priority, created_at, created_by)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                name,
                description,
                coerce_utc(scheduled_time),
                task_type,
                parameters,
                TaskStatus.PENDING.value,
                priority,
                utc_now(),
                created_by,
            ),
        )
        await self.conn.commit()
        task_id = cursor.lastrowid
        await cursor.close()

        logger.info(f"Created task {task_id}: {name} ({task_type})")
        task = await self.get_task(task_id)
        if task is None:
            raise RuntimeError(f"Task {task_id} missing right after insert")
        return task

    async def get_task(self, task_id: int) -> ScheduledTask | None:
        async with self.conn.execute(
            f"SELECT {_COLUMNS} FROM scheduled_tasks WHERE id = ?", (task_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return _row_to_task(row) if row else None

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        task_type: str | None = None,
    ) -> list[ScheduledTask]:
        query = f"SELECT {_COLUMNS} FROM scheduled_tasks"
        conditions = []
        values: list = []
        if status is not None:
            conditions.append("status = ?")
            values.append(status.value)
        if task_type:
            conditions.append("lower(task_type) = lower(?)")
            values.append(task_type)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY scheduled_time, id"

        results = []
        async with self.conn.execute(query, values) as cursor:
            async for row in cursor:
                results.append(_row_to_task(row))
        return results

    async def update_status(
        self,
        task_id: int,
        status: TaskStatus,
        expected: TaskStatus | None = None,
    ) -> ScheduledTask | None:
        sql = "UPDATE scheduled_tasks SET status = ?, updated_at = ? WHERE id = ?"
        values: list = [status.value, utc_now(), task_id]
        if expected is not None:
            sql += " AND status = ?"
            values.append(expected.value)

        cursor = await self.conn.execute(sql, values)
        await self.conn.commit()
        updated = cursor.rowcount
        await cursor.close()

        if not updated:
            return None
        logger.info(f"Updated task {task_id} status to: {status.value}")
        return await self.get_task(task_id)

    async def delete_task(self, task_id: int) -> bool:
        cursor = await self.conn.execute("DELETE FROM scheduled_tasks WHERE id = ?", (task_id,))
        await self.conn.commit()
        deleted = cursor.rowcount
        await cursor.close()
        return bool(deleted)
