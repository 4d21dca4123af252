# src/checklist/tasks/task_store.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

from ..core.ports import Row, TaskTable
from ..errors import NotFoundError, PersistenceError, ValidationError
from .task_models import Task, TaskPolicy, format_timestamp

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskStore:
    """
    Bounded-retention task store on top of a TaskTable collaborator.

    Owns the in-memory visible list the front end renders from. Every mutation is
    persisted first and only then applied to the list, so a failed write leaves the
    list exactly as it was.

    Retention: before each insert, if the table already holds max_records rows
    (soft-deleted ones included), exactly one row is purged: the oldest
    soft-deleted row, else the oldest row overall.

    Concurrency: one caller action at a time. Only load_visible_tasks() is
    serialized, so one instance never seeds the defaults twice.
    """

    def __init__(
        self,
        table: TaskTable,
        policy: TaskPolicy | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._table = table
        self._policy = policy or TaskPolicy()
        self._clock = clock
        self._tasks: list[Task] = []
        self._load_lock = asyncio.Lock()

    @property
    def policy(self) -> TaskPolicy:
        return self._policy

    @property
    def tasks(self) -> list[Task]:
        """Snapshot of the currently loaded visible list, in display order."""
        return list(self._tasks)

    async def close(self) -> None:
        await self._table.close()

    # ---- low-level helpers ----

    async def _io(self, what: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"{what} failed: {exc}") from exc

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _to_task(self, row: Row) -> Task:
        default_level = self._policy.default_level if self._policy.levels else None
        task = Task.from_row(row, default_level=default_level)
        if not self._policy.levels:
            task.level = None
        return task

    def _find(self, task_id: Any) -> Task:
        for task in self._tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(task_id)

    def _check_level(self, level: int | None) -> None:
        if level is None:
            return
        if not self._policy.levels:
            raise ValidationError("priority levels are disabled")
        if not (self._policy.min_level <= level <= self._policy.max_level):
            raise ValidationError(
                f"level {level} outside [{self._policy.min_level}, {self._policy.max_level}]"
            )

    def _resort(self) -> None:
        self._tasks.sort(key=self._policy.sort_key)

    def _drop(self, task_id: Any) -> None:
        self._tasks = [t for t in self._tasks if t.id != task_id]

    async def _after_write(self) -> None:
        # Reload goes through the seeding path so an emptied list is re-seeded.
        if self._policy.reload_after_write:
            await self.load_visible_tasks()
        else:
            self._resort()

    # ---- reads ----

    async def _load(self) -> list[Task]:
        rows = await self._io(
            "load tasks",
            self._table.select(self._policy.visible_filter(), self._policy.visible_order()),
        )
        self._tasks = [self._to_task(r) for r in rows]
        logger.debug("Loaded %d visible tasks", len(self._tasks))
        return self.tasks

    async def load_visible_tasks(self) -> list[Task]:
        """
        Load the visible list; seed the configured defaults when it is empty.

        Raises PersistenceError when the read (or the seed insert) fails.
        """
        async with self._load_lock:
            tasks = await self._load()
            if tasks:
                return tasks
            return await self.seed_defaults()

    async def count_records(self) -> int:
        rows = await self._io("count tasks", self._table.select(None, [("created_at", True)]))
        return len(rows)

    # ---- writes ----

    async def seed_defaults(self) -> list[Task]:
        """
        Insert the default task list and make it the visible list.

        Not idempotent on its own; load_visible_tasks() only calls it for an empty list.
        """
        rows = [self._policy.new_row(name) for name in self._policy.default_tasks]
        if not rows:
            self._tasks = []
            return []
        inserted = await self._io("seed default tasks", self._table.insert(rows))
        self._tasks = [self._to_task(r) for r in inserted]
        self._resort()
        logger.info("Seeded %d default tasks", len(self._tasks))
        return self.tasks

    async def enforce_retention(self, max_records: int | None = None) -> Task | None:
        """
        Purge one row if the table is at or above the ceiling.

        Returns the purged task, or None when under the ceiling.
        """
        ceiling = self._policy.max_records if max_records is None else max_records
        if ceiling < 1:
            raise ValueError("max_records must be >= 1")
        rows = await self._io("read all tasks", self._table.select(None, [("created_at", True)]))
        if not rows or len(rows) < ceiling:
            return None

        all_tasks = [self._to_task(r) for r in rows]
        victim = next((t for t in all_tasks if t.deleted), None) or all_tasks[0]

        await self._io("purge task", self._table.delete(victim.id))
        self._drop(victim.id)
        logger.info(
            "Retention purge id=%s deleted=%s (stored=%d ceiling=%d)",
            victim.id,
            victim.deleted,
            len(rows),
            ceiling,
        )
        return victim

    async def add_task(self, name: str, level: int | None = None) -> Task | None:
        """
        Add a task after making room for it.

        Returns None (and writes nothing) for a blank name. If pruning fails the
        insert is not attempted.
        """
        name = (name or "").strip()
        if not name:
            return None
        self._check_level(level)

        await self.enforce_retention()

        inserted = await self._io("insert task", self._table.insert([self._policy.new_row(name, level)]))
        if not inserted:
            raise PersistenceError("insert returned no row")
        task = self._to_task(inserted[0])
        logger.info("Task added id=%s level=%s", task.id, task.level)

        self._tasks.append(task)
        await self._after_write()
        return task

    async def toggle_completion(self, task_id: Any) -> Task:
        task = self._find(task_id)
        checked = not task.checked
        timestamp = self._now() if checked else ""

        await self._io(
            "update task",
            self._table.update(task_id, {"checked": checked, "timestamp": timestamp}),
        )

        task.checked = checked
        task.timestamp = timestamp
        logger.info("Task %s checked=%s", task_id, checked)
        await self._after_write()
        return task

    async def rename_task(self, task_id: Any, new_name: str, new_level: int | None = None) -> Task:
        """
        Rename a task and/or change its level.

        Blank names cancel, and an unchanged name and level is a no-op save;
        neither writes anything. Otherwise the timestamp is refreshed with the edit.
        """
        task = self._find(task_id)
        name = (new_name or "").strip()
        if not name:
            return task
        self._check_level(new_level)

        level_changed = new_level is not None and new_level != task.level
        if name == task.name and not level_changed:
            return task

        fields: dict[str, Any] = {"name": name, "timestamp": self._now()}
        if level_changed:
            fields["level"] = new_level

        await self._io("update task", self._table.update(task_id, fields))

        task.name = name
        task.timestamp = fields["timestamp"]
        if level_changed:
            task.level = new_level
        logger.info("Task %s renamed (level=%s)", task_id, task.level)
        await self._after_write()
        return task

    async def soft_delete_task(self, task_id: Any) -> None:
        """
        Hide a task by marking it deleted; the row stays until retention purges it.

        Raises ValidationError when the policy has soft delete turned off.
        """
        if not self._policy.soft_delete:
            raise ValidationError("soft delete is disabled; use hard_delete_task")
        self._find(task_id)
        await self._io("soft-delete task", self._table.update(task_id, {"deleted": True}))
        self._drop(task_id)
        logger.info("Task %s soft-deleted", task_id)
        await self._after_write()

    async def hard_delete_task(self, task_id: Any) -> None:
        self._find(task_id)
        await self._io("delete task", self._table.delete(task_id))
        self._drop(task_id)
        logger.info("Task %s deleted", task_id)
        await self._after_write()

    async def delete_task(self, task_id: Any) -> None:
        """Delete the way the policy says: soft when soft_delete is on, physical otherwise."""
        if self._policy.soft_delete:
            await self.soft_delete_task(task_id)
        else:
            await self.hard_delete_task(task_id)

    async def uncheck_all(self) -> list[Task]:
        ids = [t.id for t in self._tasks]
        if not ids:
            return []

        await self._io(
            "uncheck tasks",
            self._table.update_many(ids, {"checked": False, "timestamp": ""}),
        )

        for task in self._tasks:
            task.checked = False
            task.timestamp = ""
        logger.info("Unchecked %d tasks", len(ids))
        await self._after_write()
        return self.tasks
