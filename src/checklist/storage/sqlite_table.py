# src/checklist/storage/sqlite_table.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..core.ports import Filters, OrderBy, Row
from ..errors import PersistenceError

logger = logging.getLogger(__name__)

COLUMNS = ("id", "name", "checked", "timestamp", "deleted", "level", "created_at")
_WRITABLE = frozenset(COLUMNS) - {"id", "created_at"}
_BOOL_COLUMNS = frozenset({"checked", "deleted"})


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


class SQLiteTaskTable:
    """
    Local "tasks" table in SQLite, implementing the TaskTable port.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Each call opens its own short-lived connection and runs in a worker thread,
    so the event loop is never blocked on disk I/O.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._ensure_schema()
        except sqlite3.Error as exc:
            raise PersistenceError(f"cannot open task table at {self._db_path}: {exc}") from exc
        logger.info("SQLiteTaskTable ready db=%s", self._db_path)

    async def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    checked INTEGER NOT NULL DEFAULT 0,
                    timestamp TEXT NOT NULL DEFAULT '',
                    deleted INTEGER NOT NULL DEFAULT 0,
                    level INTEGER,
                    created_at TEXT NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SQLiteTaskTable migration: added column %s", name)

            # Databases created before soft delete and levels existed.
            add_col("timestamp", "TEXT NOT NULL DEFAULT ''")
            add_col("deleted", "INTEGER NOT NULL DEFAULT 0")
            add_col("level", "INTEGER")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created ON tasks(created_at)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _column(name: str) -> str:
        if name not in COLUMNS:
            raise PersistenceError(f"unknown column {name!r}")
        return name

    @staticmethod
    def _to_db(name: str, value: Any) -> Any:
        if name in _BOOL_COLUMNS:
            return 1 if value else 0
        return value

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Row:
        return {
            "id": int(row["id"]),
            "name": str(row["name"] or ""),
            "checked": bool(row["checked"]),
            "timestamp": str(row["timestamp"] or ""),
            "deleted": bool(row["deleted"]),
            "level": int(row["level"]) if row["level"] is not None else None,
            "created_at": str(row["created_at"]),
        }

    def _set_clause(self, fields: Mapping[str, Any]) -> tuple[str, list[Any]]:
        if not fields:
            raise PersistenceError("update without fields")
        parts: list[str] = []
        params: list[Any] = []
        for name, value in fields.items():
            if name not in _WRITABLE:
                raise PersistenceError(f"column {name!r} is not writable")
            parts.append(f"{name} = ?")
            params.append(self._to_db(name, value))
        return ", ".join(parts), params

    async def _run(self, fn, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as exc:
            raise PersistenceError(f"sqlite: {exc}") from exc

    # ---- sync implementations (run in a worker thread) ----

    def _select_sync(self, filters: Filters | None, order_by: OrderBy) -> list[Row]:
        sql = "SELECT * FROM tasks"
        params: list[Any] = []
        if filters:
            where = []
            for name, value in filters.items():
                where.append(f"{self._column(name)} = ?")
                params.append(self._to_db(name, value))
            sql += " WHERE " + " AND ".join(where)

        order = [f"{self._column(name)} {'ASC' if asc else 'DESC'}" for name, asc in order_by]
        # Rows inserted within the same microsecond keep insertion order.
        order.append("id ASC")
        sql += " ORDER BY " + ", ".join(order)

        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            return [self._row_to_dict(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _insert_sync(self, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            ids: list[int] = []
            for row in rows:
                name = str(row.get("name") or "").strip()
                if not name:
                    raise PersistenceError("name is required")
                cur.execute(
                    """
                    INSERT INTO tasks(name, checked, timestamp, deleted, level, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        name,
                        1 if row.get("checked") else 0,
                        str(row.get("timestamp") or ""),
                        1 if row.get("deleted") else 0,
                        row.get("level"),
                        _utc_now_iso(),
                    ),
                )
                if cur.lastrowid is None:
                    raise PersistenceError("SQLite did not return lastrowid for tasks insert")
                ids.append(int(cur.lastrowid))
            conn.commit()

            if not ids:
                return []
            placeholders = ",".join("?" for _ in ids)
            cur.execute(f"SELECT * FROM tasks WHERE id IN ({placeholders}) ORDER BY id ASC", ids)
            out = [self._row_to_dict(r) for r in cur.fetchall()]
            logger.debug("Inserted task rows ids=%s", ids)
            return out
        finally:
            conn.close()

    def _update_sync(self, task_ids: Sequence[Any], fields: Mapping[str, Any], *, require_match: bool) -> int:
        set_sql, params = self._set_clause(fields)
        ids = [int(i) for i in task_ids]
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)

        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"UPDATE tasks SET {set_sql} WHERE id IN ({placeholders})",
                (*params, *ids),
            )
            conn.commit()
            if require_match and cur.rowcount == 0:
                raise PersistenceError(f"no task row matched id {ids[0]}")
            return cur.rowcount
        finally:
            conn.close()

    def _delete_sync(self, task_id: Any) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
        finally:
            conn.close()

    # ---- TaskTable ----

    async def select(self, filters: Filters | None = None, order_by: OrderBy = ()) -> list[Row]:
        return await self._run(self._select_sync, filters, order_by)

    async def insert(self, rows: Sequence[Mapping[str, Any]]) -> list[Row]:
        return await self._run(self._insert_sync, rows)

    async def update(self, task_id: Any, fields: Mapping[str, Any]) -> None:
        await self._run(lambda: self._update_sync([task_id], fields, require_match=True))

    async def update_many(self, task_ids: Sequence[Any], fields: Mapping[str, Any]) -> None:
        n = await self._run(lambda: self._update_sync(task_ids, fields, require_match=False))
        logger.debug("Batch update touched %d rows", n)

    async def delete(self, task_id: Any) -> None:
        await self._run(self._delete_sync, task_id)
