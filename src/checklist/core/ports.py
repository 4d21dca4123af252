# src/checklist/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task store depends on a Protocol instead of a concrete database client.
This keeps the SQLite and hosted (REST) backends swappable and makes testing easier.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

Row = dict[str, Any]
# A stored task as plain column -> value mapping.

Filters = Mapping[str, Any]
# Equality predicates joined with AND: {"deleted": False}.

OrderBy = Sequence[tuple[str, bool]]
# (column, ascending) pairs applied in sequence.


class TaskTable(Protocol):
    """
    Persistence collaborator over a single "tasks" collection.

    Every method may raise PersistenceError. Rows returned by insert carry the
    collaborator-assigned "id" and "created_at".
    """

    async def select(self, filters: Filters | None = None, order_by: OrderBy = ()) -> list[Row]: ...

    async def insert(self, rows: Sequence[Mapping[str, Any]]) -> list[Row]: ...

    async def update(self, task_id: Any, fields: Mapping[str, Any]) -> None: ...

    async def update_many(self, task_ids: Sequence[Any], fields: Mapping[str, Any]) -> None: ...

    async def delete(self, task_id: Any) -> None: ...

    async def close(self) -> None: ...
