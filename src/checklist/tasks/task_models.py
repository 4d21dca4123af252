# src/checklist/tasks/task_models.py

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"
# Shown without seconds in the list view.
DISPLAY_TIMESTAMP_LEN = len("YYYY/MM/DD HH:MM")


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def display_timestamp(timestamp: str | None) -> str:
    """Trim a stored 'YYYY/MM/DD HH:MM:SS' timestamp to minutes for display."""
    if not timestamp:
        return ""
    return timestamp[:DISPLAY_TIMESTAMP_LEN]


def _as_bool(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "t", "yes"}
    return bool(raw)


@dataclass(slots=True)
class Task:
    id: Any
    name: str
    checked: bool = False
    timestamp: str = ""
    deleted: bool = False
    level: int | None = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, default_level: int | None = None) -> Task:
        """
        Build a Task from a stored row.

        Rows written by older schemas may lack "deleted" or "level";
        those default to not-deleted and default_level.
        """
        level = row.get("level")
        return cls(
            id=row["id"],
            name=str(row.get("name") or ""),
            checked=_as_bool(row.get("checked", False)),
            timestamp=str(row.get("timestamp") or ""),
            deleted=_as_bool(row.get("deleted", False)),
            level=int(level) if level is not None else default_level,
            created_at=str(row.get("created_at") or ""),
        )


@dataclass(frozen=True, slots=True)
class TaskPolicy:
    """
    Lifecycle rules for one deployment of the checklist.

    - max_records: retention ceiling over all stored rows (visible + soft-deleted)
    - default_tasks: labels seeded into an empty list
    - soft_delete: delete marks rows hidden instead of removing them,
      and the visible set filters on deleted = false
    - checked_first: incomplete tasks sort before completed ones
    - levels: priority levels are stored; default_level applies when none is given
    - reload_after_write: re-read the list after each mutation instead of patching it locally
    """

    max_records: int = 10
    default_tasks: tuple[str, ...] = ("Daily study",)
    soft_delete: bool = True
    checked_first: bool = True
    levels: bool = True
    min_level: int = 1
    max_level: int = 2
    default_level: int = 1
    reload_after_write: bool = False

    def __post_init__(self) -> None:
        if self.max_records < 1:
            raise ValueError("max_records must be >= 1")
        if self.levels and not (self.min_level <= self.default_level <= self.max_level):
            raise ValueError("default_level must lie within [min_level, max_level]")

    @classmethod
    def from_settings(cls, settings: Any) -> TaskPolicy:
        return cls(
            max_records=int(settings.max_records),
            default_tasks=tuple(settings.default_tasks),
            soft_delete=bool(settings.soft_delete),
            checked_first=bool(settings.checked_first),
            levels=bool(settings.levels),
            min_level=int(settings.min_level),
            max_level=int(settings.max_level),
            default_level=int(settings.default_level),
            reload_after_write=(getattr(settings, "consistency", "local") == "reload"),
        )

    def visible_filter(self) -> dict[str, Any]:
        return {"deleted": False} if self.soft_delete else {}

    def visible_order(self) -> list[tuple[str, bool]]:
        order = [("created_at", True)]
        if self.checked_first:
            order.insert(0, ("checked", True))
        return order

    def sort_key(self, task: Task) -> tuple[Any, ...]:
        """Local equivalent of visible_order(), used when patching the in-memory list."""
        if self.checked_first:
            return (task.checked, task.created_at)
        return (task.created_at,)

    def new_row(self, name: str, level: int | None = None) -> dict[str, Any]:
        row: dict[str, Any] = {"name": name, "checked": False, "timestamp": ""}
        if self.soft_delete:
            row["deleted"] = False
        if self.levels:
            row["level"] = self.default_level if level is None else level
        return row


@dataclass(slots=True)
class EditSession:
    """The one task currently being edited in the front end."""

    task_id: Any
    draft: str
    level: int | None = None
