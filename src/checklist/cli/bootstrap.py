# src/checklist/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the persistence backend and wires it into a TaskStore inside AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import TaskTable
from ..core.state import AppState
from ..storage.rest_table import RestTaskTable
from ..storage.sqlite_table import SQLiteTaskTable
from ..tasks.task_models import TaskPolicy
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_task_table(settings) -> TaskTable:
    if settings.backend == "rest":
        return RestTaskTable(
            settings.rest_url,
            settings.rest_key,
            table=settings.rest_table,
            timeout=settings.rest_timeout_seconds,
        )
    return SQLiteTaskTable(settings.tasks_db_path)


def create_initial_state(*, settings=None, table: TaskTable | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the table) injectable makes the app easier to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if table is None:
        table = create_task_table(settings)

    policy = TaskPolicy.from_settings(settings)
    logger.info(
        "Task policy: max_records=%d soft_delete=%s checked_first=%s levels=%s consistency=%s",
        policy.max_records,
        policy.soft_delete,
        policy.checked_first,
        policy.levels,
        "reload" if policy.reload_after_write else "local",
    )

    return AppState(settings=settings, task_store=TaskStore(table, policy))
