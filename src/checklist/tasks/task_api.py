# src/checklist/tasks/task_api.py

from __future__ import annotations

import logging

from ..core.state import AppState
from ..errors import ChecklistError, NotFoundError
from .task_models import EditSession, Task

logger = logging.getLogger(__name__)


def task_at(state: AppState, position: int) -> Task:
    """Return the task shown at 1-based `position` in the loaded list."""
    tasks = state.task_store.tasks
    if position < 1 or position > len(tasks):
        raise NotFoundError(f"#{position}")
    return tasks[position - 1]


def start_editing(state: AppState, task: Task) -> EditSession:
    """
    Open an edit session for `task`.

    Only one task is edited at a time: any previous session is dropped.
    """
    if state.editing is not None and state.editing.task_id != task.id:
        logger.debug("Cancelling edit of task %s", state.editing.task_id)
    state.editing = EditSession(task_id=task.id, draft=task.name, level=task.level)
    return state.editing


def cancel_editing(state: AppState) -> None:
    state.editing = None


async def save_editing(
    state: AppState, new_name: str | None = None, new_level: int | None = None
) -> Task | None:
    """
    Commit the active edit session.

    A missing or blank name keeps the draft and a missing level keeps the
    session level, so a bare save with nothing changed writes nothing.

    The session is closed whether the save succeeds or fails; on failure the
    error propagates and the task keeps its stored name.
    Returns None when there is no active session.
    """
    session = state.editing
    if session is None:
        return None
    if new_name and new_name.strip():
        session.draft = new_name
    if new_level is not None:
        session.level = new_level
    try:
        return await state.task_store.rename_task(session.task_id, session.draft, session.level)
    except ChecklistError:
        logger.warning("Edit of task %s failed; reverting", session.task_id)
        raise
    finally:
        state.editing = None
