# src/checklist/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_models import EditSession
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """
    Runtime state shared by the front end.

    editing is the single active edit slot: at most one task is being edited.
    """

    settings: Any
    task_store: TaskStore
    editing: EditSession | None = None
