# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from checklist.core.state import AppState
from checklist.tasks.task_models import TaskPolicy
from checklist.tasks.task_store import TaskStore

from .fakes import FakeTaskTable, FixedClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="checklist-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        backend="sqlite",
        rest_url="",
        rest_key="",
        rest_table="tasks",
        rest_timeout_seconds=None,
        max_records=3,
        default_tasks=["Daily study", "Stretch"],
        soft_delete=True,
        checked_first=True,
        levels=True,
        min_level=1,
        max_level=2,
        default_level=1,
        consistency="local",
    )


@pytest.fixture()
def policy(settings: SimpleNamespace) -> TaskPolicy:
    return TaskPolicy.from_settings(settings)


@pytest.fixture()
def table() -> FakeTaskTable:
    return FakeTaskTable()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def store(table: FakeTaskTable, policy: TaskPolicy, clock: FixedClock) -> TaskStore:
    return TaskStore(table, policy, clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    return AppState(settings=settings, task_store=store)
