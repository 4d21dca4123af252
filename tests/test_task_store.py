# tests/test_task_store.py

from __future__ import annotations

import asyncio
import re
from dataclasses import replace

import pytest

from checklist.errors import NotFoundError, PersistenceError, ValidationError
from checklist.tasks.task_models import TaskPolicy
from checklist.tasks.task_store import TaskStore

from .fakes import FakeTaskTable, FixedClock

TIMESTAMP_RE = re.compile(r"^\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}$")


def _names(store: TaskStore) -> list[str]:
    return [t.name for t in store.tasks]


async def _add_all(store: TaskStore, *names: str):
    return [await store.add_task(n) for n in names]


# ---- load / seed ----


@pytest.mark.asyncio
async def test_load_seeds_defaults_once(store: TaskStore, table: FakeTaskTable) -> None:
    first = await store.load_visible_tasks()
    assert [t.name for t in first] == ["Daily study", "Stretch"]
    assert all(not t.checked and t.timestamp == "" and not t.deleted for t in first)
    assert all(t.level == 1 for t in first)
    assert all(t.id is not None and t.created_at for t in first)

    second = await store.load_visible_tasks()
    assert [t.id for t in second] == [t.id for t in first]
    assert [op for op, _ in table.writes] == ["insert"]


@pytest.mark.asyncio
async def test_concurrent_loads_on_one_store_seed_once(store: TaskStore, table: FakeTaskTable) -> None:
    a, b = await asyncio.gather(store.load_visible_tasks(), store.load_visible_tasks())
    assert len(a) == len(b) == 2
    assert len(table.rows) == 2


@pytest.mark.asyncio
async def test_load_orders_unchecked_first_then_oldest(store: TaskStore, table: FakeTaskTable) -> None:
    await _add_all(store, "A", "B", "C")
    a = store.tasks[0]
    await store.toggle_completion(a.id)
    assert _names(store) == ["B", "C", "A"]

    fresh = TaskStore(table, store.policy)
    assert [t.name for t in await fresh.load_visible_tasks()] == ["B", "C", "A"]


@pytest.mark.asyncio
async def test_load_orders_by_age_only_without_checked_first(table: FakeTaskTable, policy) -> None:
    store = TaskStore(table, replace(policy, checked_first=False))
    await _add_all(store, "A", "B")
    await store.toggle_completion(store.tasks[0].id)
    assert _names(store) == ["A", "B"]
    assert [t.name for t in await store.load_visible_tasks()] == ["A", "B"]


@pytest.mark.asyncio
async def test_load_failure_raises_persistence_error(store: TaskStore, table: FakeTaskTable) -> None:
    table.fail_on.add("select")
    with pytest.raises(PersistenceError):
        await store.load_visible_tasks()


@pytest.mark.asyncio
async def test_unexpected_collaborator_errors_become_persistence_errors(policy) -> None:
    class BrokenTable(FakeTaskTable):
        async def select(self, filters=None, order_by=()):
            raise RuntimeError("socket closed")

    store = TaskStore(BrokenTable(), policy)
    with pytest.raises(PersistenceError) as excinfo:
        await store.load_visible_tasks()
    assert isinstance(excinfo.value.__cause__, RuntimeError)


# ---- add / retention ----


@pytest.mark.asyncio
async def test_add_blank_name_is_a_silent_noop(store: TaskStore, table: FakeTaskTable) -> None:
    assert await store.add_task("   ") is None
    assert await store.add_task("") is None
    assert table.writes == []


@pytest.mark.asyncio
async def test_add_trims_and_defaults_fields(store: TaskStore) -> None:
    task = await store.add_task("  Buy milk  ")
    assert task is not None
    assert task.name == "Buy milk"
    assert task.checked is False
    assert task.timestamp == ""
    assert task.deleted is False
    assert task.level == 1
    assert store.tasks == [task]


@pytest.mark.asyncio
async def test_add_with_level_and_out_of_range_level(store: TaskStore, table: FakeTaskTable) -> None:
    task = await store.add_task("Urgent", 2)
    assert task is not None and task.level == 2

    with pytest.raises(ValidationError):
        await store.add_task("Too urgent", 3)
    assert len(table.rows) == 1


@pytest.mark.asyncio
async def test_record_count_never_exceeds_ceiling(store: TaskStore, table: FakeTaskTable) -> None:
    for i in range(8):
        await store.add_task(f"task {i}")
        assert len(table.rows) <= store.policy.max_records
    assert [r["name"] for r in table.rows] == ["task 5", "task 6", "task 7"]
    assert _names(store) == ["task 5", "task 6", "task 7"]


@pytest.mark.asyncio
async def test_retention_purges_soft_deleted_record_first(store: TaskStore, table: FakeTaskTable) -> None:
    a, b, c = await _add_all(store, "A", "B", "C")
    await store.soft_delete_task(b.id)
    assert len(table.rows) == 3

    d = await store.add_task("D")

    assert d is not None
    assert table.by_id(b.id) is None
    assert sorted(r["name"] for r in table.rows) == ["A", "C", "D"]
    assert _names(store) == ["A", "C", "D"]


@pytest.mark.asyncio
async def test_retention_prefers_soft_deleted_even_when_newest(store: TaskStore, table: FakeTaskTable) -> None:
    a, b, c = await _add_all(store, "A", "B", "C")
    await store.soft_delete_task(c.id)

    await store.add_task("D")

    assert table.by_id(c.id) is None
    assert table.by_id(a.id) is not None


@pytest.mark.asyncio
async def test_retention_removes_oldest_when_nothing_soft_deleted(store: TaskStore, table: FakeTaskTable) -> None:
    a, b, c = await _add_all(store, "A", "B", "C")
    await store.toggle_completion(a.id)

    await store.add_task("D")

    assert table.by_id(a.id) is None
    assert _names(store) == ["B", "C", "D"]


@pytest.mark.asyncio
async def test_retention_removes_exactly_one_record(table: FakeTaskTable, policy) -> None:
    for name in ["A", "B", "C", "D", "E"]:
        await table.insert([{"name": name, "checked": False, "timestamp": "", "deleted": False}])
    store = TaskStore(table, policy)

    purged = await store.enforce_retention()

    assert purged is not None and purged.name == "A"
    assert len(table.rows) == 4


@pytest.mark.asyncio
async def test_retention_under_ceiling_is_noop(store: TaskStore, table: FakeTaskTable) -> None:
    await _add_all(store, "A")
    assert await store.enforce_retention() is None
    assert [op for op, _ in table.writes] == ["insert"]


@pytest.mark.asyncio
async def test_retention_rejects_ceiling_below_one(store: TaskStore, table: FakeTaskTable) -> None:
    with pytest.raises(ValueError):
        await store.enforce_retention(0)
    assert table.writes == []


@pytest.mark.asyncio
async def test_retention_on_empty_table_is_noop(store: TaskStore, table: FakeTaskTable) -> None:
    assert await store.enforce_retention(1) is None
    assert table.writes == []


@pytest.mark.asyncio
async def test_failed_purge_aborts_insert(store: TaskStore, table: FakeTaskTable) -> None:
    await _add_all(store, "A", "B", "C")
    table.fail_on.add("delete")

    with pytest.raises(PersistenceError):
        await store.add_task("D")

    assert [r["name"] for r in table.rows] == ["A", "B", "C"]
    assert _names(store) == ["A", "B", "C"]


# ---- toggle ----


@pytest.mark.asyncio
async def test_toggle_sets_and_clears_timestamp(store: TaskStore) -> None:
    (a,) = await _add_all(store, "A")

    checked = await store.toggle_completion(a.id)
    assert checked.checked is True
    assert TIMESTAMP_RE.match(checked.timestamp)
    assert checked.timestamp == "2024/05/06 07:08:09"

    unchecked = await store.toggle_completion(a.id)
    assert unchecked.checked is False
    assert unchecked.timestamp == ""


@pytest.mark.asyncio
async def test_toggle_persists_before_updating_view(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    await store.toggle_completion(a.id)
    assert table.by_id(a.id)["checked"] is True
    assert table.by_id(a.id)["timestamp"] == store.tasks[0].timestamp


@pytest.mark.asyncio
async def test_toggle_unknown_id_raises_not_found(store: TaskStore, table: FakeTaskTable) -> None:
    await _add_all(store, "A")
    writes = len(table.writes)
    with pytest.raises(NotFoundError):
        await store.toggle_completion(999)
    assert len(table.writes) == writes


@pytest.mark.asyncio
async def test_toggle_write_failure_leaves_view_untouched(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    table.fail_on.add("update")

    with pytest.raises(PersistenceError):
        await store.toggle_completion(a.id)

    assert store.tasks[0].checked is False
    assert store.tasks[0].timestamp == ""


# ---- rename ----


@pytest.mark.asyncio
async def test_rename_same_name_and_level_writes_nothing(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    writes = len(table.writes)

    result = await store.rename_task(a.id, "  A ", 1)
    result2 = await store.rename_task(a.id, "A")

    assert result.name == "A" and result2.name == "A"
    assert len(table.writes) == writes


@pytest.mark.asyncio
async def test_rename_blank_name_cancels(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    writes = len(table.writes)

    result = await store.rename_task(a.id, "   ", 2)

    assert result.name == "A" and result.level == 1
    assert len(table.writes) == writes


@pytest.mark.asyncio
async def test_rename_persists_name_and_refreshes_timestamp(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")

    result = await store.rename_task(a.id, " Alpha ")

    assert result.name == "Alpha"
    assert TIMESTAMP_RE.match(result.timestamp)
    op, (task_id, fields) = table.writes[-1]
    assert op == "update" and task_id == a.id
    assert fields == {"name": "Alpha", "timestamp": result.timestamp}


@pytest.mark.asyncio
async def test_rename_level_only_change_is_persisted(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")

    result = await store.rename_task(a.id, "A", 2)

    assert result.level == 2
    assert table.by_id(a.id)["level"] == 2


@pytest.mark.asyncio
async def test_rename_rejects_out_of_range_level(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    with pytest.raises(ValidationError):
        await store.rename_task(a.id, "B", 0)
    assert table.by_id(a.id)["name"] == "A"


@pytest.mark.asyncio
async def test_rename_failure_keeps_old_name(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    table.fail_on.add("update")
    with pytest.raises(PersistenceError):
        await store.rename_task(a.id, "B")
    assert _names(store) == ["A"]


@pytest.mark.asyncio
async def test_levels_disabled(table: FakeTaskTable, policy) -> None:
    store = TaskStore(table, replace(policy, levels=False))
    task = await store.add_task("A")
    assert task is not None and task.level is None
    assert "level" not in table.rows[0]
    with pytest.raises(ValidationError):
        await store.rename_task(task.id, "B", 1)


# ---- delete / uncheck ----


@pytest.mark.asyncio
async def test_soft_delete_hides_but_keeps_row(store: TaskStore, table: FakeTaskTable) -> None:
    a, b = await _add_all(store, "A", "B")

    await store.soft_delete_task(a.id)

    assert _names(store) == ["B"]
    assert table.by_id(a.id)["deleted"] is True
    assert [t.name for t in await store.load_visible_tasks()] == ["B"]
    assert await store.count_records() == 2


@pytest.mark.asyncio
async def test_hard_delete_removes_row(store: TaskStore, table: FakeTaskTable) -> None:
    a, b = await _add_all(store, "A", "B")
    await store.hard_delete_task(a.id)
    assert _names(store) == ["B"]
    assert table.by_id(a.id) is None


@pytest.mark.asyncio
async def test_delete_failure_keeps_task_visible(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    table.fail_on.add("update")
    with pytest.raises(PersistenceError):
        await store.soft_delete_task(a.id)
    assert _names(store) == ["A"]


@pytest.mark.asyncio
async def test_delete_task_is_physical_without_soft_delete(table: FakeTaskTable, policy) -> None:
    store = TaskStore(table, replace(policy, soft_delete=False))
    a, b = await _add_all(store, "A", "B")
    assert "deleted" not in table.rows[0]

    await store.delete_task(a.id)

    assert table.by_id(a.id) is None
    assert _names(store) == ["B"]


@pytest.mark.asyncio
async def test_soft_delete_is_rejected_without_soft_delete(table: FakeTaskTable, policy) -> None:
    store = TaskStore(table, replace(policy, soft_delete=False))
    (a,) = await _add_all(store, "A")

    with pytest.raises(ValidationError):
        await store.soft_delete_task(a.id)

    assert [op for op, _ in table.writes] == ["insert"]
    assert [t.name for t in await store.load_visible_tasks()] == ["A"]


@pytest.mark.asyncio
async def test_uncheck_all_is_one_batch_update(store: TaskStore, table: FakeTaskTable) -> None:
    a, b, c = await _add_all(store, "A", "B", "C")
    await store.toggle_completion(a.id)
    await store.toggle_completion(b.id)

    tasks = await store.uncheck_all()

    assert all(not t.checked and t.timestamp == "" for t in tasks)
    op, (ids, fields) = table.writes[-1]
    assert op == "update_many"
    assert sorted(ids) == sorted([a.id, b.id, c.id])
    assert fields == {"checked": False, "timestamp": ""}
    assert _names(store) == ["A", "B", "C"]


@pytest.mark.asyncio
async def test_uncheck_all_failure_keeps_state(store: TaskStore, table: FakeTaskTable) -> None:
    (a,) = await _add_all(store, "A")
    await store.toggle_completion(a.id)
    table.fail_on.add("update_many")
    with pytest.raises(PersistenceError):
        await store.uncheck_all()
    assert store.tasks[0].checked is True


# ---- consistency policy ----


@pytest.mark.asyncio
async def test_reload_policy_matches_local_policy(policy) -> None:
    results = []
    for reload_after_write in (False, True):
        table = FakeTaskTable()
        store = TaskStore(table, replace(policy, reload_after_write=reload_after_write), clock=FixedClock())
        a, b, c = await _add_all(store, "A", "B", "C")
        await store.toggle_completion(a.id)
        await store.soft_delete_task(b.id)
        await store.add_task("D")
        await store.rename_task(c.id, "Gamma")
        results.append([(t.name, t.checked) for t in store.tasks])

    assert results[0] == results[1] == [("Gamma", False), ("D", False), ("A", True)]


@pytest.mark.asyncio
async def test_reload_policy_reseeds_an_emptied_list(table: FakeTaskTable, policy) -> None:
    store = TaskStore(table, replace(policy, reload_after_write=True), clock=FixedClock())
    (a,) = await _add_all(store, "A")

    await store.soft_delete_task(a.id)

    assert _names(store) == ["Daily study", "Stretch"]
    assert await store.count_records() == 3


def test_policy_rejects_bad_configuration() -> None:
    with pytest.raises(ValueError):
        TaskPolicy(max_records=0)
    with pytest.raises(ValueError):
        TaskPolicy(min_level=1, max_level=2, default_level=5)
