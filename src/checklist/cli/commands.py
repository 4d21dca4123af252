# src/checklist/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.state import AppState
from ..errors import NotFoundError, PersistenceError, ValidationError
from ..tasks.task_api import cancel_editing, save_editing, start_editing, task_at
from ..tasks.task_models import Task, display_timestamp

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console front end (/add, /done, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def format_task(position: int, task: Task) -> str:
    mark = "x" if task.checked else " "
    level = f" (P{task.level})" if task.level is not None else ""
    stamp = display_timestamp(task.timestamp)
    stamp = f"  {stamp}" if stamp else ""
    return f"{position:>2}. [{mark}] {task.name}{level}{stamp}"


def render_tasks(state: AppState) -> str:
    tasks = state.task_store.tasks
    if not tasks:
        return "No tasks."
    editing_id = state.editing.task_id if state.editing else None
    lines = []
    for i, task in enumerate(tasks, start=1):
        line = format_task(i, task)
        if task.id == editing_id:
            line += "  <- editing"
        lines.append(line)
    return "\n".join(lines)


# ---- argument helpers ----


def _split_level(args: list[str]) -> tuple[str, int | None]:
    """'/add Buy milk !2' -> ("Buy milk", 2). A trailing '!N' sets the level."""
    if args and args[-1].startswith("!") and args[-1][1:].isdigit():
        return " ".join(args[:-1]), int(args[-1][1:])
    return " ".join(args), None


def _position(args: list[str]) -> int | None:
    if not args or not args[0].isdigit():
        return None
    return int(args[0])


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.task_store
    policy = store.policy
    try:
        total = str(await store.count_records())
    except PersistenceError:
        logger.exception("count_records failed")
        total = "unknown"
    backend = getattr(state.settings, "backend", "?")
    levels = f"{policy.min_level}-{policy.max_level}" if policy.levels else "off"
    return (
        "Status:\n"
        f"  Backend: {backend}\n"
        f"  Visible tasks: {len(store.tasks)}\n"
        f"  Stored records: {total} / {policy.max_records}\n"
        f"  Soft delete: {'ON' if policy.soft_delete else 'OFF'}\n"
        f"  Levels: {levels}"
    )


async def cmd_list(state: AppState, args: list[str]) -> str:
    return render_tasks(state)


async def cmd_reload(state: AppState, args: list[str]) -> str:
    try:
        await state.task_store.load_visible_tasks()
    except PersistenceError:
        logger.exception("load_visible_tasks failed")
        return "Failed to load tasks."
    return render_tasks(state)


async def cmd_add(state: AppState, args: list[str]) -> str:
    name, level = _split_level(args)
    try:
        task = await state.task_store.add_task(name, level)
    except ValidationError as exc:
        return f"Invalid task: {exc}"
    except PersistenceError:
        logger.exception("add_task failed")
        return "Failed to add task."
    if task is None:
        return "Usage: /add <name> [!level]"
    return render_tasks(state)


async def cmd_done(state: AppState, args: list[str]) -> str:
    pos = _position(args)
    if pos is None:
        return "Usage: /done <n>"
    try:
        task = task_at(state, pos)
        await state.task_store.toggle_completion(task.id)
    except NotFoundError:
        return f"No task #{pos}."
    except PersistenceError:
        logger.exception("toggle_completion failed")
        return "Failed to update task."
    return render_tasks(state)


async def cmd_edit(state: AppState, args: list[str]) -> str:
    pos = _position(args)
    if pos is None:
        return "Usage: /edit <n>, then /save [name] [!level] or /cancel"
    try:
        task = task_at(state, pos)
    except NotFoundError:
        return f"No task #{pos}."
    start_editing(state, task)
    return f"Editing #{pos}: {task.name}\nUse /save [name] [!level] or /cancel."


async def cmd_save(state: AppState, args: list[str]) -> str:
    if state.editing is None:
        return "Nothing is being edited. Use /edit <n> first."
    name, level = _split_level(args)
    try:
        await save_editing(state, name, level)
    except NotFoundError:
        return "That task is no longer in the list."
    except ValidationError as exc:
        return f"Invalid edit: {exc}"
    except PersistenceError:
        logger.exception("rename_task failed")
        return "Failed to update task; edit reverted."
    return render_tasks(state)


async def cmd_cancel(state: AppState, args: list[str]) -> str:
    if state.editing is None:
        return "Nothing is being edited."
    cancel_editing(state)
    return "Edit cancelled."


async def cmd_del(state: AppState, args: list[str]) -> str:
    pos = _position(args)
    if pos is None:
        return "Usage: /del <n>"
    try:
        task = task_at(state, pos)
        await state.task_store.delete_task(task.id)
    except NotFoundError:
        return f"No task #{pos}."
    except PersistenceError:
        logger.exception("delete_task failed")
        return "Failed to delete task."
    if state.editing is not None and state.editing.task_id == task.id:
        cancel_editing(state)
    return render_tasks(state)


async def cmd_purge(state: AppState, args: list[str]) -> str:
    pos = _position(args)
    if pos is None:
        return "Usage: /purge <n>"
    try:
        task = task_at(state, pos)
        await state.task_store.hard_delete_task(task.id)
    except NotFoundError:
        return f"No task #{pos}."
    except PersistenceError:
        logger.exception("hard_delete_task failed")
        return "Failed to delete task."
    if state.editing is not None and state.editing.task_id == task.id:
        cancel_editing(state)
    return render_tasks(state)


async def cmd_uncheck(state: AppState, args: list[str]) -> str:
    try:
        await state.task_store.uncheck_all()
    except PersistenceError:
        logger.exception("uncheck_all failed")
        return "Failed to uncheck tasks."
    return render_tasks(state)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend and record counts.")
registry.register("list", cmd_list, help_text="Show the task list.", aliases=["ls"])
registry.register("reload", cmd_reload, help_text="Reload the task list from storage.")
registry.register("add", cmd_add, help_text="Add a task: /add <name> [!level].")
registry.register("done", cmd_done, help_text="Check/uncheck a task: /done <n>.", aliases=["x"])
registry.register("edit", cmd_edit, help_text="Start editing a task: /edit <n>.")
registry.register(
    "save", cmd_save, help_text="Save the edit: /save [name] [!level]; omitted parts stay as they were."
)
registry.register("cancel", cmd_cancel, help_text="Cancel the current edit.")
registry.register("del", cmd_del, help_text="Delete a task: /del <n>.", aliases=["rm"])
registry.register("purge", cmd_purge, help_text="Permanently delete a task: /purge <n>.")
registry.register("uncheck", cmd_uncheck, help_text="Uncheck every task.")
