# src/job_scheduler/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from ..core.state import AppState
from ..scheduler.errors import FormatError, NotFound, StoreUnavailable
from ..scheduler.task_models import Task

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /submit, ...)."""

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

    def handle(
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

        return handler(state, args, emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _describe(task: Task) -> str:
    return (
        f"Job {task.id}:\n"
        f"  content: {task.content}\n"
        f"  type: {task.schedule_type.value}\n"
        f"  duration: {task.duration}s\n"
        f"  status: {task.status.value}\n"
        f"  slot: {task.slot}"
    )


def _call_api(state: AppState, coro: Coroutine[Any, Any, Any]) -> tuple[Any, str | None]:
    """Run an API coroutine; map expected failures to a user-facing message."""
    try:
        return state.call(coro), None
    except NotFound as e:
        return None, f"Task does not exist: {e.key}"
    except FormatError as e:
        return None, f"Invalid job: {e}"
    except ValueError as e:
        return None, f"Invalid request: {e}"
    except StoreUnavailable:
        logger.warning("Store unavailable while handling a command.", exc_info=True)
        return None, "Store is unavailable, try again later."


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    settings = state.settings
    if state.runner is not None:
        handles = state.runner.dispatcher.registry.snapshot()
        live = sum(1 for h in handles.values() if not h.done)
        executors = f"{live} live / {len(handles)} registered"
    else:
        executors = "dispatcher not running"
    return (
        "Status:\n"
        f"  Store: {settings.store_backend} ({settings.store_path})\n"
        f"  Channels: todo={settings.todo_channel} control={settings.control_channel}\n"
        f"  Poll interval: {settings.poll_interval:g}s\n"
        f"  Executors: {executors}"
    )


def cmd_submit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /submit OneShot 5 ping        -> fire "ping" once after 5 seconds
    /submit Repeated 2 heartbeat  -> fire "heartbeat" every 2 seconds
    """
    if len(args) < 3:
        return "Usage: /submit <OneShot|Repeated> <seconds> <content...>"

    schedule_type, duration, content = args[0], args[1], " ".join(args[2:])
    task, error = _call_api(state, state.api.create_job(content, schedule_type, duration))
    if error:
        return error
    return f"Job submitted: {task.id} (slot {task.slot}). It starts on the next dispatcher tick."


def cmd_show(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /show <id>"
    task, error = _call_api(state, state.api.find_job(args[0]))
    if error:
        return error
    return _describe(task)


def cmd_update(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /update <id> type=Repeated duration=3 content=new text
    Everything after content= is taken as the new content.
    """
    if len(args) < 2:
        return "Usage: /update <id> [type=OneShot|Repeated] [duration=N] [content=...]"

    task_id = args[0]
    changes: dict[str, str] = {}
    rest = args[1:]
    for i, token in enumerate(rest):
        key, sep, value = token.partition("=")
        key = key.lower()
        if not sep:
            return f"Expected key=value, got: {token}"
        if key == "content":
            changes["content"] = " ".join([value, *rest[i + 1 :]]).strip()
            break
        if key in ("type", "schedule_type"):
            changes["schedule_type"] = value
        elif key == "duration":
            changes["duration"] = value
        else:
            return f"Unknown field: {key}"

    task, error = _call_api(state, state.api.update_job(task_id, **changes))
    if error:
        return error
    return f"Update queued for {task.id}. The new version starts within two dispatcher ticks."


def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) != 1:
        return "Usage: /delete <id>"
    _, error = _call_api(state, state.api.delete_job(args[0]))
    if error:
        return error
    return f"Delete queued for {args[0]}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store, channels and executor counts.")
registry.register(
    "submit", cmd_submit, help_text="Create a job: /submit <OneShot|Repeated> <seconds> <content>."
)
registry.register("show", cmd_show, help_text="Show a job: /show <id>.", aliases=["get"])
registry.register(
    "update", cmd_update, help_text="Update a job: /update <id> [type=..] [duration=..] [content=..]."
)
registry.register("delete", cmd_delete, help_text="Delete a job: /delete <id>.", aliases=["rm"])
