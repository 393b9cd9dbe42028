# src/packup/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any, cast

from ..core.state import AppState
from ..errors import PackupError, Unauthenticated
from ..todos.todo_models import TodoPatch, TodoView
from ..users.user_models import Caller
from .bootstrap import console_login

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /todos, ...)."""

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
        Service errors come back as "Error <status>: <message>".
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

        logger.debug("Command /%s args=%d", name, len(args))

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except PackupError as e:
            logger.debug("Command /%s -> %s %s", name, e.status_code, e.message)
            return f"Error {e.status_code}: {e.message}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _caller(state: AppState) -> Caller:
    caller = state.user_store.resolve_session(state.console_token)
    if caller is None:
        raise Unauthenticated("unauthorized (use /login <email>)")
    return caller


def _patch(**fields: Any) -> TodoPatch:
    """Validate console input the same way a request body is validated."""
    return TodoPatch.from_body(fields, allowed=fields.keys())


def _format_todo(i: int, view: TodoView) -> str:
    t = view.to_dict()
    marks = []
    if t["is_default_task"]:
        marks.append("default")
    elif t.get("created_by_user_id") and t.get("created_by_user_id") != t.get("user_id"):
        marks.append("assigned")
    if t["hidden_from_user"]:
        marks.append("hidden")
    if not t["is_default_task"] and not t["shared_with_admin"]:
        marks.append("private")
    mark_str = f" ({', '.join(marks)})" if marks else ""
    return f"{i}. [{t['status']}] {t['text']}{mark_str}  id={t['id']}"


def _format_todos(views: list[TodoView], title: str) -> str:
    if not views:
        return f"{title}: (empty)"
    lines = [f"{title}:"]
    lines.extend(_format_todo(i, v) for i, v in enumerate(views, start=1))
    return "\n".join(lines)


def _format_one(view: TodoView, verb: str) -> str:
    return f"{verb}: {_format_todo(1, view)[3:]}"


def _on_off(raw: str) -> bool | None:
    return {"on": True, "off": False}.get(raw.lower())


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/login <email> [display name]"""
    if not args:
        return "Usage: /login <email> [name]"
    console_login(state, args[0], name=" ".join(args[1:]))
    return cmd_whoami(state, [])


def cmd_logout(state: AppState, args: list[str]) -> str:
    if state.console_token is None:
        return "Not logged in."
    state.user_store.delete_session(state.console_token)
    state.console_token = None
    return "Logged out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    caller = _caller(state)
    user = state.user_store.get_user(caller.user_id)
    if user is None:
        raise Unauthenticated()
    return f"Logged in as {user.email} role={user.role.value} id={user.id}"


def cmd_todos(state: AppState, args: list[str]) -> str:
    """/todos [own]"""
    own = bool(args) and args[0].lower() == "own"
    return _format_todos(state.todos.list_todos(_caller(state), exclude_defaults=own), "Your todos")


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add [--private] <text>"""
    shared = True
    if args and args[0] == "--private":
        shared = False
        args = args[1:]
    if not args:
        return "Usage: /add [--private] <text>"
    view = state.todos.create_personal(_caller(state), " ".join(args), shared_with_admin=shared)
    return _format_one(view, "Added")


def cmd_status(state: AppState, args: list[str]) -> str:
    """/status <id> <pending|in-progress|done>"""
    if len(args) != 2:
        return "Usage: /status <id> <pending|in-progress|done>"
    view = state.todos.update(_caller(state), args[0], _patch(status=args[1]))
    return _format_one(view, "Updated")


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> <text>"""
    if len(args) < 2:
        return "Usage: /edit <id> <text>"
    view = state.todos.update(_caller(state), args[0], _patch(text=" ".join(args[1:])))
    return _format_one(view, "Updated")


def cmd_share(state: AppState, args: list[str]) -> str:
    """/share <id> on|off"""
    flag = _on_off(args[1]) if len(args) == 2 else None
    if flag is None:
        return "Usage: /share <id> on|off"
    view = state.todos.update(_caller(state), args[0], _patch(shared_with_admin=flag))
    return _format_one(view, "Updated")


def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <id> <id> ... (full desired order)"""
    if not args:
        return "Usage: /move <id> <id> ..."
    state.todos.reorder(_caller(state), args)
    return f"Reordered {len(args)} todos."


def cmd_rm(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /rm <id>"
    state.todos.delete(_caller(state), args[0])
    return "Deleted."


_ADMIN_USAGE = (
    "Admin commands:\n"
    "  /admin users                          - list users\n"
    "  /admin todos                          - list default todos\n"
    "  /admin add <text>                     - create a default todo\n"
    "  /admin edit <id> <text>               - edit a default todo\n"
    "  /admin rm <id>                        - delete a default todo\n"
    "  /admin list <userId>                  - a user's todos (shared only)\n"
    "  /admin assign <userId> <text>         - assign a todo to a user\n"
    "  /admin set <userId> <todoId> <status> - set status on a user's todo\n"
    "  /admin hide <userId> <todoId> on|off  - hide/reveal an assigned todo\n"
    "  /admin unassign <userId> <todoId>     - delete an assigned todo\n"
)


def cmd_admin(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return _ADMIN_USAGE
    sub, rest = args[0].lower(), args[1:]
    caller = _caller(state)
    todos = state.todos

    if sub == "users":
        users = todos.list_users(caller)
        if not users:
            return "Users: (none)"
        return "Users:\n" + "\n".join(f"  {u.email} id={u.id}" for u in users)

    if sub == "todos":
        return _format_todos(todos.list_defaults(caller), "Default todos")

    if sub == "add" and rest:
        return _format_one(todos.create_default(caller, " ".join(rest)), "Added")

    if sub == "edit" and len(rest) >= 2:
        view = todos.update_default(caller, rest[0], _patch(text=" ".join(rest[1:])))
        return _format_one(view, "Updated")

    if sub == "rm" and len(rest) == 1:
        todos.delete_default(caller, rest[0])
        return "Deleted."

    if sub == "list" and len(rest) == 1:
        return _format_todos(todos.list_user_todos(caller, rest[0]), f"Todos of {rest[0]}")

    if sub == "assign" and len(rest) >= 2:
        return _format_one(todos.create_assigned(caller, rest[0], " ".join(rest[1:])), "Assigned")

    if sub == "set" and len(rest) == 3:
        view = todos.update_user_todo(caller, rest[0], rest[1], _patch(status=rest[2]))
        return _format_one(view, "Updated")

    if sub == "hide" and len(rest) == 3 and _on_off(rest[2]) is not None:
        patch = _patch(hidden_from_user=_on_off(rest[2]))
        return _format_one(todos.update_user_todo(caller, rest[0], rest[1], patch), "Updated")

    if sub == "unassign" and len(rest) == 2:
        todos.delete_user_todo(caller, rest[0], rest[1])
        return "Deleted."

    return "Unknown or incomplete /admin subcommand.\n" + _ADMIN_USAGE


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("login", cmd_login, help_text="Log in: /login <email> [name].")
registry.register("logout", cmd_logout, help_text="End the console session.")
registry.register("whoami", cmd_whoami, help_text="Show the logged-in user.")
registry.register("todos", cmd_todos, help_text="List your todos: /todos [own].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a todo: /add [--private] <text>.")
registry.register("status", cmd_status, help_text="Set status: /status <id> <pending|in-progress|done>.")
registry.register("edit", cmd_edit, help_text="Edit text: /edit <id> <text>.")
registry.register("share", cmd_share, help_text="Share with admins: /share <id> on|off.")
registry.register("move", cmd_move, help_text="Reorder: /move <id> <id> ... (full order).")
registry.register("rm", cmd_rm, help_text="Delete a todo: /rm <id>.")
registry.register("admin", cmd_admin, help_text="Operator tools: /admin for details.")
