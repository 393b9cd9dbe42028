# src/packup/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..todos.todo_service import TodoService
from ..todos.todo_store import TodoStore
from ..users.user_store import UserStore


@dataclass
class AppState:
    # Settings object (real Settings or a test SimpleNamespace).
    settings: object

    todo_store: TodoStore
    user_store: UserStore
    todos: TodoService

    # Console connector: token of the locally logged-in user, if any.
    console_token: str | None = None
