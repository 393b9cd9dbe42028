# src/packup/core/ports.py

"""
Ports (interfaces) used by the core.

The service and the API layer depend on Protocols instead of concrete
stores. This keeps storage and the identity provider swappable and makes
testing easier.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from contextlib import AbstractContextManager
from typing import Any, Protocol

from ..todos.todo_models import Overlay, Todo, TodoStatus, TodoView
from ..todos.visibility import Visibility
from ..users.user_models import Caller, User


class SessionResolver(Protocol):
    """Identity provider side: opaque token -> (user_id, role), or None if unauthenticated."""

    def resolve_session(self, token: str | None) -> Caller | None: ...


class UserRepo(SessionResolver, Protocol):
    def get_user(self, user_id: str) -> User | None: ...
    def user_exists(self, user_id: str) -> bool: ...
    def list_users(self, *, include_operators: bool = False) -> list[User]: ...


class TodoRepo(Protocol):
    def transaction(self) -> AbstractContextManager[sqlite3.Connection]: ...

    # Reads
    def get_todo(self, todo_id: str, *, conn: sqlite3.Connection | None = None) -> Todo | None: ...
    def get_view(
            self,
            todo_id: str,
            viewer_id: str,
            *,
            conn: sqlite3.Connection | None = None,
    ) -> TodoView | None: ...
    def get_overlay(
            self,
            user_id: str,
            todo_id: str,
            *,
            conn: sqlite3.Connection | None = None,
    ) -> Overlay | None: ...
    def min_position(self, *, owner_id: str | None, conn: sqlite3.Connection | None = None) -> float: ...
    def list_todos(
            self,
            visibility: Visibility,
            *,
            limit: int = ...,
            conn: sqlite3.Connection | None = None,
    ) -> list[TodoView]: ...
    def list_defaults(self, *, limit: int = ..., conn: sqlite3.Connection | None = None) -> list[TodoView]: ...

    # Writes
    def insert_todo(self, todo: Todo, *, conn: sqlite3.Connection | None = None) -> None: ...
    def update_todo_fields(
            self,
            todo_id: str,
            changes: Mapping[str, Any],
            *,
            conn: sqlite3.Connection | None = None,
    ) -> int: ...
    def upsert_overlay_status(
            self,
            user_id: str,
            todo_id: str,
            status: TodoStatus,
            *,
            conn: sqlite3.Connection | None = None,
    ) -> None: ...
    def upsert_overlay_position(
            self,
            user_id: str,
            todo_id: str,
            position: float,
            *,
            conn: sqlite3.Connection | None = None,
    ) -> None: ...
    def update_personal_position(
            self,
            todo_id: str,
            owner_id: str,
            position: float,
            *,
            conn: sqlite3.Connection | None = None,
    ) -> int: ...
    def update_default_position(
            self,
            todo_id: str,
            position: float,
            *,
            conn: sqlite3.Connection | None = None,
    ) -> int: ...
    def delete_todo(self, todo_id: str, *, conn: sqlite3.Connection | None = None) -> int: ...
