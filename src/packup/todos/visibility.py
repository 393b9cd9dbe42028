# src/packup/todos/visibility.py

"""
Which todo rows a listing may include.

A Visibility is evaluated two ways: as a SQL fragment for the store's
listing query, and as a plain predicate for single-row checks. Both read
the same four flags, so they cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..users.user_models import Caller
from .todo_models import PersonalTodo, Todo


@dataclass(frozen=True, slots=True)
class Visibility:
    # Whose overlay rows apply to default todos.
    viewer_id: str
    # Whose personal todos are listed.
    owner_id: str
    include_defaults: bool
    shared_only: bool = False
    hide_hidden: bool = True

    def includes(self, todo: Todo) -> bool:
        if not isinstance(todo, PersonalTodo):
            return self.include_defaults
        if todo.user_id != self.owner_id:
            return False
        if self.shared_only and not todo.shared_with_admin:
            return False
        if self.hide_hidden and todo.hidden_from_user:
            return False
        return True

    def where_clause(self, alias: str = "t") -> tuple[str, list[object]]:
        personal = [f"{alias}.user_id = ?", f"{alias}.is_default_task = 0"]
        if self.shared_only:
            personal.append(f"{alias}.shared_with_admin = 1")
        if self.hide_hidden:
            personal.append(f"{alias}.hidden_from_user = 0")
        sql = "(" + " AND ".join(personal) + ")"
        if self.include_defaults:
            sql = f"({sql} OR {alias}.is_default_task = 1)"
        return sql, [self.owner_id]


def visible_todos(
    caller: Caller,
    *,
    exclude_defaults: bool = False,
    operator_sees_defaults: bool = False,
) -> Visibility:
    """
    The caller's own list.

    Operators get only their personal todos unless operator_sees_defaults is on.
    Todos the operator staged as hidden never show in the owner's own list.
    """
    if caller.is_operator and not operator_sees_defaults:
        exclude_defaults = True
    return Visibility(
        viewer_id=caller.user_id,
        owner_id=caller.user_id,
        include_defaults=not exclude_defaults,
    )


def operator_view(target_user_id: str) -> Visibility:
    """An operator looking at one user's list: defaults plus what the user chose to share."""
    return Visibility(
        viewer_id=target_user_id,
        owner_id=target_user_id,
        include_defaults=True,
        shared_only=True,
        hide_hidden=False,
    )
