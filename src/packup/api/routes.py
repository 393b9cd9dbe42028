# src/packup/api/routes.py

"""
Todo API routes.

Handlers translate request bodies into service calls and nothing more;
every rule lives in TodoService. Errors are raised as PackupError and
mapped onto `{"error": message}` by the app's exception handlers.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from ..core.state import AppState
from ..errors import Unauthenticated
from ..todos.todo_models import TodoPatch, TodoView
from ..users.user_models import Caller
from .deps import get_current_admin, get_current_user, get_state
from .schemas import (
    AssignIn,
    DefaultCreateIn,
    DefaultUpdateIn,
    ReorderIn,
    TodoCreateIn,
    TodoUpdateIn,
    UserTodoUpdateIn,
)

SUCCESS = {"success": True}

router = APIRouter(prefix="/api", tags=["todos"])
admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


def todos_body(views: list[TodoView]) -> dict[str, Any]:
    # Always a list, even when empty.
    return {"todos": [v.to_dict() for v in views]}


# ---- /api/auth ----


@router.get("/auth/me")
def me(
    caller: Caller = Depends(get_current_user),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    user = state.user_store.get_user(caller.user_id)
    if user is None:
        # Session outlived its user row.
        raise Unauthenticated()
    return user.to_dict()


# ---- /api/todos ----


@router.get("/todos")
def list_todos(
    exclude_admin_todos: bool = False,
    caller: Caller = Depends(get_current_user),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    return todos_body(state.todos.list_todos(caller, exclude_defaults=exclude_admin_todos))


@router.post("/todos", status_code=status.HTTP_201_CREATED)
def create_todo(
    body: TodoCreateIn,
    caller: Caller = Depends(get_current_user),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    shared = True if body.shared_with_admin is None else body.shared_with_admin
    return state.todos.create_personal(caller, body.text, shared_with_admin=shared).to_dict()


@router.put("/todos/reorder")
def reorder_todos(
    body: ReorderIn,
    caller: Caller = Depends(get_current_user),
    state: AppState = Depends(get_state),
) -> dict[str, bool]:
    state.todos.reorder(caller, body.ids)
    return SUCCESS


@router.put("/todos/{todo_id}")
def update_todo(
    todo_id: str,
    body: TodoUpdateIn,
    caller: Caller = Depends(get_current_user),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    patch = TodoPatch.from_body(body.sent(), allowed=("text", "status", "shared_with_admin"))
    return state.todos.update(caller, todo_id, patch).to_dict()


@router.delete("/todos/{todo_id}")
def delete_todo(
    todo_id: str,
    caller: Caller = Depends(get_current_user),
    state: AppState = Depends(get_state),
) -> dict[str, bool]:
    state.todos.delete(caller, todo_id)
    return SUCCESS


# ---- /api/admin ----


@admin_router.get("/users")
def admin_list_users(
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    return {"users": [u.to_dict() for u in state.todos.list_users(caller)]}


@admin_router.get("/todos")
def admin_list_defaults(
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    return todos_body(state.todos.list_defaults(caller))


@admin_router.post("/todos", status_code=status.HTTP_201_CREATED)
def admin_create_default(
    body: DefaultCreateIn,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    return state.todos.create_default(caller, body.text).to_dict()


@admin_router.put("/todos/reorder")
def admin_reorder_defaults(
    body: ReorderIn,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, bool]:
    state.todos.reorder_defaults(caller, body.ids)
    return SUCCESS


@admin_router.put("/todos/{todo_id}")
def admin_update_default(
    todo_id: str,
    body: DefaultUpdateIn,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    patch = TodoPatch.from_body(body.sent(), allowed=("text", "status"))
    return state.todos.update_default(caller, todo_id, patch).to_dict()


@admin_router.delete("/todos/{todo_id}")
def admin_delete_default(
    todo_id: str,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, bool]:
    state.todos.delete_default(caller, todo_id)
    return SUCCESS


@admin_router.get("/users/{user_id}/todos")
def admin_list_user_todos(
    user_id: str,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    return todos_body(state.todos.list_user_todos(caller, user_id))


@admin_router.post("/users/{user_id}/todos", status_code=status.HTTP_201_CREATED)
def admin_create_user_todo(
    user_id: str,
    body: AssignIn,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    view = state.todos.create_assigned(
        caller,
        user_id,
        body.text,
        hidden_from_user=bool(body.hidden_from_user),
    )
    return view.to_dict()


@admin_router.put("/users/{user_id}/todos/{todo_id}")
def admin_update_user_todo(
    user_id: str,
    todo_id: str,
    body: UserTodoUpdateIn,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, Any]:
    patch = TodoPatch.from_body(body.sent(), allowed=("text", "status", "hidden_from_user"))
    return state.todos.update_user_todo(caller, user_id, todo_id, patch).to_dict()


@admin_router.delete("/users/{user_id}/todos/{todo_id}")
def admin_delete_user_todo(
    user_id: str,
    todo_id: str,
    caller: Caller = Depends(get_current_admin),
    state: AppState = Depends(get_state),
) -> dict[str, bool]:
    state.todos.delete_user_todo(caller, user_id, todo_id)
    return SUCCESS
