# src/packup/todos/todo_service.py

"""
Todo operations: create, update, reorder, delete, list.

Every operation takes the caller explicitly. Multi-step operations
(load, decide, write) run in a single store transaction, so a failure at
any step leaves nothing behind.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence

from ..core.ports import TodoRepo, UserRepo
from ..errors import Forbidden, NotFound, Unauthenticated, ValidationError
from ..users.user_models import Caller, User
from .overlay import canonical
from .permissions import Decision, Mutation, Target, can_mutate, can_view
from .positions import position_for_prepend, positions_for_order
from .todo_models import (
    DefaultTodo,
    PersonalTodo,
    Todo,
    TodoPatch,
    TodoStatus,
    TodoView,
    validate_text,
)
from .visibility import operator_view, visible_todos

logger = logging.getLogger(__name__)

_FIELD_MUTATIONS = {
    "text": Mutation.EDIT_TEXT,
    "status": Mutation.CHANGE_STATUS,
    "shared_with_admin": Mutation.CHANGE_SHARING,
    "hidden_from_user": Mutation.CHANGE_HIDDEN,
}


def _require(caller: Caller | None) -> Caller:
    if caller is None:
        raise Unauthenticated()
    return caller


def _require_operator(caller: Caller | None) -> Caller:
    caller = _require(caller)
    if not caller.is_operator:
        raise Forbidden("forbidden: admin access required")
    return caller


def _enforce(decision: Decision) -> Decision:
    if decision.allowed:
        return decision
    if decision.conceal:
        raise NotFound("todo not found")
    raise Forbidden(decision.reason or "forbidden")


def _new_id() -> str:
    return str(uuid.uuid4())


class TodoService:
    def __init__(
        self,
        todos: TodoRepo,
        users: UserRepo,
        *,
        operator_sees_defaults: bool = False,
    ) -> None:
        self._todos = todos
        self._users = users
        self._operator_sees_defaults = operator_sees_defaults

    # ---- listing ----

    def list_todos(self, caller: Caller | None, *, exclude_defaults: bool = False) -> list[TodoView]:
        """The caller's own list, default todos overlaid with the caller's state."""
        caller = _require(caller)
        visibility = visible_todos(
            caller,
            exclude_defaults=exclude_defaults,
            operator_sees_defaults=self._operator_sees_defaults,
        )
        return self._todos.list_todos(visibility)

    def get_todo(self, caller: Caller | None, todo_id: str) -> TodoView:
        caller = _require(caller)
        todo = self._todos.get_todo(todo_id)
        if todo is None or not can_view(caller, todo):
            raise NotFound("todo not found")
        view = self._todos.get_view(todo_id, self._viewer_for(caller, todo, None))
        if view is None:
            raise NotFound("todo not found")
        return view

    def list_defaults(self, caller: Caller | None) -> list[TodoView]:
        _require_operator(caller)
        return self._todos.list_defaults()

    def list_user_todos(self, caller: Caller | None, user_id: str) -> list[TodoView]:
        """Operator view of one user: defaults with that user's state, plus what they shared."""
        _require_operator(caller)
        self._require_user(user_id)
        return self._todos.list_todos(operator_view(user_id))

    def list_users(self, caller: Caller | None) -> list[User]:
        _require_operator(caller)
        return self._users.list_users()

    # ---- create ----

    def create_personal(
        self,
        caller: Caller | None,
        text: str,
        *,
        shared_with_admin: bool = True,
    ) -> TodoView:
        caller = _require(caller)
        text = validate_text(text)
        with self._todos.transaction() as conn:
            top = self._todos.min_position(owner_id=caller.user_id, conn=conn)
            todo = PersonalTodo(
                id=_new_id(),
                text=text,
                status=TodoStatus.PENDING,
                created=time.time(),
                position=position_for_prepend(top),
                user_id=caller.user_id,
                created_by_user_id=caller.user_id,
                shared_with_admin=bool(shared_with_admin),
                hidden_from_user=False,
            )
            self._todos.insert_todo(todo, conn=conn)
        logger.info("Todo created id=%s owner=%s", todo.id, caller.user_id)
        return canonical(todo)

    def create_default(self, caller: Caller | None, text: str) -> TodoView:
        """
        New global template, placed above every existing default todo.

        The operator role is checked by the admin routes, not here.
        """
        caller = _require(caller)
        text = validate_text(text)
        with self._todos.transaction() as conn:
            top = self._todos.min_position(owner_id=None, conn=conn)
            todo = DefaultTodo(
                id=_new_id(),
                text=text,
                status=TodoStatus.PENDING,
                created=time.time(),
                position=position_for_prepend(top),
                created_by_user_id=caller.user_id,
            )
            self._todos.insert_todo(todo, conn=conn)
        logger.info("Default todo created id=%s by=%s", todo.id, caller.user_id)
        return canonical(todo)

    def create_assigned(
        self,
        caller: Caller | None,
        user_id: str,
        text: str,
        *,
        hidden_from_user: bool = False,
    ) -> TodoView:
        """Operator creates a personal todo for `user_id`. Assigned todos are always shared."""
        caller = _require_operator(caller)
        if not user_id:
            raise ValidationError("userId required")
        text = validate_text(text)
        self._require_user(user_id)
        with self._todos.transaction() as conn:
            top = self._todos.min_position(owner_id=user_id, conn=conn)
            todo = PersonalTodo(
                id=_new_id(),
                text=text,
                status=TodoStatus.PENDING,
                created=time.time(),
                position=position_for_prepend(top),
                user_id=user_id,
                created_by_user_id=caller.user_id,
                shared_with_admin=True,
                hidden_from_user=bool(hidden_from_user),
            )
            self._todos.insert_todo(todo, conn=conn)
        logger.info("Todo assigned id=%s owner=%s by=%s", todo.id, user_id, caller.user_id)
        return canonical(todo)

    # ---- update ----

    def update(
        self,
        caller: Caller | None,
        todo_id: str,
        patch: TodoPatch,
        *,
        subject_id: str | None = None,
    ) -> TodoView:
        """
        Apply `patch` to a todo and return it as the subject sees it.

        Every field is checked before anything is written: one denied field
        rejects the whole patch. On default todos a user's status goes to
        that user's overlay row, never to the canonical record.
        """
        caller = _require(caller)
        if not todo_id:
            raise ValidationError("id required")
        changes = patch.changes()

        with self._todos.transaction() as conn:
            todo = self._todos.get_todo(todo_id, conn=conn)
            if todo is None:
                raise NotFound("todo not found")
            if not can_view(caller, todo, subject_id=subject_id):
                raise NotFound("todo not found")

            decisions = {
                name: _enforce(
                    can_mutate(caller, todo, _FIELD_MUTATIONS[name], subject_id=subject_id)
                )
                for name in changes
            }

            canonical_changes = {
                name: value
                for name, value in changes.items()
                if decisions[name].target is Target.CANONICAL
            }
            if canonical_changes:
                self._todos.update_todo_fields(todo.id, canonical_changes, conn=conn)

            viewer_id = self._viewer_for(caller, todo, subject_id)
            if "status" in changes:
                if decisions["status"].target is Target.OVERLAY:
                    self._todos.upsert_overlay_status(viewer_id, todo.id, changes["status"], conn=conn)
                elif todo.is_default and self._todos.get_overlay(viewer_id, todo.id, conn=conn):
                    # An operator who reordered their own list holds an overlay row;
                    # it must not shadow the canonical status they just set.
                    self._todos.upsert_overlay_status(viewer_id, todo.id, changes["status"], conn=conn)

            view = self._todos.get_view(todo.id, viewer_id, conn=conn)

        if view is None:
            raise NotFound("todo not found")
        logger.debug(
            "Todo updated id=%s caller=%s fields=%s",
            todo_id,
            caller.user_id,
            ",".join(sorted(changes)),
        )
        return view

    def update_default(self, caller: Caller | None, todo_id: str, patch: TodoPatch) -> TodoView:
        """Operator edits the template itself: text and canonical status."""
        caller = _require_operator(caller)
        todo = self._todos.get_todo(todo_id) if todo_id else None
        if todo_id and todo is None:
            raise NotFound("todo not found")
        if todo is not None and not todo.is_default:
            raise ValidationError("not a default task")
        self.update(caller, todo_id, patch)
        updated = self._todos.get_todo(todo_id)
        if updated is None:
            raise NotFound("todo not found")
        return canonical(updated)

    def update_user_todo(
        self,
        caller: Caller | None,
        user_id: str,
        todo_id: str,
        patch: TodoPatch,
    ) -> TodoView:
        """Operator works on one user's list; status on default todos goes to that user's overlay."""
        caller = _require_operator(caller)
        if not user_id or not todo_id:
            raise ValidationError("userId and todoId required")
        self._require_user(user_id)
        return self.update(caller, todo_id, patch, subject_id=user_id)

    # ---- reorder ----

    def reorder(self, caller: Caller | None, ordered_ids: Sequence[str]) -> None:
        """
        Renumber the caller's list in the given order, all or nothing.

        Default todos get the caller's overlay position (status kept, pending
        if the caller never touched it). Personal todos not owned by the
        caller, and unknown ids, are skipped without error.
        """
        caller = _require(caller)
        if not ordered_ids:
            return
        skipped = 0
        with self._todos.transaction() as conn:
            for todo_id, position in positions_for_order(ordered_ids):
                todo = self._todos.get_todo(todo_id, conn=conn)
                if todo is None:
                    skipped += 1
                elif todo.is_default:
                    self._todos.upsert_overlay_position(caller.user_id, todo_id, position, conn=conn)
                elif not self._todos.update_personal_position(
                    todo_id, caller.user_id, position, conn=conn
                ):
                    skipped += 1
        logger.info(
            "Reordered %d todos for user=%s (skipped=%d)",
            len(ordered_ids),
            caller.user_id,
            skipped,
        )

    def reorder_defaults(self, caller: Caller | None, ordered_ids: Sequence[str]) -> None:
        """Operator renumbers the canonical positions of default todos."""
        caller = _require_operator(caller)
        if not ordered_ids:
            return
        with self._todos.transaction() as conn:
            for todo_id, position in positions_for_order(ordered_ids):
                self._todos.update_default_position(todo_id, position, conn=conn)
        logger.info("Reordered %d default todos by=%s", len(ordered_ids), caller.user_id)

    # ---- delete ----

    def delete(self, caller: Caller | None, todo_id: str, *, subject_id: str | None = None) -> None:
        """Delete a todo; overlay rows of a default todo go with it."""
        caller = _require(caller)
        if not todo_id:
            raise ValidationError("id required")
        with self._todos.transaction() as conn:
            todo = self._todos.get_todo(todo_id, conn=conn)
            if todo is None:
                raise NotFound("todo not found")
            _enforce(can_mutate(caller, todo, Mutation.DELETE, subject_id=subject_id))
            if self._todos.delete_todo(todo_id, conn=conn) == 0:
                raise NotFound("todo not found")
        logger.info("Todo deleted id=%s by=%s", todo_id, caller.user_id)

    def delete_default(self, caller: Caller | None, todo_id: str) -> None:
        caller = _require_operator(caller)
        todo = self._todos.get_todo(todo_id) if todo_id else None
        if todo_id and todo is None:
            raise NotFound("todo not found")
        if todo is not None and not todo.is_default:
            raise ValidationError("not a default task")
        self.delete(caller, todo_id)

    def delete_user_todo(self, caller: Caller | None, user_id: str, todo_id: str) -> None:
        caller = _require_operator(caller)
        if not user_id or not todo_id:
            raise ValidationError("userId and todoId required")
        todo = self._todos.get_todo(todo_id)
        if todo is None:
            raise NotFound("todo not found")
        if todo.is_default:
            raise ValidationError("use the default task endpoint to delete default tasks")
        self.delete(caller, todo_id, subject_id=user_id)

    # ---- helpers ----

    def _require_user(self, user_id: str) -> None:
        if not self._users.user_exists(user_id):
            raise NotFound("user not found")

    @staticmethod
    def _viewer_for(caller: Caller, todo: Todo, subject_id: str | None) -> str:
        """Whose overlay applies when returning `todo`."""
        if subject_id:
            return subject_id
        if isinstance(todo, PersonalTodo):
            return todo.user_id
        return caller.user_id
