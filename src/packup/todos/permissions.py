# src/packup/todos/permissions.py

"""
Who may change what on a todo.

Pure decisions: nothing here touches the store or raises. The service maps
a denied Decision onto Forbidden, or onto NotFound when `conceal` is set
(the caller must not learn the todo exists).

Summary of the rules:
- Default todos: operators edit, delete and set the canonical status.
  Users only set their own status, which goes to the overlay.
- Personal todos written by their owner: the owner does everything.
  An operator sees them only when shared, and may then flip the status.
- Operator-assigned todos: the operator does everything; the owner may
  only flip the status. Status is the shared-responsibility field.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from ..users.user_models import Caller
from .todo_models import PersonalTodo, Todo

logger = logging.getLogger(__name__)


class Mutation(StrEnum):
    EDIT_TEXT = "edit-text"
    CHANGE_STATUS = "change-status"
    CHANGE_SHARING = "change-sharing"
    CHANGE_HIDDEN = "change-hidden"
    DELETE = "delete"


class Target(StrEnum):
    CANONICAL = "canonical"
    OVERLAY = "overlay"


@dataclass(frozen=True, slots=True)
class Decision:
    allowed: bool
    reason: str = ""
    target: Target = Target.CANONICAL
    conceal: bool = False


_ALLOW = Decision(allowed=True)
_ALLOW_OVERLAY = Decision(allowed=True, target=Target.OVERLAY)
_CONCEAL = Decision(allowed=False, reason="todo not found", conceal=True)


def _deny(reason: str) -> Decision:
    return Decision(allowed=False, reason=f"forbidden: {reason}")


def can_view(caller: Caller | None, todo: Todo, *, subject_id: str | None = None) -> bool:
    """Whether the todo is inside the caller's visibility scope at all."""
    if caller is None:
        return False
    if subject_id is not None and subject_id != caller.user_id and not caller.is_operator:
        return False
    if not isinstance(todo, PersonalTodo):
        return True
    if subject_id is not None and todo.user_id != subject_id:
        return False
    if todo.user_id == caller.user_id:
        return caller.is_operator or not todo.hidden_from_user
    if caller.is_operator:
        return todo.is_assigned or todo.shared_with_admin
    return False


def can_mutate(
    caller: Caller | None,
    todo: Todo,
    mutation: Mutation,
    *,
    subject_id: str | None = None,
) -> Decision:
    """
    Decide whether `caller` may apply `mutation` to `todo`.

    `subject_id` is the user whose list is being acted on; it differs from
    the caller only when an operator works on a user's todos.
    """
    if caller is None:
        return Decision(allowed=False, reason="unauthorized")
    if not can_view(caller, todo, subject_id=subject_id):
        logger.debug("Concealed todo=%s from caller=%s", todo.id, caller.user_id)
        return _CONCEAL

    if not isinstance(todo, PersonalTodo):
        decision = _default_rules(caller, mutation, subject_id or caller.user_id)
    elif todo.is_assigned:
        decision = _assigned_rules(caller, todo, mutation)
    else:
        decision = _authored_rules(caller, todo, mutation)

    if not decision.allowed:
        logger.debug(
            "Denied %s on todo=%s caller=%s role=%s: %s",
            mutation.value,
            todo.id,
            caller.user_id,
            caller.role,
            decision.reason,
        )
    return decision


def _default_rules(caller: Caller, mutation: Mutation, subject_id: str) -> Decision:
    if mutation in (Mutation.CHANGE_SHARING, Mutation.CHANGE_HIDDEN):
        return _deny(f"{mutation.value} does not apply to default tasks")

    if mutation is Mutation.CHANGE_STATUS:
        if caller.is_operator and subject_id == caller.user_id:
            return _ALLOW
        return _ALLOW_OVERLAY

    if caller.is_operator:
        return _ALLOW
    if mutation is Mutation.DELETE:
        return _deny("only admins can delete default tasks")
    return _deny("only admins can edit default tasks")


def _assigned_rules(caller: Caller, todo: PersonalTodo, mutation: Mutation) -> Decision:
    if caller.is_operator:
        if mutation is Mutation.CHANGE_SHARING:
            return _deny("change-sharing does not apply to admin-assigned tasks")
        return _ALLOW

    # Only the owner gets this far (see can_view).
    if mutation is Mutation.CHANGE_STATUS:
        return _ALLOW
    if mutation is Mutation.EDIT_TEXT:
        return _deny("cannot edit text of admin-assigned task")
    if mutation is Mutation.CHANGE_SHARING:
        return _deny("cannot change sharing status of admin-assigned task")
    if mutation is Mutation.DELETE:
        return _deny("cannot delete admin-assigned task")
    return _deny("change-hidden does not apply for the task owner")


def _authored_rules(caller: Caller, todo: PersonalTodo, mutation: Mutation) -> Decision:
    if caller.user_id == todo.user_id:
        if mutation is Mutation.CHANGE_HIDDEN:
            return _deny("change-hidden does not apply to user-created tasks")
        return _ALLOW

    # An operator looking at a shared, user-written todo.
    if mutation is Mutation.CHANGE_STATUS:
        return _ALLOW
    if mutation is Mutation.EDIT_TEXT:
        return _deny("cannot edit text of user-created tasks")
    if mutation is Mutation.DELETE:
        return _deny("cannot delete user-created tasks")
    return _deny("only the owner can change sharing of this task")
