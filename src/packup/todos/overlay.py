# src/packup/todos/overlay.py

from __future__ import annotations

from dataclasses import dataclass

from .todo_models import Overlay, Todo, TodoStatus, TodoView


@dataclass(frozen=True, slots=True)
class EffectiveState:
    status: TodoStatus
    position: float


def effective(todo: Todo, overlay: Overlay | None) -> EffectiveState:
    """
    Status/position the viewer should see.

    Personal todos never consult the overlay. Default todos take each
    field from the viewer's overlay row when it exists.
    """
    if not todo.is_default or overlay is None:
        return EffectiveState(status=todo.status, position=todo.position)
    return EffectiveState(status=overlay.status, position=overlay.position)


def resolve(todo: Todo, overlay: Overlay | None) -> TodoView:
    state = effective(todo, overlay)
    return TodoView(todo=todo, status=state.status, position=state.position)


def canonical(todo: Todo) -> TodoView:
    return TodoView(todo=todo, status=todo.status, position=todo.position)
