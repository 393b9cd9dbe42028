# src/packup/todos/positions.py

"""
Sort keys for todos.

Lower positions sort first. New todos are placed one increment above the
current minimum, so a prepend never touches existing rows. A reorder is an
explicit dense renumbering of the ids the caller sends.
"""

from __future__ import annotations

from collections.abc import Iterable

from .todo_models import POSITION_INCREMENT


def position_for_prepend(existing_min: float | None) -> float:
    base = 0.0 if existing_min is None else float(existing_min)
    return base - POSITION_INCREMENT


def positions_for_order(ordered_ids: Iterable[str]) -> list[tuple[str, float]]:
    # Duplicates are kept: positions are applied id by id, so the last occurrence wins.
    return [(todo_id, index * POSITION_INCREMENT) for index, todo_id in enumerate(ordered_ids)]


def sort_key(position: float, created: float) -> tuple[float, float]:
    """Position ascending, then newest first."""
    return (position, -created)
