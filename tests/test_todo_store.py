# tests/test_todo_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from packup.errors import StoreError
from packup.todos.todo_models import DefaultTodo, PersonalTodo, TodoStatus
from packup.todos.todo_store import TodoStore
from packup.todos.visibility import Visibility


def _default(todo_id: str, position: float = 0.0, created: float = 1.0) -> DefaultTodo:
    return DefaultTodo(
        id=todo_id,
        text=f"default {todo_id}",
        status=TodoStatus.PENDING,
        created=created,
        position=position,
        created_by_user_id="op",
    )


def _personal(todo_id: str, owner: str, position: float = 0.0, created: float = 1.0) -> PersonalTodo:
    return PersonalTodo(
        id=todo_id,
        text=f"personal {todo_id}",
        status=TodoStatus.PENDING,
        created=created,
        position=position,
        user_id=owner,
        created_by_user_id=owner,
    )


def test_insert_get_update_roundtrip(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_personal("p1", "u1"))

    n = store.update_todo_fields(
        "p1", {"text": "wool socks", "status": TodoStatus.DONE, "shared_with_admin": False}
    )
    assert n == 1

    todo = store.get_todo("p1")
    assert isinstance(todo, PersonalTodo)
    assert todo.text == "wool socks"
    assert todo.status is TodoStatus.DONE
    assert todo.shared_with_admin is False
    assert store.get_todo("missing") is None


def test_update_rejects_unknown_columns(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_personal("p1", "u1"))
    with pytest.raises(ValueError):
        store.update_todo_fields("p1", {"user_id": "u2"})


def test_default_todo_cannot_have_owner(tmp_path: Path) -> None:
    db = tmp_path / "todos.sqlite3"
    TodoStore(db)
    conn = sqlite3.connect(str(db))
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO todos(id, text, created, user_id, is_default_task) VALUES ('x', 't', 1, 'u1', 1)"
            )
    finally:
        conn.close()


def test_overlay_status_then_position_keeps_both(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_default("d1", position=-1024.0))

    store.upsert_overlay_status("u1", "d1", TodoStatus.DONE)
    ov = store.get_overlay("u1", "d1")
    assert ov is not None
    assert ov.status is TodoStatus.DONE
    assert ov.position == -1024.0  # starts at the canonical position

    store.upsert_overlay_position("u1", "d1", 2048.0)
    ov = store.get_overlay("u1", "d1")
    assert ov is not None
    assert ov.status is TodoStatus.DONE
    assert ov.position == 2048.0

    # New row from a position write starts as pending.
    store.upsert_overlay_position("u2", "d1", 0.0)
    ov2 = store.get_overlay("u2", "d1")
    assert ov2 is not None and ov2.status is TodoStatus.PENDING


def test_list_orders_by_effective_position_then_newest(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_default("d1", position=0.0, created=1.0))
    store.insert_todo(_personal("p1", "u1", position=1024.0, created=2.0))
    store.insert_todo(_personal("p2", "u1", position=1024.0, created=3.0))
    store.insert_todo(_personal("other", "u2", position=-5000.0))

    store.upsert_overlay_position("u1", "d1", 4096.0)

    vis = Visibility(viewer_id="u1", owner_id="u1", include_defaults=True)
    ids = [v.todo.id for v in store.list_todos(vis)]
    assert ids == ["p2", "p1", "d1"]

    # u2 has no overlay: the canonical position applies.
    vis2 = Visibility(viewer_id="u2", owner_id="u2", include_defaults=True)
    assert [v.todo.id for v in store.list_todos(vis2)] == ["other", "d1"]


def test_list_respects_limit(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    for i in range(5):
        store.insert_todo(_personal(f"p{i}", "u1", position=float(i)))
    vis = Visibility(viewer_id="u1", owner_id="u1", include_defaults=False)
    assert len(store.list_todos(vis, limit=3)) == 3


def test_min_position_scopes(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    assert store.min_position(owner_id="u1") == 0.0
    assert store.min_position(owner_id=None) == 0.0
    store.insert_todo(_default("d1", position=-2048.0))
    store.insert_todo(_personal("p1", "u1", position=-1024.0))
    assert store.min_position(owner_id=None) == -2048.0
    assert store.min_position(owner_id="u1") == -1024.0
    assert store.min_position(owner_id="u2") == 0.0


def test_delete_default_removes_all_overlay_rows(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_default("d1"))
    for user in ("u1", "u2", "u3"):
        store.upsert_overlay_status(user, "d1", TodoStatus.IN_PROGRESS)
    assert store.count_overlays("d1") == 3

    assert store.delete_todo("d1") == 1
    assert store.get_todo("d1") is None
    assert store.count_overlays("d1") == 0
    assert store.delete_todo("d1") == 0


def test_update_personal_position_checks_owner(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_personal("p1", "u1"))
    assert store.update_personal_position("p1", "u2", 5.0) == 0
    assert store.update_personal_position("p1", "u1", 5.0) == 1
    todo = store.get_todo("p1")
    assert todo is not None and todo.position == 5.0


def test_transaction_rolls_back_on_error(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    with pytest.raises(RuntimeError):
        with store.transaction() as conn:
            store.insert_todo(_personal("p1", "u1"), conn=conn)
            raise RuntimeError("boom")
    assert store.get_todo("p1") is None

    with store.transaction() as conn:
        store.insert_todo(_personal("p2", "u1"), conn=conn)
    assert store.get_todo("p2") is not None


def test_sqlite_errors_surface_as_store_error(tmp_path: Path) -> None:
    store = TodoStore(tmp_path / "todos.sqlite3")
    store.insert_todo(_personal("p1", "u1"))
    with pytest.raises(StoreError):
        store.insert_todo(_personal("p1", "u1"))
    with pytest.raises(StoreError):
        with store.transaction() as conn:
            store.insert_todo(_personal("p1", "u1"), conn=conn)


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "legacy.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute(
        """
        CREATE TABLE todos (
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            created REAL NOT NULL,
            position REAL NOT NULL DEFAULT 0,
            user_id TEXT
        )
        """
    )
    conn.execute("INSERT INTO todos(id, text, created, user_id) VALUES ('old', 'legacy', 1, 'u1')")
    conn.commit()
    conn.close()

    store = TodoStore(db)
    todo = store.get_todo("old")
    assert isinstance(todo, PersonalTodo)
    assert todo.shared_with_admin is True
    assert todo.hidden_from_user is False
    assert todo.created_by_user_id is None
