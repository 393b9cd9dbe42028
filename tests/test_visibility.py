# tests/test_visibility.py

from __future__ import annotations

from packup.todos.todo_models import DefaultTodo, PersonalTodo, TodoStatus
from packup.todos.visibility import operator_view, visible_todos
from packup.users.user_models import Caller, Role

USER = Caller(user_id="u1", role=Role.USER)
OP = Caller(user_id="op", role=Role.OPERATOR)

DEFAULT = DefaultTodo(
    id="d", text="Passport", status=TodoStatus.PENDING, created=1.0, position=0.0, created_by_user_id="op"
)


def _personal(owner: str = "u1", *, shared: bool = True, hidden: bool = False) -> PersonalTodo:
    return PersonalTodo(
        id="p",
        text="Socks",
        status=TodoStatus.PENDING,
        created=1.0,
        position=0.0,
        user_id=owner,
        created_by_user_id=owner,
        shared_with_admin=shared,
        hidden_from_user=hidden,
    )


def test_user_list_includes_defaults_and_own_unhidden() -> None:
    v = visible_todos(USER)
    assert v.includes(DEFAULT)
    assert v.includes(_personal())
    assert v.includes(_personal(shared=False))
    assert not v.includes(_personal(hidden=True))
    assert not v.includes(_personal("u2"))


def test_exclude_defaults_keeps_personal_only() -> None:
    v = visible_todos(USER, exclude_defaults=True)
    assert not v.includes(DEFAULT)
    assert v.includes(_personal())
    assert not v.includes(_personal(hidden=True))


def test_operator_own_list_excludes_defaults_unless_enabled() -> None:
    assert not visible_todos(OP).includes(DEFAULT)
    assert visible_todos(OP, operator_sees_defaults=True).includes(DEFAULT)
    assert not visible_todos(OP, exclude_defaults=True, operator_sees_defaults=True).includes(DEFAULT)


def test_operator_view_of_user_is_shared_only_and_shows_hidden() -> None:
    v = operator_view("u1")
    assert v.viewer_id == "u1"
    assert v.includes(DEFAULT)
    assert v.includes(_personal())
    assert v.includes(_personal(hidden=True))
    assert not v.includes(_personal(shared=False))
    assert not v.includes(_personal("u2"))


def test_where_clause_mirrors_flags() -> None:
    sql, params = operator_view("u1").where_clause("t")
    assert params == ["u1"]
    assert "t.shared_with_admin = 1" in sql
    assert "hidden_from_user" not in sql
    assert "t.is_default_task = 1" in sql

    sql, _ = visible_todos(USER, exclude_defaults=True).where_clause("x")
    assert "x.hidden_from_user = 0" in sql
    assert "is_default_task = 1" not in sql
