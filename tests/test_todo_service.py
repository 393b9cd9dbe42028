# tests/test_todo_service.py

from __future__ import annotations

import pytest

from packup.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from packup.todos.todo_models import TodoPatch, TodoStatus
from packup.todos.todo_service import TodoService

from .fakes import FailAfter


def _ids(views) -> list[str]:
    return [v.todo.id for v in views]


def _find(views, todo_id: str):
    return next(v for v in views if v.todo.id == todo_id)


def test_unauthenticated_caller_is_rejected(state) -> None:
    with pytest.raises(Unauthenticated):
        state.todos.list_todos(None)
    with pytest.raises(Unauthenticated):
        state.todos.create_personal(None, "x")


def test_new_todos_are_prepended(state, alice) -> None:
    t1 = state.todos.create_personal(alice.caller, "T1")
    t2 = state.todos.create_personal(alice.caller, "T2")
    t3 = state.todos.create_personal(alice.caller, "T3")

    views = state.todos.list_todos(alice.caller, exclude_defaults=True)
    assert _ids(views) == [t3.todo.id, t2.todo.id, t1.todo.id]
    assert t2.position == t1.position - 1024.0


@pytest.mark.parametrize("text", ["", "x" * 201, None, 42])
def test_create_rejects_bad_text(state, alice, text) -> None:
    with pytest.raises(ValidationError):
        state.todos.create_personal(alice.caller, text)


def test_text_at_limit_is_accepted(state, alice) -> None:
    view = state.todos.create_personal(alice.caller, "x" * 200)
    assert len(view.todo.text) == 200


def test_default_status_is_per_user(state, admin, alice, bob) -> None:
    d = state.todos.create_default(admin.caller, "Passport")

    updated = state.todos.update(alice.caller, d.todo.id, TodoPatch(status=TodoStatus.DONE))
    assert updated.status is TodoStatus.DONE

    assert _find(state.todos.list_todos(alice.caller), d.todo.id).status is TodoStatus.DONE
    assert _find(state.todos.list_todos(bob.caller), d.todo.id).status is TodoStatus.PENDING
    assert _find(state.todos.list_defaults(admin.caller), d.todo.id).status is TodoStatus.PENDING
    assert state.todo_store.count_overlays(d.todo.id) == 1


def test_operator_sets_user_status_on_default_through_user_path(state, admin, alice) -> None:
    d = state.todos.create_default(admin.caller, "Passport")

    view = state.todos.update_user_todo(
        admin.caller, alice.id, d.todo.id, TodoPatch(status=TodoStatus.IN_PROGRESS)
    )
    assert view.status is TodoStatus.IN_PROGRESS
    assert _find(state.todos.list_todos(alice.caller), d.todo.id).status is TodoStatus.IN_PROGRESS
    assert state.todo_store.get_todo(d.todo.id).status is TodoStatus.PENDING


def test_operator_updates_default_template(state, admin, alice) -> None:
    d = state.todos.create_default(admin.caller, "Pasport")
    view = state.todos.update_default(
        admin.caller, d.todo.id, TodoPatch(text="Passport", status=TodoStatus.DONE)
    )
    assert view.todo.text == "Passport"
    assert view.status is TodoStatus.DONE

    # Alice has no overlay row yet, so the canonical status shows through.
    seen = _find(state.todos.list_todos(alice.caller), d.todo.id)
    assert seen.todo.text == "Passport"
    assert seen.status is TodoStatus.DONE


def test_user_cannot_edit_or_delete_default(state, admin, alice) -> None:
    d = state.todos.create_default(admin.caller, "Passport")
    with pytest.raises(Forbidden):
        state.todos.update(alice.caller, d.todo.id, TodoPatch(text="mine now"))
    with pytest.raises(Forbidden):
        state.todos.delete(alice.caller, d.todo.id)
    with pytest.raises(Forbidden):
        state.todos.list_defaults(alice.caller)


def test_foreign_todo_is_concealed(state, alice, bob) -> None:
    t = state.todos.create_personal(alice.caller, "Alice only")

    with pytest.raises(NotFound):
        state.todos.update(bob.caller, t.todo.id, TodoPatch(status=TodoStatus.DONE))
    with pytest.raises(NotFound):
        state.todos.delete(bob.caller, t.todo.id)
    with pytest.raises(NotFound):
        state.todos.get_todo(bob.caller, t.todo.id)
    assert t.todo.id not in _ids(state.todos.list_todos(bob.caller))

    # Reordering someone else's todo is skipped without error.
    state.todos.reorder(bob.caller, [t.todo.id, "does-not-exist"])
    assert state.todo_store.get_todo(t.todo.id).position == t.position


def test_unknown_todo_is_not_found(state, alice) -> None:
    with pytest.raises(NotFound):
        state.todos.update(alice.caller, "missing", TodoPatch(status=TodoStatus.DONE))
    with pytest.raises(NotFound):
        state.todos.delete(alice.caller, "missing")


def test_reorder_mixes_personal_and_default(state, admin, alice) -> None:
    d = state.todos.create_default(admin.caller, "Passport")
    state.todos.update(alice.caller, d.todo.id, TodoPatch(status=TodoStatus.DONE))
    p1 = state.todos.create_personal(alice.caller, "Socks")
    p2 = state.todos.create_personal(alice.caller, "Charger")

    order = [p1.todo.id, d.todo.id, p2.todo.id]
    state.todos.reorder(alice.caller, order)
    views = state.todos.list_todos(alice.caller)
    assert _ids(views) == order
    # Moving a default keeps the user's status.
    assert _find(views, d.todo.id).status is TodoStatus.DONE
    # Canonical default position is untouched.
    assert state.todo_store.get_todo(d.todo.id).position == d.position

    # Same order again changes nothing.
    positions = [v.position for v in views]
    state.todos.reorder(alice.caller, order)
    assert [v.position for v in state.todos.list_todos(alice.caller)] == positions


def test_reorder_is_all_or_nothing(state, monkeypatch, alice) -> None:
    t1 = state.todos.create_personal(alice.caller, "T1")
    t2 = state.todos.create_personal(alice.caller, "T2")
    t3 = state.todos.create_personal(alice.caller, "T3")
    before = _ids(state.todos.list_todos(alice.caller, exclude_defaults=True))

    store = state.todo_store
    monkeypatch.setattr(
        store, "update_personal_position", FailAfter(store.update_personal_position, 1)
    )
    with pytest.raises(RuntimeError):
        state.todos.reorder(alice.caller, [t1.todo.id, t2.todo.id, t3.todo.id])
    monkeypatch.undo()

    assert _ids(state.todos.list_todos(alice.caller, exclude_defaults=True)) == before
    assert state.todo_store.get_todo(t1.todo.id).position == t1.position


def test_patch_with_one_denied_field_writes_nothing(state, admin, alice) -> None:
    t = state.todos.create_assigned(admin.caller, alice.id, "Charger")
    with pytest.raises(Forbidden):
        state.todos.update(
            alice.caller, t.todo.id, TodoPatch(text="Phone charger", status=TodoStatus.DONE)
        )
    stored = state.todo_store.get_todo(t.todo.id)
    assert stored.text == "Charger"
    assert stored.status is TodoStatus.PENDING


def test_assigned_todo_owner_flips_status_only(state, admin, alice) -> None:
    t = state.todos.create_assigned(admin.caller, alice.id, "Charger")
    assert t.todo.shared_with_admin is True
    assert t.todo.created_by_user_id == admin.id

    view = state.todos.update(alice.caller, t.todo.id, TodoPatch(status=TodoStatus.DONE))
    assert view.status is TodoStatus.DONE
    with pytest.raises(Forbidden, match="cannot edit text of admin-assigned task"):
        state.todos.update(alice.caller, t.todo.id, TodoPatch(text="nope"))
    with pytest.raises(Forbidden):
        state.todos.delete(alice.caller, t.todo.id)

    # The operator sees the owner's status change.
    seen = _find(state.todos.list_user_todos(admin.caller, alice.id), t.todo.id)
    assert seen.status is TodoStatus.DONE


def test_hidden_assignment_is_staged(state, admin, alice) -> None:
    t = state.todos.create_assigned(admin.caller, alice.id, "Surprise", hidden_from_user=True)

    assert t.todo.id not in _ids(state.todos.list_todos(alice.caller))
    with pytest.raises(NotFound):
        state.todos.update(alice.caller, t.todo.id, TodoPatch(status=TodoStatus.DONE))
    assert t.todo.id in _ids(state.todos.list_user_todos(admin.caller, alice.id))

    state.todos.update_user_todo(admin.caller, alice.id, t.todo.id, TodoPatch(hidden_from_user=False))
    assert t.todo.id in _ids(state.todos.list_todos(alice.caller))


def test_admin_view_is_shared_only(state, admin, alice) -> None:
    shared = state.todos.create_personal(alice.caller, "Shared")
    private = state.todos.create_personal(alice.caller, "Private", shared_with_admin=False)

    ids = _ids(state.todos.list_user_todos(admin.caller, alice.id))
    assert shared.todo.id in ids
    assert private.todo.id not in ids

    with pytest.raises(NotFound):
        state.todos.update_user_todo(
            admin.caller, alice.id, private.todo.id, TodoPatch(status=TodoStatus.DONE)
        )
    # Shared, user-written: the operator may flip status but not edit text.
    state.todos.update_user_todo(admin.caller, alice.id, shared.todo.id, TodoPatch(status=TodoStatus.DONE))
    with pytest.raises(Forbidden):
        state.todos.update_user_todo(admin.caller, alice.id, shared.todo.id, TodoPatch(text="edited"))


def test_owner_can_unshare(state, admin, alice) -> None:
    t = state.todos.create_personal(alice.caller, "Diary")
    state.todos.update(alice.caller, t.todo.id, TodoPatch(shared_with_admin=False))
    assert t.todo.id not in _ids(state.todos.list_user_todos(admin.caller, alice.id))


def test_admin_endpoints_check_target_kind(state, admin, alice) -> None:
    d = state.todos.create_default(admin.caller, "Passport")
    p = state.todos.create_personal(alice.caller, "Socks")

    with pytest.raises(ValidationError, match="not a default task"):
        state.todos.update_default(admin.caller, p.todo.id, TodoPatch(text="x"))
    with pytest.raises(ValidationError, match="not a default task"):
        state.todos.delete_default(admin.caller, p.todo.id)
    with pytest.raises(ValidationError, match="default task endpoint"):
        state.todos.delete_user_todo(admin.caller, alice.id, d.todo.id)
    with pytest.raises(NotFound, match="user not found"):
        state.todos.list_user_todos(admin.caller, "no-such-user")
    with pytest.raises(NotFound, match="user not found"):
        state.todos.create_assigned(admin.caller, "no-such-user", "x")


def test_delete_default_drops_every_overlay(state, admin, alice, bob) -> None:
    d = state.todos.create_default(admin.caller, "Passport")
    state.todos.update(alice.caller, d.todo.id, TodoPatch(status=TodoStatus.DONE))
    state.todos.reorder(bob.caller, [d.todo.id])
    assert state.todo_store.count_overlays(d.todo.id) == 2

    state.todos.delete_default(admin.caller, d.todo.id)
    assert state.todo_store.get_todo(d.todo.id) is None
    assert state.todo_store.count_overlays(d.todo.id) == 0
    assert d.todo.id not in _ids(state.todos.list_todos(alice.caller))


def test_operator_deletes_assigned_todo(state, admin, alice) -> None:
    t = state.todos.create_assigned(admin.caller, alice.id, "Charger")
    state.todos.delete_user_todo(admin.caller, alice.id, t.todo.id)
    assert state.todo_store.get_todo(t.todo.id) is None


def test_operator_own_list_and_defaults_policy(state, admin) -> None:
    d = state.todos.create_default(admin.caller, "Passport")
    own = state.todos.create_personal(admin.caller, "Admin notes")
    assert _ids(state.todos.list_todos(admin.caller)) == [own.todo.id]

    svc = TodoService(state.todo_store, state.user_store, operator_sees_defaults=True)
    assert set(_ids(svc.list_todos(admin.caller))) == {own.todo.id, d.todo.id}


def test_reorder_defaults_sets_canonical_order(state, admin, alice) -> None:
    d1 = state.todos.create_default(admin.caller, "One")
    d2 = state.todos.create_default(admin.caller, "Two")
    assert _ids(state.todos.list_defaults(admin.caller)) == [d2.todo.id, d1.todo.id]

    state.todos.reorder_defaults(admin.caller, [d1.todo.id, d2.todo.id])
    assert _ids(state.todos.list_defaults(admin.caller)) == [d1.todo.id, d2.todo.id]
    assert _ids(state.todos.list_todos(alice.caller)) == [d1.todo.id, d2.todo.id]

    with pytest.raises(Forbidden):
        state.todos.reorder_defaults(alice.caller, [d2.todo.id])


def test_list_users_is_operator_only(state, admin, alice, bob) -> None:
    emails = {u.email for u in state.todos.list_users(admin.caller)}
    assert emails == {"alice@example.com", "bob@example.com"}
    with pytest.raises(Forbidden, match="admin access required"):
        state.todos.list_users(alice.caller)


def test_operator_status_after_reorder_is_not_shadowed(state, admin) -> None:
    svc = TodoService(state.todo_store, state.user_store, operator_sees_defaults=True)
    d = svc.create_default(admin.caller, "Passport")
    own = svc.create_personal(admin.caller, "Admin notes")

    # Reordering writes an overlay row for the operator's own view of the default.
    svc.reorder(admin.caller, [own.todo.id, d.todo.id])
    view = svc.update(admin.caller, d.todo.id, TodoPatch(status=TodoStatus.DONE))

    assert view.status is TodoStatus.DONE
    assert _find(svc.list_todos(admin.caller), d.todo.id).status is TodoStatus.DONE
    assert state.todo_store.get_todo(d.todo.id).status is TodoStatus.DONE
    assert _ids(svc.list_todos(admin.caller)) == [own.todo.id, d.todo.id]


def test_template_edit_keeps_each_users_status(state, admin, alice, bob) -> None:
    d = state.todos.create_default(admin.caller, "Passport")
    state.todos.update(alice.caller, d.todo.id, TodoPatch(status=TodoStatus.IN_PROGRESS))

    state.todos.update_default(admin.caller, d.todo.id, TodoPatch(text="Passport + visa"))

    seen_by_alice = _find(state.todos.list_todos(alice.caller), d.todo.id)
    seen_by_bob = _find(state.todos.list_todos(bob.caller), d.todo.id)
    assert (seen_by_alice.todo.text, seen_by_alice.status) == ("Passport + visa", TodoStatus.IN_PROGRESS)
    assert (seen_by_bob.todo.text, seen_by_bob.status) == ("Passport + visa", TodoStatus.PENDING)
    assert state.todo_store.get_todo(d.todo.id).status is TodoStatus.PENDING
