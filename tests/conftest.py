# tests/conftest.py

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from packup.api.app import create_app
from packup.cli.bootstrap import create_initial_state
from packup.core.state import AppState
from packup.users.user_models import Caller

from .fakes import Account

ADMIN_EMAIL = "admin@example.com"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's .env.
    """
    return SimpleNamespace(
        app_name="packup-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "packup.sqlite3",
        admin_emails=[ADMIN_EMAIL],
        session_ttl_hours=1,
        operator_sees_defaults=False,
        expose_internal_errors=False,
        console_enabled=False,
        console_email="",
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState built by the real composition root.

    NOTE: We keep real SQLite stores here because their correctness
    (overlay joins, transactions) is part of what we want to test.
    """
    return create_initial_state(settings=settings)


@pytest.fixture()
def make_account(state: AppState) -> Callable[[str], Account]:
    """Create (or refresh) a user by email and open a session for them."""

    def _make(email: str) -> Account:
        user = state.user_store.upsert_user(email=email, admin_emails=state.settings.admin_emails)
        token = state.user_store.create_session(user.id, ttl_seconds=3600)
        return Account(user=user, caller=Caller(user_id=user.id, role=user.role), token=token)

    return _make


@pytest.fixture()
def admin(make_account) -> Account:
    return make_account(ADMIN_EMAIL)


@pytest.fixture()
def alice(make_account) -> Account:
    return make_account("alice@example.com")


@pytest.fixture()
def bob(make_account) -> Account:
    return make_account("bob@example.com")


@pytest.fixture()
def client(state: AppState) -> TestClient:
    return TestClient(create_app(state))

