# src/packup/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the stores and the todo service into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..todos.todo_service import TodoService
from ..todos.todo_store import TodoStore
from ..users.user_store import UserStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    # Both stores share one database file; each owns its own tables.
    todo_store = TodoStore(settings.db_path)
    user_store = UserStore(settings.db_path)

    state = AppState(
        settings=settings,
        todo_store=todo_store,
        user_store=user_store,
        todos=TodoService(
            todo_store,
            user_store,
            operator_sees_defaults=bool(getattr(settings, "operator_sees_defaults", False)),
        ),
    )
    logger.debug("AppState created db=%s", settings.db_path)
    return state


def console_login(state: AppState, email: str, *, name: str = "") -> str:
    """
    Log the console in as `email` (created on first use) and remember the session token.

    Stands in for the identity provider when running locally.
    """
    settings = state.settings
    user = state.user_store.upsert_user(
        email=email,
        name=name,
        admin_emails=list(getattr(settings, "admin_emails", []) or []),
    )
    ttl_hours = int(getattr(settings, "session_ttl_hours", 24))
    token = state.user_store.create_session(user.id, ttl_seconds=ttl_hours * 3600)
    state.console_token = token
    logger.info("Console logged in user=%s role=%s", user.id, user.role.value)
    return token
