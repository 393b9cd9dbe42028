# src/packup/api/deps.py

from __future__ import annotations

from fastapi import Cookie, Depends, Header, Request

from ..core.state import AppState
from ..errors import Forbidden, Unauthenticated
from ..users.user_models import Caller

SESSION_COOKIE = "session"


def get_state(request: Request) -> AppState:
    return request.app.state.packup


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    state: AppState = Depends(get_state),
    authorization: str | None = Header(default=None),
    session: str | None = Cookie(default=None),
) -> Caller:
    """Resolve the session token (Bearer header first, then the session cookie)."""
    token = _bearer(authorization) or session
    caller = state.user_store.resolve_session(token)
    if caller is None:
        raise Unauthenticated()
    return caller


def get_current_admin(caller: Caller = Depends(get_current_user)) -> Caller:
    if not caller.is_operator:
        raise Forbidden("forbidden: admin access required")
    return caller
