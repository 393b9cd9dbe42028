# src/packup/api/schemas.py

"""
Request bodies.

Text and status values are checked by the service. Booleans and id lists
are strict here, so "yes" or "a,b" are rejected before any handler runs.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def sent(self) -> dict[str, Any]:
        """Fields the client actually sent with a non-null value."""
        return self.model_dump(exclude_none=True)


class TodoCreateIn(_Body):
    text: StrictStr | None = None
    shared_with_admin: StrictBool | None = None


class TodoUpdateIn(_Body):
    text: StrictStr | None = None
    status: StrictStr | None = None
    shared_with_admin: StrictBool | None = None


class ReorderIn(_Body):
    ids: list[StrictStr] = []


class DefaultCreateIn(_Body):
    text: StrictStr | None = None


class DefaultUpdateIn(_Body):
    text: StrictStr | None = None
    status: StrictStr | None = None


class AssignIn(_Body):
    text: StrictStr | None = None
    hidden_from_user: StrictBool | None = None


class UserTodoUpdateIn(_Body):
    text: StrictStr | None = None
    status: StrictStr | None = None
    hidden_from_user: StrictBool | None = None
