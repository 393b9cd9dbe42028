# src/packup/users/user_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    USER = "user"
    OPERATOR = "operator"

    @classmethod
    def from_db(cls, raw: str | None) -> Role:
        if not raw:
            return cls.USER
        try:
            return cls(raw)
        except ValueError:
            return cls.USER


def classify_role(email: str, admin_emails: Iterable[str]) -> Role:
    """Operator iff the email is on the configured admin list (exact match, whitespace-trimmed)."""
    email = (email or "").strip()
    if not email:
        return Role.USER
    for candidate in admin_emails:
        if candidate.strip() == email:
            return Role.OPERATOR
    return Role.USER


@dataclass(frozen=True, slots=True)
class Caller:
    """Resolved identity of whoever issued a request."""

    user_id: str
    role: Role

    @property
    def is_operator(self) -> bool:
        return self.role == Role.OPERATOR


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str
    name: str
    avatar_url: str
    role: Role
    created_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "avatar_url": self.avatar_url,
            "role": self.role.value,
            "created_at": datetime.fromtimestamp(self.created_at, UTC).isoformat(),
        }
