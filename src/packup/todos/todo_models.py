# src/packup/todos/todo_models.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

from ..errors import ValidationError

MAX_TEXT_LENGTH = 200

# Gap between neighbouring positions; new todos are prepended one gap above the minimum.
POSITION_INCREMENT = 1024.0

LIST_LIMIT = 100


class TodoStatus(StrEnum):
    """
    Todo status.

    A free enumeration: any status may follow any other.
    """

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TodoStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING

    @classmethod
    def parse(cls, raw: Any) -> TodoStatus:
        """Strict parse for client input."""
        if isinstance(raw, str):
            try:
                return cls(raw)
            except ValueError:
                pass
        raise ValidationError("invalid status")


def validate_text(text: Any) -> str:
    if not isinstance(text, str) or not (0 < len(text) <= MAX_TEXT_LENGTH):
        raise ValidationError(f"text cannot be empty or exceed {MAX_TEXT_LENGTH} characters")
    return text


@dataclass(frozen=True, slots=True)
class DefaultTodo:
    """Global template visible to every user. Per-user state lives in the overlay."""

    is_default: ClassVar[bool] = True

    id: str
    text: str
    status: TodoStatus
    created: float
    position: float
    created_by_user_id: str | None

    @property
    def user_id(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class PersonalTodo:
    """Todo owned by exactly one user; canonical fields are the source of truth."""

    is_default: ClassVar[bool] = False

    id: str
    text: str
    status: TodoStatus
    created: float
    position: float
    user_id: str
    created_by_user_id: str | None
    shared_with_admin: bool = True
    hidden_from_user: bool = False

    @property
    def is_assigned(self) -> bool:
        """Created by an operator on behalf of the owner."""
        return self.created_by_user_id is not None and self.created_by_user_id != self.user_id


Todo = DefaultTodo | PersonalTodo


@dataclass(frozen=True, slots=True)
class Overlay:
    """One user's status/position for one default todo."""

    user_id: str
    todo_id: str
    status: TodoStatus
    position: float
    updated_at: float


@dataclass(frozen=True, slots=True)
class TodoView:
    """A todo as one viewer sees it (after overlay resolution)."""

    todo: Todo
    status: TodoStatus
    position: float

    def to_dict(self) -> dict[str, Any]:
        t = self.todo
        out: dict[str, Any] = {
            "id": t.id,
            "text": t.text,
            "status": self.status.value,
            "created": _iso(t.created),
            "position": self.position,
        }
        if t.created_by_user_id is not None:
            out["created_by_user_id"] = t.created_by_user_id
        out["is_default_task"] = t.is_default
        if isinstance(t, PersonalTodo):
            out["shared_with_admin"] = t.shared_with_admin
            out["hidden_from_user"] = t.hidden_from_user
            out["user_id"] = t.user_id
        else:
            out["shared_with_admin"] = False
            out["hidden_from_user"] = False
        return out


@dataclass(frozen=True, slots=True)
class TodoPatch:
    """Partial update: None means "not sent"."""

    text: str | None = None
    status: TodoStatus | None = None
    shared_with_admin: bool | None = None
    hidden_from_user: bool | None = None

    @classmethod
    def from_body(cls, body: Mapping[str, Any], *, allowed: Iterable[str]) -> TodoPatch:
        """
        Decode a JSON body. Keys outside `allowed` are ignored, present keys
        are validated strictly (a sent empty text is an error, not a no-op).
        """
        allowed = set(allowed)
        values: dict[str, Any] = {}
        if "text" in allowed and body.get("text") is not None:
            values["text"] = validate_text(body["text"])
        if "status" in allowed and body.get("status") is not None:
            values["status"] = TodoStatus.parse(body["status"])
        for flag in ("shared_with_admin", "hidden_from_user"):
            if flag in allowed and body.get(flag) is not None:
                if not isinstance(body[flag], bool):
                    raise ValidationError(f"{flag} must be a boolean")
                values[flag] = body[flag]
        return cls(**values)

    def changes(self) -> dict[str, Any]:
        """Field name -> new value, for the fields actually sent."""
        return {
            name: value
            for name, value in (
                ("text", self.text),
                ("status", self.status),
                ("shared_with_admin", self.shared_with_admin),
                ("hidden_from_user", self.hidden_from_user),
            )
            if value is not None
        }


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat()
