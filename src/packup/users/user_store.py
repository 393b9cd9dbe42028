# src/packup/users/user_store.py

from __future__ import annotations

import contextlib
import logging
import secrets
import sqlite3
import time
import uuid
from collections.abc import Iterable, Iterator
from pathlib import Path

from ..errors import StoreError
from .user_models import Caller, Role, User, classify_role

logger = logging.getLogger(__name__)


class UserStore:
    """
    SQLite store for users and their session tokens.

    Login itself (the identity provider round-trip) happens elsewhere; this
    store only records who the user is, which role they hold, and which
    opaque tokens currently map to them.

    The role is computed once per upsert from the configured admin list and
    stored on the row. Requests never consult the environment.
    """

    def __init__(self, db_path: str | Path = "packup.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("UserStore ready db=%s", self._db_path)

    def close(self) -> None:
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        # sessions.user_id cascades on user delete.
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextlib.contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL DEFAULT '',
                    avatar_url TEXT NOT NULL DEFAULT '',
                    role TEXT NOT NULL DEFAULT 'user',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    expires_at REAL NOT NULL
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)")
        finally:
            conn.close()

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            email=str(row["email"]),
            name=str(row["name"] or ""),
            avatar_url=str(row["avatar_url"] or ""),
            role=Role.from_db(row["role"]),
            created_at=float(row["created_at"] or 0.0),
        )

    # ---- users ----

    def upsert_user(
        self,
        *,
        email: str,
        admin_emails: Iterable[str] = (),
        name: str = "",
        avatar_url: str = "",
    ) -> User:
        """
        Create the user on first sight, otherwise refresh profile and role.

        Re-classifying on every upsert lets a change to the admin list take
        effect at the user's next login.
        """
        email = (email or "").strip()
        if not email:
            raise ValueError("email is required")
        role = classify_role(email, admin_emails)

        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            if row is None:
                user_id = str(uuid.uuid4())
                conn.execute(
                    """
                    INSERT INTO users(id, email, name, avatar_url, role, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (user_id, email, name, avatar_url, role.value, time.time()),
                )
                logger.info("User created id=%s role=%s", user_id, role.value)
            else:
                user_id = str(row["id"])
                if Role.from_db(row["role"]) != role:
                    logger.info("User role changed id=%s %s -> %s", user_id, row["role"], role.value)
                conn.execute(
                    """
                    UPDATE users
                    SET role = ?,
                        name = COALESCE(NULLIF(?, ''), name),
                        avatar_url = COALESCE(NULLIF(?, ''), avatar_url)
                    WHERE id = ?
                    """,
                    (role.value, name, avatar_url, user_id),
                )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row)

    def get_user(self, user_id: str) -> User | None:
        with self._conn() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def user_exists(self, user_id: str) -> bool:
        with self._conn() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
            return row is not None

    def list_users(self, *, include_operators: bool = False) -> list[User]:
        """Newest first. Operators are left out unless asked for."""
        sql = "SELECT * FROM users"
        params: tuple[str, ...] = ()
        if not include_operators:
            sql += " WHERE role != ?"
            params = (Role.OPERATOR.value,)
        sql += " ORDER BY created_at DESC"
        with self._conn() as conn:
            return [self._row_to_user(r) for r in conn.execute(sql, params).fetchall()]

    # ---- sessions ----

    def create_session(self, user_id: str, *, ttl_seconds: float) -> str:
        token = secrets.token_urlsafe(32)
        expires_at = time.time() + float(ttl_seconds)
        with self._conn() as conn:
            conn.execute(
                "INSERT INTO sessions(token, user_id, expires_at) VALUES (?, ?, ?)",
                (token, user_id, expires_at),
            )
        logger.debug("Session created user=%s expires_at=%s", user_id, expires_at)
        return token

    def resolve_session(self, token: str | None, *, now_ts: float | None = None) -> Caller | None:
        """Map an opaque token to (user_id, role). Unknown or expired tokens give None."""
        if not token:
            return None
        if now_ts is None:
            now_ts = time.time()
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT u.id, u.role
                FROM sessions s
                JOIN users u ON u.id = s.user_id
                WHERE s.token = ? AND s.expires_at > ?
                """,
                (token, float(now_ts)),
            ).fetchone()
        if row is None:
            return None
        return Caller(user_id=str(row["id"]), role=Role.from_db(row["role"]))

    def delete_session(self, token: str) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
