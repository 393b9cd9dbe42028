# src/packup/todos/todo_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

from ..errors import StoreError
from .overlay import canonical, resolve
from .todo_models import (
    LIST_LIMIT,
    DefaultTodo,
    Overlay,
    PersonalTodo,
    Todo,
    TodoStatus,
    TodoView,
)
from .visibility import Visibility

logger = logging.getLogger(__name__)

# Columns a partial update may touch. Anything else in a change-set is a bug.
_UPDATABLE_COLUMNS = frozenset(
    {"text", "status", "position", "shared_with_admin", "hidden_from_user"}
)

_VIEW_COLUMNS = """
    t.*,
    uts.status AS overlay_status,
    uts.position AS overlay_position,
    uts.updated_at AS overlay_updated_at
"""

# Only default todos can match an overlay row.
_OVERLAY_JOIN = """
    LEFT JOIN user_todo_state uts
        ON uts.todo_id = t.id
       AND uts.user_id = ?
       AND t.is_default_task = 1
"""


class TodoStore:
    """
    SQLite store for todos and the per-user overlay of default todos.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Connections:
    - each call opens its own connection unless one is passed via `conn=`
    - multi-step operations use `transaction()` and pass its connection down
    """

    def __init__(self, db_path: str | Path = "packup.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_todos()
        except StoreError:
            total = -1
        logger.info("TodoStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        # Autocommit; transactions are opened explicitly with BEGIN IMMEDIATE.
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _use(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        """Borrow the caller's connection, or open (and close) a short-lived one."""
        if conn is not None:
            yield conn
            return
        own = self._get_conn()
        try:
            yield own
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        finally:
            own.close()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        One write transaction.

        Commits when the block exits normally. Any exception, including
        KeyboardInterrupt from an abandoned request, rolls everything back.
        """
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back db=%s", self._db_path)
                raise
            conn.execute("COMMIT")
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
                CREATE TABLE IF NOT EXISTS todos (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created REAL NOT NULL,
                    position REAL NOT NULL DEFAULT 0,
                    user_id TEXT,
                    created_by_user_id TEXT,
                    is_default_task INTEGER NOT NULL DEFAULT 0,
                    shared_with_admin INTEGER NOT NULL DEFAULT 1,
                    hidden_from_user INTEGER NOT NULL DEFAULT 0,
                    CHECK (is_default_task = 0 OR user_id IS NULL)
                )
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_todo_state (
                    user_id TEXT NOT NULL,
                    todo_id TEXT NOT NULL REFERENCES todos(id) ON DELETE CASCADE,
                    status TEXT NOT NULL DEFAULT 'pending',
                    position REAL NOT NULL DEFAULT 0,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (user_id, todo_id)
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(todos)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE todos ADD COLUMN {name} {decl}")
                logger.info("TodoStore migration: added column %s", name)

            add_col("created_by_user_id", "TEXT")
            add_col("is_default_task", "INTEGER NOT NULL DEFAULT 0")
            add_col("shared_with_admin", "INTEGER NOT NULL DEFAULT 1")
            add_col("hidden_from_user", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_user_position ON todos(user_id, position)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_todos_default_position ON todos(is_default_task, position)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_user_todo_state_todo ON user_todo_state(todo_id)")
        finally:
            conn.close()

    @staticmethod
    def _row_to_todo(row: sqlite3.Row) -> Todo:
        if int(row["is_default_task"] or 0):
            return DefaultTodo(
                id=str(row["id"]),
                text=str(row["text"]),
                status=TodoStatus.from_db(row["status"]),
                created=float(row["created"] or 0.0),
                position=float(row["position"] or 0.0),
                created_by_user_id=row["created_by_user_id"],
            )
        return PersonalTodo(
            id=str(row["id"]),
            text=str(row["text"]),
            status=TodoStatus.from_db(row["status"]),
            created=float(row["created"] or 0.0),
            position=float(row["position"] or 0.0),
            user_id=str(row["user_id"]),
            created_by_user_id=row["created_by_user_id"],
            shared_with_admin=bool(row["shared_with_admin"]),
            hidden_from_user=bool(row["hidden_from_user"]),
        )

    def _row_to_view(self, row: sqlite3.Row, viewer_id: str) -> TodoView:
        todo = self._row_to_todo(row)
        overlay = None
        if row["overlay_status"] is not None:
            overlay = Overlay(
                user_id=viewer_id,
                todo_id=todo.id,
                status=TodoStatus.from_db(row["overlay_status"]),
                position=float(row["overlay_position"]),
                updated_at=float(row["overlay_updated_at"] or 0.0),
            )
        return resolve(todo, overlay)

    # ---- reads ----

    def count_todos(self) -> int:
        with self._use(None) as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM todos").fetchone()
            return int(n)

    def get_todo(self, todo_id: str, *, conn: sqlite3.Connection | None = None) -> Todo | None:
        with self._use(conn) as c:
            row = c.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
            return self._row_to_todo(row) if row else None

    def get_view(
        self,
        todo_id: str,
        viewer_id: str,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> TodoView | None:
        """One todo with `viewer_id`'s overlay applied."""
        with self._use(conn) as c:
            row = c.execute(
                f"SELECT {_VIEW_COLUMNS} FROM todos t {_OVERLAY_JOIN} WHERE t.id = ?",
                (viewer_id, todo_id),
            ).fetchone()
            return self._row_to_view(row, viewer_id) if row else None

    def get_overlay(
        self,
        user_id: str,
        todo_id: str,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> Overlay | None:
        with self._use(conn) as c:
            row = c.execute(
                "SELECT * FROM user_todo_state WHERE user_id = ? AND todo_id = ?",
                (user_id, todo_id),
            ).fetchone()
            if not row:
                return None
            return Overlay(
                user_id=str(row["user_id"]),
                todo_id=str(row["todo_id"]),
                status=TodoStatus.from_db(row["status"]),
                position=float(row["position"]),
                updated_at=float(row["updated_at"] or 0.0),
            )

    def count_overlays(self, todo_id: str) -> int:
        with self._use(None) as conn:
            (n,) = conn.execute(
                "SELECT COUNT(*) FROM user_todo_state WHERE todo_id = ?", (todo_id,)
            ).fetchone()
            return int(n)

    def min_position(
        self,
        *,
        owner_id: str | None,
        conn: sqlite3.Connection | None = None,
    ) -> float:
        """Lowest position among the owner's todos, or among default todos when owner_id is None."""
        with self._use(conn) as c:
            if owner_id is None:
                row = c.execute(
                    "SELECT COALESCE(MIN(position), 0) FROM todos WHERE is_default_task = 1"
                ).fetchone()
            else:
                row = c.execute(
                    "SELECT COALESCE(MIN(position), 0) FROM todos WHERE user_id = ?",
                    (owner_id,),
                ).fetchone()
            return float(row[0])

    def list_todos(
        self,
        visibility: Visibility,
        *,
        limit: int = LIST_LIMIT,
        conn: sqlite3.Connection | None = None,
    ) -> list[TodoView]:
        """
        Todos inside `visibility`, overlay-resolved for its viewer.

        Ordered by effective position, newest first on ties.
        """
        where, params = visibility.where_clause("t")
        with self._use(conn) as c:
            rows = c.execute(
                f"""
                SELECT {_VIEW_COLUMNS}
                FROM todos t
                {_OVERLAY_JOIN}
                WHERE {where}
                ORDER BY
                    CASE WHEN t.is_default_task = 1
                        THEN COALESCE(uts.position, t.position)
                        ELSE t.position
                    END ASC,
                    t.created DESC
                LIMIT ?
                """,
                (visibility.viewer_id, *params, int(limit)),
            ).fetchall()
            return [self._row_to_view(r, visibility.viewer_id) for r in rows]

    def list_defaults(
        self,
        *,
        limit: int = LIST_LIMIT,
        conn: sqlite3.Connection | None = None,
    ) -> list[TodoView]:
        """Default todos with their canonical status/position (the operator's template view)."""
        with self._use(conn) as c:
            rows = c.execute(
                """
                SELECT *
                FROM todos
                WHERE is_default_task = 1
                ORDER BY position ASC, created DESC
                LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [canonical(self._row_to_todo(r)) for r in rows]

    # ---- writes ----

    def insert_todo(self, todo: Todo, *, conn: sqlite3.Connection | None = None) -> None:
        shared = todo.shared_with_admin if isinstance(todo, PersonalTodo) else False
        hidden = todo.hidden_from_user if isinstance(todo, PersonalTodo) else False
        with self._use(conn) as c:
            c.execute(
                """
                INSERT INTO todos(
                    id, text, status, created, position,
                    user_id, created_by_user_id,
                    is_default_task, shared_with_admin, hidden_from_user
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    todo.id,
                    todo.text,
                    todo.status.value,
                    float(todo.created),
                    float(todo.position),
                    todo.user_id,
                    todo.created_by_user_id,
                    int(todo.is_default),
                    int(shared),
                    int(hidden),
                ),
            )
        logger.debug(
            "Todo added id=%s default=%s owner=%s position=%s",
            todo.id,
            todo.is_default,
            todo.user_id,
            todo.position,
        )

    def update_todo_fields(
        self,
        todo_id: str,
        changes: Mapping[str, Any],
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """
        Apply a change-set to the canonical row as one parameterised UPDATE.

        Column names come from the change-set keys and must be whitelisted;
        values are always bound.
        """
        if not changes:
            return 0
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")

        columns = sorted(changes)
        params: list[Any] = []
        for name in columns:
            value = changes[name]
            if isinstance(value, TodoStatus):
                value = value.value
            elif isinstance(value, bool):
                value = int(value)
            params.append(value)
        params.append(todo_id)

        sql = f"UPDATE todos SET {', '.join(f'{name} = ?' for name in columns)} WHERE id = ?"
        with self._use(conn) as c:
            cur = c.execute(sql, params)
            return cur.rowcount

    def upsert_overlay_status(
        self,
        user_id: str,
        todo_id: str,
        status: TodoStatus,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """A user's status for a default todo. A new row starts at the todo's canonical position."""
        now = time.time()
        with self._use(conn) as c:
            c.execute(
                """
                INSERT INTO user_todo_state(user_id, todo_id, status, position, updated_at)
                VALUES (?, ?, ?, (SELECT position FROM todos WHERE id = ?), ?)
                ON CONFLICT(user_id, todo_id)
                DO UPDATE SET status = excluded.status, updated_at = excluded.updated_at
                """,
                (user_id, todo_id, status.value, todo_id, now),
            )

    def upsert_overlay_position(
        self,
        user_id: str,
        todo_id: str,
        position: float,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """A user's position for a default todo. Keeps the user's status; a new row starts as pending."""
        now = time.time()
        with self._use(conn) as c:
            c.execute(
                """
                INSERT INTO user_todo_state(user_id, todo_id, status, position, updated_at)
                VALUES (?, ?, 'pending', ?, ?)
                ON CONFLICT(user_id, todo_id)
                DO UPDATE SET position = excluded.position, updated_at = excluded.updated_at
                """,
                (user_id, todo_id, float(position), now),
            )

    def update_personal_position(
        self,
        todo_id: str,
        owner_id: str,
        position: float,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Returns 0 when the todo is not owned by `owner_id`."""
        with self._use(conn) as c:
            cur = c.execute(
                """
                UPDATE todos
                SET position = ?
                WHERE id = ? AND user_id = ? AND is_default_task = 0
                """,
                (float(position), todo_id, owner_id),
            )
            return cur.rowcount

    def update_default_position(
        self,
        todo_id: str,
        position: float,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        with self._use(conn) as c:
            cur = c.execute(
                "UPDATE todos SET position = ? WHERE id = ? AND is_default_task = 1",
                (float(position), todo_id),
            )
            return cur.rowcount

    def delete_todo(self, todo_id: str, *, conn: sqlite3.Connection | None = None) -> int:
        """Delete a todo and every overlay row that refers to it."""
        with self._use(conn) as c:
            # Explicit as well as ON DELETE CASCADE: tables created before the
            # foreign key existed have no cascade.
            c.execute("DELETE FROM user_todo_state WHERE todo_id = ?", (todo_id,))
            cur = c.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
            deleted = cur.rowcount
        logger.debug("Todo deleted id=%s rows=%s", todo_id, deleted)
        return deleted
