# src/chronotask/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..core.clock import Clock, SystemClock
from .task_filter import TaskFilter
from .task_models import (
    HistoryAction,
    RecurrencePattern,
    Task,
    TaskHistoryEntry,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# name -> column declaration (also used by the additive migration)
_COLUMNS: dict[str, str] = {
    "owner_id": "TEXT NOT NULL DEFAULT ''",
    "assignee_id": "TEXT",
    "title": "TEXT NOT NULL DEFAULT ''",
    "description": "TEXT NOT NULL DEFAULT ''",
    "status": "TEXT NOT NULL DEFAULT 'pending'",
    "priority": "TEXT NOT NULL DEFAULT 'medium'",
    "category": "TEXT",
    "tags": "TEXT NOT NULL DEFAULT '[]'",
    "estimated_duration": "INTEGER",
    "notes": "TEXT",
    "progress": "INTEGER NOT NULL DEFAULT 0",
    "due_at": "REAL",
    "start_at": "REAL",
    "completed_at": "REAL",
    "is_recurring": "INTEGER NOT NULL DEFAULT 0",
    "recurrence_pattern": "TEXT",
    "recurrence_interval": "INTEGER NOT NULL DEFAULT 1",
    "custom_schedule": "TEXT",
    "recurrence_end_at": "REAL",
    "last_occurrence_at": "REAL",
    "next_occurrence_at": "REAL",
    "reminder_enabled": "INTEGER NOT NULL DEFAULT 1",
    "reminder_sent": "INTEGER NOT NULL DEFAULT 0",
    "reminder_at": "REAL",
    "depends_on": "TEXT NOT NULL DEFAULT '[]'",
    "metadata": "TEXT NOT NULL DEFAULT '{}'",
    "created_at": "REAL NOT NULL DEFAULT 0",
    "updated_at": "REAL NOT NULL DEFAULT 0",
}

_BOOL_COLUMNS = frozenset({"is_recurring", "reminder_enabled", "reminder_sent"})
_LIST_COLUMNS = frozenset({"tags", "depends_on"})
_WRITABLE = frozenset(_COLUMNS) - {"created_at", "updated_at"}


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    Concurrency:
    - update_task(..., where=TaskFilter) is a compare-and-set: the row is only
      written when it still matches the filter, and None is returned otherwise.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, clock: Clock | None = None) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock or SystemClock()
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cols_sql = ",\n".join(f"{name} {decl}" for name, decl in _COLUMNS.items())
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    {cols_sql}
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}
            for name, decl in _COLUMNS.items():
                if name in cols:
                    continue
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(status, due_at)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_recurring "
                "ON tasks(is_recurring, next_occurrence_at)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_people ON tasks(owner_id, assignee_id)")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    actor_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    old_value TEXT,
                    new_value TEXT,
                    comment TEXT,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_history_task ON task_history(task_id, created_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _json_to_str(value: Any, empty: str) -> str:
        if not value:
            return empty
        try:
            return json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError):
            logger.exception("Failed to JSON-encode value; storing %s.", empty)
            return empty

    @staticmethod
    def _str_to_json(s: str | None, expected: type) -> Any:
        if not s:
            return expected()
        try:
            val = json.loads(s)
        except ValueError:
            return expected()
        return val if isinstance(val, expected) else expected()

    def _encode(self, column: str, value: Any) -> Any:
        if column in _BOOL_COLUMNS:
            return int(bool(value))
        if column in _LIST_COLUMNS:
            return self._json_to_str(list(value or []), "[]")
        if column == "metadata":
            return self._json_to_str(dict(value or {}), "{}")
        if column in ("status", "recurrence_pattern"):
            return None if value is None else str(value)
        return value

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        def opt_float(name: str) -> float | None:
            v = row[name]
            return float(v) if v is not None else None

        return Task(
            id=int(row["id"]),
            owner_id=str(row["owner_id"] or ""),
            title=str(row["title"] or ""),
            status=TaskStatus.from_db(row["status"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            assignee_id=row["assignee_id"],
            description=str(row["description"] or ""),
            priority=str(row["priority"] or "medium"),
            category=row["category"],
            tags=[str(t) for t in self._str_to_json(row["tags"], list)],
            estimated_duration=row["estimated_duration"],
            notes=row["notes"],
            progress=int(row["progress"] or 0),
            due_at=opt_float("due_at"),
            start_at=opt_float("start_at"),
            completed_at=opt_float("completed_at"),
            is_recurring=bool(row["is_recurring"]),
            recurrence_pattern=RecurrencePattern.from_db(row["recurrence_pattern"]),
            recurrence_interval=int(row["recurrence_interval"] or 1),
            custom_schedule=row["custom_schedule"],
            recurrence_end_at=opt_float("recurrence_end_at"),
            last_occurrence_at=opt_float("last_occurrence_at"),
            next_occurrence_at=opt_float("next_occurrence_at"),
            reminder_enabled=bool(row["reminder_enabled"]),
            reminder_sent=bool(row["reminder_sent"]),
            reminder_at=opt_float("reminder_at"),
            depends_on=[int(t) for t in self._str_to_json(row["depends_on"], list)],
            metadata=self._str_to_json(row["metadata"], dict),
        )

    def _row_to_history(self, row: sqlite3.Row) -> TaskHistoryEntry:
        return TaskHistoryEntry(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            actor_id=str(row["actor_id"]),
            action=HistoryAction(row["action"]),
            created_at=float(row["created_at"]),
            old_value=self._str_to_json(row["old_value"], dict) if row["old_value"] else None,
            new_value=self._str_to_json(row["new_value"], dict) if row["new_value"] else None,
            comment=row["comment"],
        )

    @staticmethod
    def _check_fields(fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - _WRITABLE
        if unknown:
            raise ValueError(f"unknown task fields: {', '.join(sorted(unknown))}")

    # ---- public API ----

    def count_tasks(self, flt: TaskFilter | None = None) -> int:
        where, params = (flt or TaskFilter()).to_sql()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT COUNT(*) FROM tasks WHERE {where}", params)
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def count_by_status(self) -> dict[str, int]:
        out = {s.value: 0 for s in TaskStatus}
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT status, COUNT(*) AS n FROM tasks GROUP BY status")
            for row in cur.fetchall():
                out[str(row["status"])] = int(row["n"])
            return out
        finally:
            conn.close()

    def create_task(self, *, owner_id: str, title: str, **fields: Any) -> Task:
        if not owner_id or not owner_id.strip():
            raise ValueError("owner_id is required")
        if not title or not title.strip():
            raise ValueError("title is required")
        self._check_fields(fields)

        interval = fields.get("recurrence_interval")
        if interval is not None and int(interval) < 1:
            raise ValueError("recurrence_interval must be a positive integer")

        now = self._clock.now()
        values: dict[str, Any] = {"owner_id": owner_id.strip(), "title": title.strip()}
        values.update(fields)
        values["created_at"] = now
        values["updated_at"] = now

        names = list(values)
        placeholders = ", ".join("?" for _ in names)
        params = [self._encode(n, values[n]) for n in names]

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"INSERT INTO tasks({', '.join(names)}) VALUES ({placeholders})",
                params,
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(rowid),))
            task = self._row_to_task(cur.fetchone())
        finally:
            conn.close()

        logger.debug(
            "Task added id=%s owner=%s status=%s due_at=%s recurring=%s",
            task.id,
            task.owner_id,
            task.status.value,
            task.due_at,
            task.is_recurring,
        )
        return task

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def find_tasks(self, flt: TaskFilter | None = None, *, limit: int | None = None) -> list[Task]:
        """Return tasks matching the filter, earliest due (or created) first."""
        where, params = (flt or TaskFilter()).to_sql()
        sql = f"SELECT * FROM tasks WHERE {where} ORDER BY COALESCE(due_at, created_at) ASC, id ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params = [*params, int(limit)]

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def update_task(
        self,
        task_id: int,
        fields: Mapping[str, Any],
        *,
        where: TaskFilter | None = None,
    ) -> Task | None:
        """
        Write the given fields and return the updated task.

        Returns None if the task does not exist or, when `where` is given,
        the row no longer matches it (someone else got there first).
        """
        self._check_fields(fields)

        sets = [f"{name} = ?" for name in fields]
        params: list[Any] = [self._encode(name, value) for name, value in fields.items()]
        sets.append("updated_at = ?")
        params.append(self._clock.now())
        params.append(int(task_id))

        cond, cond_params = (where or TaskFilter()).to_sql()
        params.extend(cond_params)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE tasks SET {', '.join(sets)} WHERE id = ? AND {cond}",
                params,
            )
            conn.commit()
            if cur.rowcount != 1:
                return None
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def delete_tasks(self, flt: TaskFilter) -> int:
        """Delete all matching tasks (and their history rows). Returns the number of tasks deleted."""
        where, params = flt.to_sql()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                f"DELETE FROM task_history WHERE task_id IN (SELECT id FROM tasks WHERE {where})",
                params,
            )
            cur.execute(f"DELETE FROM tasks WHERE {where}", params)
            deleted = int(cur.rowcount)
            conn.commit()
            return deleted
        finally:
            conn.close()

    # ---- history (append-only) ----

    def add_history(
        self,
        *,
        task_id: int,
        actor_id: str,
        action: HistoryAction,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO task_history(task_id, actor_id, action, old_value, new_value, comment, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(task_id),
                    actor_id,
                    HistoryAction(action).value,
                    self._json_to_str(old_value, "") or None,
                    self._json_to_str(new_value, "") or None,
                    comment,
                    self._clock.now(),
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for task_history insert")
            return int(rowid)
        finally:
            conn.close()

    def list_history(self, task_id: int) -> list[TaskHistoryEntry]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM task_history WHERE task_id = ? ORDER BY created_at ASC, id ASC",
                (int(task_id),),
            )
            return [self._row_to_history(r) for r in cur.fetchall()]
        finally:
            conn.close()
