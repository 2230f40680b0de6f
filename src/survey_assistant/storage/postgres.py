"""PostgreSQL-backed transcript store with automatic table migration."""

from __future__ import annotations

import json
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from survey_assistant.errors import StorageError
from survey_assistant.storage.models import (
    Identity,
    MessageRecord,
    MessageRole,
    SessionRecord,
    TaskRecord,
    TaskStatus,
    TaskStepRecord,
    TaskStepStatus,
    ToolRunRecord,
    ToolRunStatus,
)


class PostgresTranscriptStore:
    """Persist sessions, messages, tool runs and tasks in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("SURVEY_ASSISTANT_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_sessions (
                    id UUID PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    company_id TEXT,
                    locale TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    created_at TIMESTAMPTZ NOT NULL,
                    last_activity_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_ai_sessions_user_id
                ON ai_sessions(user_id)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_messages (
                    seq BIGSERIAL PRIMARY KEY,
                    id UUID NOT NULL UNIQUE,
                    session_id UUID NOT NULL REFERENCES ai_sessions(id) ON DELETE CASCADE,
                    role TEXT NOT NULL,
                    content TEXT,
                    tool_name TEXT,
                    tool_input JSONB,
                    tool_output JSONB,
                    tokens_in INTEGER,
                    tokens_out INTEGER,
                    latency_ms INTEGER,
                    created_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_ai_messages_session_seq
                ON ai_messages(session_id, seq DESC)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_tool_runs (
                    id UUID PRIMARY KEY,
                    session_id UUID NOT NULL REFERENCES ai_sessions(id) ON DELETE CASCADE,
                    tool_name TEXT NOT NULL,
                    tool_input JSONB NOT NULL DEFAULT '{}'::jsonb,
                    status TEXT NOT NULL,
                    output JSONB,
                    error TEXT,
                    started_at TIMESTAMPTZ NOT NULL,
                    completed_at TIMESTAMPTZ,
                    latency_ms INTEGER
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_ai_tool_runs_session_id
                ON ai_tool_runs(session_id)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_tasks (
                    id UUID PRIMARY KEY,
                    session_id UUID NOT NULL REFERENCES ai_sessions(id) ON DELETE CASCADE,
                    created_by TEXT NOT NULL,
                    company_id TEXT,
                    title TEXT NOT NULL,
                    goal TEXT,
                    status TEXT NOT NULL,
                    metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_ai_tasks_created_by
                ON ai_tasks(created_by)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_task_steps (
                    id UUID PRIMARY KEY,
                    task_id UUID NOT NULL REFERENCES ai_tasks(id) ON DELETE CASCADE,
                    step_order INTEGER NOT NULL,
                    tool_name TEXT NOT NULL,
                    tool_input JSONB NOT NULL DEFAULT '{}'::jsonb,
                    status TEXT NOT NULL,
                    error TEXT,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_ai_task_steps_task_order
                ON ai_task_steps(task_id, step_order)
                """)

    def get_or_create_session(
        self,
        identity: Identity,
        existing_session_id: str | None = None,
        *,
        locale: str | None = None,
    ) -> str:
        with self._transaction() as conn:
            if existing_session_id:
                row = conn.execute(
                    "SELECT id FROM ai_sessions WHERE id::text = %s AND user_id = %s",
                    (existing_session_id, identity.user_id),
                ).fetchone()
                if row is not None:
                    return str(row["id"])
            session_id = uuid.uuid4()
            now = datetime.now(tz=UTC)
            conn.execute(
                """
                INSERT INTO ai_sessions (
                    id, user_id, company_id, locale, status, created_at, last_activity_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (session_id, identity.user_id, identity.company_id, locale, "active", now, now),
            )
        return str(session_id)

    def get_session(self, session_id: str) -> SessionRecord | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM ai_sessions WHERE id::text = %s",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return SessionRecord(
            session_id=str(row["id"]),
            user_id=row["user_id"],
            company_id=row["company_id"],
            locale=row["locale"],
            status=row["status"],
            created_at=row["created_at"],
            last_activity_at=row["last_activity_at"],
        )

    def update_session_activity(self, session_id: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE ai_sessions SET last_activity_at = %s WHERE id::text = %s",
                (datetime.now(tz=UTC), session_id),
            )

    def log_message(
        self,
        session_id: str,
        *,
        role: MessageRole,
        content: str | None,
        tool_name: str | None = None,
        tool_input: dict[str, Any] | None = None,
        tool_output: Any = None,
        tokens_in: int | None = None,
        tokens_out: int | None = None,
        latency_ms: int | None = None,
    ) -> str:
        message_id = uuid.uuid4()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO ai_messages (
                    id,
                    session_id,
                    role,
                    content,
                    tool_name,
                    tool_input,
                    tool_output,
                    tokens_in,
                    tokens_out,
                    latency_ms,
                    created_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    message_id,
                    session_id,
                    role,
                    content,
                    tool_name,
                    self._json_optional(tool_input),
                    self._json_optional(tool_output),
                    tokens_in,
                    tokens_out,
                    latency_ms,
                    datetime.now(tz=UTC),
                ),
            )
        return str(message_id)

    def get_session_messages(self, session_id: str, limit: int) -> list[MessageRecord]:
        if limit <= 0:
            return []
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM (
                    SELECT *
                    FROM ai_messages
                    WHERE session_id::text = %s
                    ORDER BY seq DESC
                    LIMIT %s
                ) AS latest
                ORDER BY seq ASC
                """,
                (session_id, limit),
            ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def log_tool_run(
        self,
        session_id: str,
        *,
        tool_name: str,
        tool_input: dict[str, Any],
        status: ToolRunStatus,
        started_at: datetime,
    ) -> str:
        tool_run_id = uuid.uuid4()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO ai_tool_runs (
                    id, session_id, tool_name, tool_input, status, started_at
                )
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    tool_run_id,
                    session_id,
                    tool_name,
                    self._json_wrapper(tool_input),
                    status,
                    started_at,
                ),
            )
        return str(tool_run_id)

    def update_tool_run(
        self,
        tool_run_id: str,
        *,
        status: ToolRunStatus,
        output: Any,
        error: str | None,
        completed_at: datetime,
        latency_ms: int,
    ) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                """
                UPDATE ai_tool_runs
                SET status = %s,
                    output = %s,
                    error = %s,
                    completed_at = %s,
                    latency_ms = %s
                WHERE id::text = %s
                RETURNING id
                """,
                (
                    status,
                    self._json_optional(output),
                    error,
                    completed_at,
                    latency_ms,
                    tool_run_id,
                ),
            ).fetchone()
        if row is None:
            raise KeyError(f"Tool run {tool_run_id} does not exist")

    def get_tool_runs(self, session_id: str) -> list[ToolRunRecord]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM ai_tool_runs
                WHERE session_id::text = %s
                ORDER BY started_at ASC
                """,
                (session_id,),
            ).fetchall()
        return [self._row_to_tool_run(row) for row in rows]

    def create_pending_task(
        self,
        *,
        session_id: str,
        identity: Identity,
        title: str,
        goal: str | None,
        tool_name: str,
        tool_input: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> tuple[str, str]:
        task_id = uuid.uuid4()
        step_id = uuid.uuid4()
        now = datetime.now(tz=UTC)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO ai_tasks (
                    id,
                    session_id,
                    created_by,
                    company_id,
                    title,
                    goal,
                    status,
                    metadata,
                    created_at,
                    updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    task_id,
                    session_id,
                    identity.user_id,
                    identity.company_id,
                    title,
                    goal,
                    "pending",
                    self._json_wrapper(metadata or {}),
                    now,
                    now,
                ),
            )
            conn.execute(
                """
                INSERT INTO ai_task_steps (
                    id, task_id, step_order, tool_name, tool_input, status, created_at, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (step_id, task_id, 1, tool_name, self._json_wrapper(tool_input), "pending", now, now),
            )
        return str(task_id), str(step_id)

    def get_task(self, task_id: str) -> TaskRecord | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM ai_tasks WHERE id::text = %s",
                (task_id,),
            ).fetchone()
        if row is None:
            return None
        return TaskRecord(
            task_id=str(row["id"]),
            session_id=str(row["session_id"]),
            created_by=row["created_by"],
            company_id=row["company_id"],
            title=row["title"],
            goal=row["goal"],
            status=row["status"],
            metadata=self._parse_json(row["metadata"]) or {},
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_task_steps(self, task_id: str) -> list[TaskStepRecord]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM ai_task_steps
                WHERE task_id::text = %s
                ORDER BY step_order ASC
                """,
                (task_id,),
            ).fetchall()
        return [
            TaskStepRecord(
                step_id=str(row["id"]),
                task_id=str(row["task_id"]),
                step_order=int(row["step_order"]),
                tool_name=row["tool_name"],
                tool_input=self._parse_json(row["tool_input"]) or {},
                status=row["status"],
                error=row["error"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]

    def transition_task(
        self,
        task_id: str,
        *,
        from_status: TaskStatus,
        to_status: TaskStatus,
        step_status: TaskStepStatus,
        error: str | None = None,
    ) -> bool:
        now = datetime.now(tz=UTC)
        with self._transaction() as conn:
            # Conditional update: only one caller can move the task out of from_status.
            claimed = conn.execute(
                """
                UPDATE ai_tasks
                SET status = %s, updated_at = %s
                WHERE id::text = %s AND status = %s
                RETURNING id
                """,
                (to_status, now, task_id, from_status),
            ).fetchone()
            if claimed is None:
                return False
            conn.execute(
                """
                UPDATE ai_task_steps
                SET status = %s,
                    error = COALESCE(%s, error),
                    updated_at = %s
                WHERE task_id::text = %s
                """,
                (step_status, error, now, task_id),
            )
        return True

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        try:
            with self._lock, self._connect() as conn:
                yield conn
                conn.commit()
        except self._psycopg.Error as exc:
            raise StorageError(f"PostgreSQL operation failed: {exc}") from exc

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    def _json_optional(self, value: Any) -> Any:
        if value is None:
            return None
        return self._json_wrapper(value)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json(raw: Any) -> Any:
        if isinstance(raw, str):
            return json.loads(raw)
        return raw

    @classmethod
    def _row_to_message(cls, row: Any) -> MessageRecord:
        return MessageRecord(
            message_id=str(row["id"]),
            session_id=str(row["session_id"]),
            role=row["role"],
            content=row["content"],
            tool_name=row["tool_name"],
            tool_input=cls._parse_json(row["tool_input"]),
            tool_output=cls._parse_json(row["tool_output"]),
            tokens_in=row["tokens_in"],
            tokens_out=row["tokens_out"],
            latency_ms=row["latency_ms"],
            created_at=row["created_at"],
        )

    @classmethod
    def _row_to_tool_run(cls, row: Any) -> ToolRunRecord:
        return ToolRunRecord(
            tool_run_id=str(row["id"]),
            session_id=str(row["session_id"]),
            tool_name=row["tool_name"],
            tool_input=cls._parse_json(row["tool_input"]) or {},
            status=row["status"],
            output=cls._parse_json(row["output"]),
            error=row["error"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            latency_ms=row["latency_ms"],
        )
