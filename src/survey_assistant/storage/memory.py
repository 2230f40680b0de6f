"""In-memory storage backend for tests and local runs without a database."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

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


class InMemoryTranscriptStore:
    """Thread-safe in-memory implementation of the transcript store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionRecord] = {}
        self._messages: dict[str, list[MessageRecord]] = {}
        self._tool_runs: dict[str, ToolRunRecord] = {}
        self._tasks: dict[str, TaskRecord] = {}
        self._steps: dict[str, list[TaskStepRecord]] = {}

    def migrate(self) -> None:
        return None

    def get_or_create_session(
        self,
        identity: Identity,
        existing_session_id: str | None = None,
        *,
        locale: str | None = None,
    ) -> str:
        with self._lock:
            if existing_session_id:
                current = self._sessions.get(existing_session_id)
                if current is not None and current.user_id == identity.user_id:
                    return current.session_id
            now = datetime.now(UTC)
            record = SessionRecord(
                session_id=str(uuid4()),
                user_id=identity.user_id,
                company_id=identity.company_id,
                locale=locale,
                created_at=now,
                last_activity_at=now,
            )
            self._sessions[record.session_id] = record
            self._messages[record.session_id] = []
            return record.session_id

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    def update_session_activity(self, session_id: str) -> None:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                return
            self._sessions[session_id] = current.model_copy(
                update={"last_activity_at": datetime.now(UTC)}
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
        record = MessageRecord(
            message_id=str(uuid4()),
            session_id=session_id,
            role=role,
            content=content,
            tool_name=tool_name,
            tool_input=tool_input,
            tool_output=tool_output,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            latency_ms=latency_ms,
            created_at=datetime.now(UTC),
        )
        with self._lock:
            self._messages.setdefault(session_id, []).append(record)
        return record.message_id

    def get_session_messages(self, session_id: str, limit: int) -> list[MessageRecord]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._messages.get(session_id, [])[-limit:])

    def log_tool_run(
        self,
        session_id: str,
        *,
        tool_name: str,
        tool_input: dict[str, Any],
        status: ToolRunStatus,
        started_at: datetime,
    ) -> str:
        record = ToolRunRecord(
            tool_run_id=str(uuid4()),
            session_id=session_id,
            tool_name=tool_name,
            tool_input=tool_input,
            status=status,
            started_at=started_at,
        )
        with self._lock:
            self._tool_runs[record.tool_run_id] = record
        return record.tool_run_id

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
        with self._lock:
            current = self._tool_runs.get(tool_run_id)
            if current is None:
                raise KeyError(f"Tool run {tool_run_id} does not exist")
            self._tool_runs[tool_run_id] = current.model_copy(
                update={
                    "status": status,
                    "output": output,
                    "error": error,
                    "completed_at": completed_at,
                    "latency_ms": latency_ms,
                }
            )

    def get_tool_runs(self, session_id: str) -> list[ToolRunRecord]:
        with self._lock:
            return [run for run in self._tool_runs.values() if run.session_id == session_id]

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
        now = datetime.now(UTC)
        task = TaskRecord(
            task_id=str(uuid4()),
            session_id=session_id,
            created_by=identity.user_id,
            company_id=identity.company_id,
            title=title,
            goal=goal,
            status="pending",
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        step = TaskStepRecord(
            step_id=str(uuid4()),
            task_id=task.task_id,
            step_order=1,
            tool_name=tool_name,
            tool_input=dict(tool_input),
            status="pending",
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._tasks[task.task_id] = task
            self._steps[task.task_id] = [step]
        return task.task_id, step.step_id

    def get_task(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            return self._tasks.get(task_id)

    def get_task_steps(self, task_id: str) -> list[TaskStepRecord]:
        with self._lock:
            return sorted(self._steps.get(task_id, []), key=lambda step: step.step_order)

    def transition_task(
        self,
        task_id: str,
        *,
        from_status: TaskStatus,
        to_status: TaskStatus,
        step_status: TaskStepStatus,
        error: str | None = None,
    ) -> bool:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None or current.status != from_status:
                return False
            now = datetime.now(UTC)
            self._tasks[task_id] = current.model_copy(
                update={"status": to_status, "updated_at": now}
            )
            step_update: dict[str, Any] = {"status": step_status, "updated_at": now}
            if error is not None:
                step_update["error"] = error
            self._steps[task_id] = [
                step.model_copy(update=step_update) for step in self._steps.get(task_id, [])
            ]
            return True
