"""Storage interface for sessions, transcripts, tool runs and confirmable tasks."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

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


class TranscriptStore(Protocol):
    def migrate(self) -> None: ...

    def get_or_create_session(
        self,
        identity: Identity,
        existing_session_id: str | None = None,
        *,
        locale: str | None = None,
    ) -> str: ...

    def get_session(self, session_id: str) -> SessionRecord | None: ...

    def update_session_activity(self, session_id: str) -> None: ...

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
    ) -> str: ...

    def get_session_messages(self, session_id: str, limit: int) -> list[MessageRecord]: ...

    def log_tool_run(
        self,
        session_id: str,
        *,
        tool_name: str,
        tool_input: dict[str, Any],
        status: ToolRunStatus,
        started_at: datetime,
    ) -> str: ...

    def update_tool_run(
        self,
        tool_run_id: str,
        *,
        status: ToolRunStatus,
        output: Any,
        error: str | None,
        completed_at: datetime,
        latency_ms: int,
    ) -> None: ...

    def get_tool_runs(self, session_id: str) -> list[ToolRunRecord]: ...

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
    ) -> tuple[str, str]: ...

    def get_task(self, task_id: str) -> TaskRecord | None: ...

    def get_task_steps(self, task_id: str) -> list[TaskStepRecord]: ...

    def transition_task(
        self,
        task_id: str,
        *,
        from_status: TaskStatus,
        to_status: TaskStatus,
        step_status: TaskStepStatus,
        error: str | None = None,
    ) -> bool: ...
