"""Storage models shared by the agent, the confirmation gate and the API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

MessageRole = Literal["user", "assistant", "tool"]
ToolRunStatus = Literal["running", "succeeded", "failed"]
TaskStatus = Literal["pending", "in_progress", "completed", "failed", "canceled"]
TaskStepStatus = Literal["pending", "in_progress", "completed", "failed", "skipped"]


class Identity(BaseModel):
    """Verified caller identity forwarded by the gateway."""

    user_id: str
    role: str
    company_id: str | None = None


class SessionRecord(BaseModel):
    session_id: str
    user_id: str
    company_id: str | None = None
    locale: str | None = None
    status: str = "active"
    created_at: datetime
    last_activity_at: datetime


class MessageRecord(BaseModel):
    """One transcript entry; tool messages may carry no content."""

    message_id: str
    session_id: str
    role: MessageRole
    content: str | None = None
    tool_name: str | None = None
    tool_input: dict[str, Any] | None = None
    tool_output: Any = None
    tokens_in: int | None = None
    tokens_out: int | None = None
    latency_ms: int | None = None
    created_at: datetime


class ToolRunRecord(BaseModel):
    tool_run_id: str
    session_id: str
    tool_name: str
    tool_input: dict[str, Any]
    status: ToolRunStatus
    output: Any = None
    error: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    latency_ms: int | None = None


class TaskRecord(BaseModel):
    """Durable confirmable action; `task_id` is the client-facing action id."""

    task_id: str
    session_id: str
    created_by: str
    company_id: str | None = None
    title: str
    goal: str | None = None
    status: TaskStatus
    metadata: dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime


class TaskStepRecord(BaseModel):
    step_id: str
    task_id: str
    step_order: int
    tool_name: str
    tool_input: dict[str, Any]
    status: TaskStepStatus
    error: str | None = None
    created_at: datetime
    updated_at: datetime
