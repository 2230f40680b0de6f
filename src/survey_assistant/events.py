"""Typed events pushed to the chat client, and their wire framing."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StreamEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ToolResultEvent(StreamEvent):
    type: Literal["tool_result"] = "tool_result"
    tool: str
    data: Any = None


class TextEvent(StreamEvent):
    type: Literal["text"] = "text"
    content: str


class ActionPendingEvent(StreamEvent):
    type: Literal["action_pending"] = "action_pending"
    action: dict[str, Any]


class DoneEvent(StreamEvent):
    type: Literal["done"] = "done"
    session_id: str = Field(alias="sessionId")


class ErrorEvent(StreamEvent):
    type: Literal["error"] = "error"
    message: str


EventSink = Callable[[StreamEvent], Awaitable[None]]


def encode_event(event: StreamEvent) -> str:
    """Frame one event as a server-sent `data:` line."""
    return f"data: {event.model_dump_json(by_alias=True)}\n\n"
