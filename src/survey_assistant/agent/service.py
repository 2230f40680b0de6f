"""One chat turn: session bookkeeping around the agent loop."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from survey_assistant.agent.loop import AgentLoop, ToolExecutor
from survey_assistant.agent.state import ToolRun
from survey_assistant.errors import ModelCallError
from survey_assistant.events import (
    ActionPendingEvent,
    DoneEvent,
    EventSink,
    TextEvent,
    ToolResultEvent,
)
from survey_assistant.storage.base import TranscriptStore
from survey_assistant.storage.models import Identity, MessageRecord

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[Identity, str], Mapping[str, ToolExecutor]]


def build_history(records: list[MessageRecord], message: str) -> list[dict[str, Any]]:
    """Model-facing history from stored messages, oldest first.

    The just-logged user message is dropped when it is the latest entry; tool
    messages are transcript-only.
    """
    items = list(records)
    if items and items[-1].role == "user" and items[-1].content == message:
        items.pop()
    history = [
        {"role": record.role, "content": record.content}
        for record in items
        if record.role in ("user", "assistant") and record.content
    ]
    while history and history[0]["role"] != "user":
        history.pop(0)
    return history


class _TranscriptSink:
    """Persists each tool call and streams successful results as they resolve."""

    def __init__(self, store: TranscriptStore, session_id: str, emit: EventSink) -> None:
        self.store = store
        self.session_id = session_id
        self.emit = emit

    async def tool_started(self, tool_name: str, tool_input: Any) -> str | None:
        return await asyncio.to_thread(
            self.store.log_tool_run,
            self.session_id,
            tool_name=tool_name,
            tool_input=tool_input if isinstance(tool_input, dict) else {"value": tool_input},
            status="running",
            started_at=datetime.now(UTC),
        )

    async def tool_finished(self, run_id: str | None, run: ToolRun) -> None:
        if run.succeeded:
            await asyncio.to_thread(
                self.store.log_message,
                self.session_id,
                role="tool",
                content=None,
                tool_name=run.tool_name,
                tool_input=run.input if isinstance(run.input, dict) else None,
                tool_output=run.output,
            )
            await self.emit(ToolResultEvent(tool=run.tool_name, data=run.output))
        if run_id is not None:
            await asyncio.to_thread(
                self.store.update_tool_run,
                run_id,
                status="succeeded" if run.succeeded else "failed",
                output=run.output,
                error=run.error,
                completed_at=datetime.now(UTC),
                latency_ms=run.latency_ms,
            )


class ChatService:
    def __init__(
        self,
        *,
        store: TranscriptStore,
        agent: AgentLoop | None,
        executor_factory: ExecutorFactory,
        history_limit: int = 20,
    ) -> None:
        self.store = store
        self.agent = agent
        self.executor_factory = executor_factory
        self.history_limit = history_limit

    async def run_turn(
        self,
        *,
        identity: Identity,
        message: str,
        emit: EventSink,
        session_id: str | None = None,
        locale: str | None = None,
    ) -> str:
        message = message.strip()
        if not message:
            raise ValueError("Message cannot be empty")
        if self.agent is None:
            raise ModelCallError("The language model is not configured.")

        started = time.perf_counter()
        session_id = await asyncio.to_thread(
            self.store.get_or_create_session, identity, session_id, locale=locale
        )
        logger.info(
            "agent_turn event=start session_id=%s user_id=%s locale=%s",
            session_id,
            identity.user_id,
            locale,
        )
        await asyncio.to_thread(self.store.update_session_activity, session_id)
        await asyncio.to_thread(
            self.store.log_message, session_id, role="user", content=message
        )
        records = await asyncio.to_thread(
            self.store.get_session_messages, session_id, self.history_limit
        )

        result = await self.agent.run(
            message=message,
            history=build_history(records, message),
            executors=self.executor_factory(identity, session_id),
            locale=locale,
            sink=_TranscriptSink(self.store, session_id, emit),
        )
        latency_ms = int((time.perf_counter() - started) * 1000)

        await asyncio.to_thread(
            self.store.log_message,
            session_id,
            role="assistant",
            content=result.text,
            tokens_in=result.tokens_in or None,
            tokens_out=result.tokens_out or None,
            latency_ms=latency_ms,
        )
        await emit(TextEvent(content=result.text))
        if result.pending_action is not None:
            await emit(ActionPendingEvent(action=result.pending_action.to_action()))
        await emit(DoneEvent(session_id=session_id))

        logger.info(
            "agent_turn event=completed session_id=%s rounds=%d tool_runs=%d "
            "action_pending=%s latency_ms=%d",
            session_id,
            result.rounds,
            len(result.tool_runs),
            result.pending_action is not None,
            latency_ms,
        )
        return session_id
