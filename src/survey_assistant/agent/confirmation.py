"""Confirmation gate: durable proposals and their confirm/cancel resolution.

A confirmable tool never mutates anything during the chat turn. Its executor
calls `create_pending_task`, which stores a Task and its TaskStep in the
`pending` state. A later request resolves the task:

    pending -> canceled
    pending -> in_progress -> completed | failed

The move out of `pending` is a conditional update in the store, so concurrent
confirmations run the real-execution routine at most once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from survey_assistant.errors import (
    ActionConflictError,
    ActionExecutionError,
    ActionNotFoundError,
    InvalidActionError,
    UnsupportedActionError,
)
from survey_assistant.storage.base import TranscriptStore
from survey_assistant.storage.models import Identity
from survey_assistant.tools.registry import CONFIRMABLE_TOOLS
from survey_assistant.tools.results import to_jsonable

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Action cancelled."

ActionHandler = Callable[[Identity, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ActionHandlerSpec:
    handler: ActionHandler
    success_message: str


@dataclass(frozen=True)
class Resolution:
    message: str
    result: Any = None


class ActionRegistry:
    """Maps a confirmable tool name to its real-execution routine."""

    def __init__(self) -> None:
        self._handlers: dict[str, ActionHandlerSpec] = {}

    def register(self, tool_name: str, handler: ActionHandler, success_message: str) -> None:
        self._handlers[tool_name] = ActionHandlerSpec(handler, success_message)

    def get(self, tool_name: str) -> ActionHandlerSpec | None:
        return self._handlers.get(tool_name)

    def missing(self) -> list[str]:
        return sorted(CONFIRMABLE_TOOLS - set(self._handlers))

    def ensure_complete(self) -> None:
        missing = self.missing()
        if missing:
            raise RuntimeError(f"No action handler registered for: {', '.join(missing)}")


class ConfirmationGate:
    def __init__(self, store: TranscriptStore, actions: ActionRegistry) -> None:
        self.store = store
        self.actions = actions

    async def create_pending_task(
        self,
        *,
        session_id: str,
        identity: Identity,
        title: str,
        tool_name: str,
        tool_input: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> str:
        task_id, _ = await asyncio.to_thread(
            self.store.create_pending_task,
            session_id=session_id,
            identity=identity,
            title=title,
            goal=title,
            tool_name=tool_name,
            tool_input=tool_input,
            metadata=metadata,
        )
        logger.info(
            "confirm_action event=proposed task_id=%s tool=%s session_id=%s",
            task_id,
            tool_name,
            session_id,
        )
        return task_id

    async def resolve(self, action_id: str, confirmed: bool, identity: Identity) -> Resolution:
        task = await asyncio.to_thread(self.store.get_task, action_id)
        if task is None or task.created_by != identity.user_id:
            raise ActionNotFoundError("Action not found")

        if not confirmed:
            return await self._cancel(action_id, task.status)
        if task.status != "pending":
            raise ActionConflictError(action_id, task.status)

        steps = await asyncio.to_thread(self.store.get_task_steps, action_id)
        if not steps:
            raise InvalidActionError("No steps found for action")
        step = steps[0]

        spec = self.actions.get(step.tool_name)
        if spec is None:
            raise UnsupportedActionError(f"Unsupported action type: {step.tool_name}")

        claimed = await asyncio.to_thread(
            self.store.transition_task,
            action_id,
            from_status="pending",
            to_status="in_progress",
            step_status="in_progress",
        )
        if not claimed:
            current = await asyncio.to_thread(self.store.get_task, action_id)
            raise ActionConflictError(action_id, current.status if current else task.status)
        logger.info("confirm_action event=claimed task_id=%s tool=%s", action_id, step.tool_name)

        try:
            result = await spec.handler(identity, step.tool_input)
        except Exception as exc:
            error_text = str(exc) or exc.__class__.__name__
            await asyncio.to_thread(
                self.store.transition_task,
                action_id,
                from_status="in_progress",
                to_status="failed",
                step_status="failed",
                error=error_text,
            )
            logger.warning(
                "confirm_action event=failed task_id=%s tool=%s error=%s",
                action_id,
                step.tool_name,
                error_text,
            )
            raise ActionExecutionError(error_text) from exc

        await asyncio.to_thread(
            self.store.transition_task,
            action_id,
            from_status="in_progress",
            to_status="completed",
            step_status="completed",
        )
        logger.info("confirm_action event=completed task_id=%s tool=%s", action_id, step.tool_name)
        return Resolution(message=spec.success_message, result=to_jsonable(result))

    async def _cancel(self, action_id: str, status: str) -> Resolution:
        if status == "canceled":
            return Resolution(message=CANCELLED_MESSAGE)
        canceled = await asyncio.to_thread(
            self.store.transition_task,
            action_id,
            from_status="pending",
            to_status="canceled",
            step_status="skipped",
        )
        if not canceled:
            current = await asyncio.to_thread(self.store.get_task, action_id)
            current_status = current.status if current else status
            if current_status != "canceled":
                raise ActionConflictError(action_id, current_status)
        logger.info("confirm_action event=canceled task_id=%s", action_id)
        return Resolution(message=CANCELLED_MESSAGE)
