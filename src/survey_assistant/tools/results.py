"""Tagged tool outcomes returned by executors."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic_core import to_jsonable_python


@dataclass(frozen=True)
class PlainResult:
    """Ordinary tool output, fed back to the model as JSON."""

    value: Any


@dataclass(frozen=True)
class PendingConfirmation:
    """A proposed mutating action waiting for the user's decision.

    `task_id` is the durable Task id, exposed to clients as the action id.
    """

    task_id: str
    action_type: str
    message: str
    survey_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Client-facing payload carried by the `action_pending` event."""
        return {
            "action": "pending_confirmation",
            "taskId": self.task_id,
            "type": self.action_type,
            "surveyId": self.survey_id,
            "message": self.message,
            "metadata": to_jsonable(self.metadata),
        }

    def to_action(self) -> dict[str, Any]:
        """Body of the `action_pending` event; `id` is what the client confirms."""
        return {
            "id": self.task_id,
            "type": self.action_type,
            "surveyId": self.survey_id,
            "message": self.message,
            "metadata": to_jsonable(self.metadata),
        }

    def to_tool_content(self) -> dict[str, Any]:
        """What the model sees for the proposing tool call."""
        content: dict[str, Any] = {"status": "pending_confirmation", "message": self.message}
        content.update(to_jsonable(self.metadata))
        return content


ToolOutcome = PlainResult | PendingConfirmation


def normalize_outcome(raw: Any) -> ToolOutcome:
    if isinstance(raw, (PlainResult, PendingConfirmation)):
        return raw
    return PlainResult(value=raw)


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return to_jsonable_python(value)


def outcome_output(outcome: ToolOutcome) -> Any:
    """JSON-compatible value recorded on the ToolRun and streamed to the client."""
    if isinstance(outcome, PendingConfirmation):
        return outcome.to_payload()
    return to_jsonable(outcome.value)


def outcome_content(outcome: ToolOutcome) -> str:
    """Serialized tool-result content for the model."""
    if isinstance(outcome, PendingConfirmation):
        return json.dumps(outcome.to_tool_content(), ensure_ascii=False)
    return json.dumps(to_jsonable(outcome.value), ensure_ascii=False)
