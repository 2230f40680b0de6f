"""Typed state contract for the agent-turn LangGraph workflow."""

from dataclasses import dataclass, field
from typing import Any, TypedDict

from survey_assistant.llm.client import ModelResponse
from survey_assistant.tools.results import PendingConfirmation


@dataclass
class ToolRun:
    """Outcome of one model-requested tool call within a turn."""

    tool_name: str
    input: Any
    output: Any = None
    error: str | None = None
    latency_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class AgentResult:
    text: str
    tool_runs: list[ToolRun] = field(default_factory=list)
    pending_action: PendingConfirmation | None = None
    tokens_in: int = 0
    tokens_out: int = 0
    rounds: int = 0


class TurnState(TypedDict, total=False):
    messages: list[dict[str, Any]]
    round: int
    tool_runs: list[ToolRun]
    pending_action: PendingConfirmation | None
    last_response: ModelResponse | None
    final_text: str | None
    tokens_in: int
    tokens_out: int


def initial_state(history: list[dict[str, Any]], message: str) -> TurnState:
    return {
        "messages": [*history, {"role": "user", "content": message}],
        "round": 0,
        "tool_runs": [],
        "pending_action": None,
        "last_response": None,
        "final_text": None,
        "tokens_in": 0,
        "tokens_out": 0,
    }
