"""Agent loop, confirmation gate and chat-turn service."""

from survey_assistant.agent.confirmation import (
    ActionRegistry,
    ConfirmationGate,
    Resolution,
)
from survey_assistant.agent.loop import MAX_TOOL_ROUNDS, AgentLoop, ToolRunSink
from survey_assistant.agent.service import ChatService
from survey_assistant.agent.state import AgentResult, ToolRun

__all__ = [
    "ActionRegistry",
    "AgentLoop",
    "AgentResult",
    "ChatService",
    "ConfirmationGate",
    "MAX_TOOL_ROUNDS",
    "Resolution",
    "ToolRun",
    "ToolRunSink",
]
