"""Tool catalog, input schemas and tagged tool outcomes."""

from survey_assistant.tools.registry import (
    CONFIRMABLE_TOOLS,
    TOOL_SPECS,
    ToolSpec,
    is_confirmable,
    is_valid_tool_name,
    list_tools,
    schema_for,
    tool_definitions,
)
from survey_assistant.tools.results import (
    PendingConfirmation,
    PlainResult,
    ToolOutcome,
    normalize_outcome,
)

__all__ = [
    "CONFIRMABLE_TOOLS",
    "PendingConfirmation",
    "PlainResult",
    "TOOL_SPECS",
    "ToolOutcome",
    "ToolSpec",
    "is_confirmable",
    "is_valid_tool_name",
    "list_tools",
    "normalize_outcome",
    "schema_for",
    "tool_definitions",
]
