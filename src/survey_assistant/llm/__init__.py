"""Language-model client abstraction."""

from survey_assistant.llm.client import (
    AnthropicMessagesClient,
    ChatModelClient,
    ModelResponse,
    ToolCall,
    build_chat_client,
)

__all__ = [
    "AnthropicMessagesClient",
    "ChatModelClient",
    "ModelResponse",
    "ToolCall",
    "build_chat_client",
]
