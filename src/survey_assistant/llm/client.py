"""Chat-completion client for the Anthropic Messages API."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib import error, request

from survey_assistant.config.settings import Settings
from survey_assistant.errors import ModelCallError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: dict[str, Any]


@dataclass(frozen=True)
class ModelResponse:
    """One assistant turn returned by the model.

    `content` keeps the raw content blocks so they can be echoed back verbatim
    as the assistant message of the next round.
    """

    content: list[dict[str, Any]]
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def text(self) -> str:
        return "".join(
            str(block.get("text", "")) for block in self.content if block.get("type") == "text"
        )

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> ModelResponse:
        content = payload.get("content")
        if not isinstance(content, list):
            raise ModelCallError("Model response did not contain a content list")
        blocks = [block for block in content if isinstance(block, dict)]
        tool_calls = [
            ToolCall(
                id=str(block.get("id", "")),
                name=str(block.get("name", "")),
                input=block.get("input") if isinstance(block.get("input"), dict) else {},
            )
            for block in blocks
            if block.get("type") == "tool_use"
        ]
        usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
        return cls(
            content=blocks,
            tool_calls=tool_calls,
            stop_reason=payload.get("stop_reason"),
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
        )


class ChatModelClient(Protocol):
    async def create_message(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: int,
    ) -> ModelResponse: ...


class AnthropicMessagesClient:
    """Minimal Messages API client; failures surface as ModelCallError."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com/v1",
        timeout_s: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is required")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    async def create_message(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: int,
    ) -> ModelResponse:
        payload = {
            "model": self.model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": messages,
            "tools": tools,
        }
        response_json = await asyncio.to_thread(self._request, payload)
        return ModelResponse.from_api(response_json)

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        req = request.Request(
            url=f"{self.base_url}/messages",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except error.HTTPError as exc:
            message = exc.read().decode("utf-8", errors="replace")
            logger.warning(
                "Model request failed provider=anthropic model=%s status=%s",
                self.model,
                exc.code,
            )
            raise ModelCallError(
                f"Model request failed with status {exc.code}: {message[:400]}"
            ) from exc
        except (error.URLError, TimeoutError) as exc:
            reason = getattr(exc, "reason", exc)
            logger.warning(
                "Model request failed provider=anthropic model=%s reason=%s",
                self.model,
                reason,
            )
            raise ModelCallError(f"Model request failed: {reason}") from exc

        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise ModelCallError("Model returned non-JSON response") from exc


def build_chat_client(settings: Settings) -> ChatModelClient | None:
    """Client for the configured provider, or None when no API key is set."""
    provider = settings.llm_provider.lower().strip()
    if provider != "anthropic":
        raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")
    api_key = settings.resolved_anthropic_api_key()
    if not api_key:
        logger.warning("Model client disabled provider=%s reason=missing_api_key", provider)
        return None
    return AnthropicMessagesClient(
        api_key=api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout_s=settings.llm_timeout_s,
    )
