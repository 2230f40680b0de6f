"""Server-sent event transport for chat turns."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from fastapi import Response
from fastapi.responses import StreamingResponse

from survey_assistant.errors import ModelCallError
from survey_assistant.events import ErrorEvent, EventSink, StreamEvent, encode_event

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

TIMEOUT_MESSAGE = "The request timed out."
UNEXPECTED_MESSAGE = "Something went wrong. Please try again."


def error_response(message: str, status_code: int) -> Response:
    """A complete stream consisting of one `error` frame."""
    return Response(
        content=encode_event(ErrorEvent(message=message)),
        status_code=status_code,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def stream_events(
    run: Callable[[EventSink], Awaitable[Any]], *, timeout_s: float
) -> AsyncIterator[str]:
    """Run one turn in its own task and yield its events as framed SSE chunks.

    Exactly one `error` frame is produced when the turn fails or times out.
    Closing the iterator (client disconnect) cancels the turn.
    """
    queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()

    async def emit(event: StreamEvent) -> None:
        await queue.put(event)

    async def drive() -> None:
        try:
            await asyncio.wait_for(run(emit), timeout=timeout_s)
        except TimeoutError:
            logger.warning("agent_turn event=timeout timeout_s=%s", timeout_s)
            await queue.put(ErrorEvent(message=TIMEOUT_MESSAGE))
        except ModelCallError as exc:
            logger.exception("agent_turn event=failed")
            await queue.put(ErrorEvent(message=str(exc) or UNEXPECTED_MESSAGE))
        except Exception:  # noqa: BLE001
            logger.exception("agent_turn event=failed")
            await queue.put(ErrorEvent(message=UNEXPECTED_MESSAGE))
        finally:
            await queue.put(None)

    task = asyncio.create_task(drive())
    try:
        while True:
            event = await queue.get()
            if event is None:
                break
            yield encode_event(event)
    finally:
        if not task.done():
            task.cancel()


def sse_response(events: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
