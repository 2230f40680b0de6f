"""Bounded model/tool loop for one conversational turn, assembled as a LangGraph workflow."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, ValidationError

from survey_assistant.agent.prompts import build_system_prompt, fallback_response
from survey_assistant.agent.state import AgentResult, ToolRun, TurnState, initial_state
from survey_assistant.errors import InfrastructureError, SurveyNotFoundError
from survey_assistant.llm.client import ChatModelClient, ToolCall
from survey_assistant.tools.registry import (
    TOOL_SPECS,
    is_confirmable,
    is_valid_tool_name,
    schema_for,
    tool_definitions,
)
from survey_assistant.tools.results import (
    PendingConfirmation,
    normalize_outcome,
    outcome_content,
    outcome_output,
)

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 8

ToolExecutor = Callable[[BaseModel], Awaitable[Any]]


class ToolRunSink(Protocol):
    """Receives tool-call lifecycle notifications while the loop runs."""

    async def tool_started(self, tool_name: str, tool_input: Any) -> str | None: ...

    async def tool_finished(self, run_id: str | None, run: ToolRun) -> None: ...


def format_validation_error(exc: ValidationError) -> str:
    issues = []
    for item in exc.errors():
        path = ".".join(str(part) for part in item.get("loc", ())) or "(root)"
        issues.append(f"{path}: {item.get('msg', 'invalid value')}")
    return "Invalid input: " + "; ".join(issues)


def describe_tool_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return format_validation_error(exc)
    if isinstance(exc, SurveyNotFoundError):
        if exc.suggestions:
            return f"Survey not found. Similar surveys: {', '.join(exc.suggestions)}"
        return "Survey not found. Please provide a valid survey name or ID."
    return str(exc) or "Tool execution failed"


def _tool_result(tool_use_id: str, content: str, *, is_error: bool = False) -> dict[str, Any]:
    block: dict[str, Any] = {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}
    if is_error:
        block["is_error"] = True
    return block


class AgentLoop:
    """Runs model calls and tool executions until a final answer or a proposed action."""

    def __init__(
        self,
        client: ChatModelClient,
        *,
        max_rounds: int = MAX_TOOL_ROUNDS,
        max_tokens: int = 2048,
        confirmation_max_tokens: int = 1024,
    ) -> None:
        self.client = client
        self.max_rounds = max_rounds
        self.max_tokens = max_tokens
        self.confirmation_max_tokens = confirmation_max_tokens

    async def run(
        self,
        *,
        message: str,
        history: list[dict[str, Any]],
        executors: Mapping[str, ToolExecutor],
        locale: str | None = None,
        sink: ToolRunSink | None = None,
    ) -> AgentResult:
        missing = sorted(set(TOOL_SPECS) - set(executors))
        if missing:
            raise ValueError(f"Missing tool executors: {', '.join(missing)}")

        graph = self._build_graph(executors=executors, locale=locale, sink=sink)
        final: TurnState = await graph.ainvoke(
            initial_state(history, message),
            config={"recursion_limit": self.max_rounds * 2 + 5},
        )
        return AgentResult(
            text=final.get("final_text") or fallback_response(locale),
            tool_runs=list(final.get("tool_runs", [])),
            pending_action=final.get("pending_action"),
            tokens_in=final.get("tokens_in", 0),
            tokens_out=final.get("tokens_out", 0),
            rounds=final.get("round", 0),
        )

    def _build_graph(
        self,
        *,
        executors: Mapping[str, ToolExecutor],
        locale: str | None,
        sink: ToolRunSink | None,
    ):
        system = build_system_prompt(locale)
        tools = tool_definitions()

        async def call_model(state: TurnState) -> TurnState:
            response = await self.client.create_message(
                system=system,
                messages=state["messages"],
                tools=tools,
                max_tokens=self.max_tokens,
            )
            return {
                "last_response": response,
                "round": state.get("round", 0) + 1,
                "tokens_in": state.get("tokens_in", 0) + response.input_tokens,
                "tokens_out": state.get("tokens_out", 0) + response.output_tokens,
            }

        async def answer(state: TurnState) -> TurnState:
            response = state["last_response"]
            return {"final_text": response.text or fallback_response(locale)}

        async def run_tools(state: TurnState) -> TurnState:
            response = state["last_response"]
            messages = [*state["messages"], {"role": "assistant", "content": response.content}]
            tool_runs = list(state.get("tool_runs", []))
            pending: PendingConfirmation | None = state.get("pending_action")
            results: list[dict[str, Any]] = []

            for call in response.tool_calls:
                run_id = await sink.tool_started(call.name, call.input) if sink else None
                started = time.perf_counter()
                try:
                    run, block, proposed = await self._execute_call(
                        call, executors=executors, pending=pending
                    )
                except asyncio.CancelledError:
                    # Timeout or client disconnect: the run must not stay `running`.
                    run = ToolRun(tool_name=call.name, input=call.input, error="cancelled")
                    run.latency_ms = int((time.perf_counter() - started) * 1000)
                    logger.warning(
                        "tool_call tool=%s status=cancelled latency_ms=%d",
                        call.name,
                        run.latency_ms,
                    )
                    if sink:
                        await asyncio.shield(sink.tool_finished(run_id, run))
                    raise
                run.latency_ms = int((time.perf_counter() - started) * 1000)
                if proposed is not None:
                    pending = proposed
                tool_runs.append(run)
                results.append(block)
                logger.info(
                    "tool_call tool=%s status=%s latency_ms=%d",
                    call.name,
                    "succeeded" if run.succeeded else "failed",
                    run.latency_ms,
                )
                if sink:
                    await sink.tool_finished(run_id, run)

            messages.append({"role": "user", "content": results})
            return {"messages": messages, "tool_runs": tool_runs, "pending_action": pending}

        async def confirm(state: TurnState) -> TurnState:
            response = await self.client.create_message(
                system=system,
                messages=state["messages"],
                tools=tools,
                max_tokens=self.confirmation_max_tokens,
            )
            pending = state["pending_action"]
            return {
                "final_text": response.text or pending.message,
                "tokens_in": state.get("tokens_in", 0) + response.input_tokens,
                "tokens_out": state.get("tokens_out", 0) + response.output_tokens,
            }

        async def exhausted(state: TurnState) -> TurnState:
            logger.warning("agent_turn event=round_limit rounds=%d", state.get("round", 0))
            return {"final_text": fallback_response(locale)}

        def _after_model(state: TurnState) -> str:
            response = state.get("last_response")
            if response is None or not response.tool_calls:
                return "answer"
            return "tools"

        def _after_tools(state: TurnState) -> str:
            if state.get("pending_action") is not None:
                return "confirm"
            if state.get("round", 0) >= self.max_rounds:
                return "exhausted"
            return "model"

        graph = StateGraph(TurnState)

        graph.add_node("call_model", call_model)
        graph.add_node("answer", answer)
        graph.add_node("run_tools", run_tools)
        graph.add_node("confirm", confirm)
        graph.add_node("exhausted", exhausted)

        graph.set_entry_point("call_model")
        graph.add_conditional_edges(
            "call_model", _after_model, {"answer": "answer", "tools": "run_tools"}
        )
        graph.add_conditional_edges(
            "run_tools",
            _after_tools,
            {"confirm": "confirm", "exhausted": "exhausted", "model": "call_model"},
        )
        graph.add_edge("answer", END)
        graph.add_edge("confirm", END)
        graph.add_edge("exhausted", END)

        return graph.compile()

    async def _execute_call(
        self,
        call: ToolCall,
        *,
        executors: Mapping[str, ToolExecutor],
        pending: PendingConfirmation | None,
    ) -> tuple[ToolRun, dict[str, Any], PendingConfirmation | None]:
        if not is_valid_tool_name(call.name):
            error = f"Unknown tool: {call.name}"
            return (
                ToolRun(tool_name=call.name, input=call.input, error=error),
                _tool_result(call.id, error, is_error=True),
                None,
            )

        if pending is not None and is_confirmable(call.name):
            error = (
                "Another action is already waiting for confirmation. "
                "Ask the user to confirm or cancel it first."
            )
            return (
                ToolRun(tool_name=call.name, input=call.input, error=error),
                _tool_result(call.id, error, is_error=True),
                None,
            )

        try:
            parsed = schema_for(call.name).model_validate(call.input)
            outcome = normalize_outcome(await executors[call.name](parsed))
        except InfrastructureError:
            raise
        except Exception as exc:  # noqa: BLE001
            error = describe_tool_error(exc)
            if not isinstance(exc, (ValidationError, SurveyNotFoundError)):
                logger.warning("tool_call tool=%s error=%s", call.name, exc)
            return (
                ToolRun(tool_name=call.name, input=call.input, error=error),
                _tool_result(call.id, error, is_error=True),
                None,
            )

        run = ToolRun(tool_name=call.name, input=call.input, output=outcome_output(outcome))
        proposed = outcome if isinstance(outcome, PendingConfirmation) else None
        return run, _tool_result(call.id, outcome_content(outcome)), proposed
