"""Test doubles: a scripted model client and a seeded survey workspace."""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from survey_assistant.llm.client import ModelResponse, ToolCall
from survey_assistant.storage.models import Identity
from survey_assistant.surveys.memory import InMemorySurveyWorkspace
from survey_assistant.surveys.models import (
    Company,
    CompanyAssignment,
    Employee,
    EmployeeAssignment,
    Invitation,
    Survey,
    SurveyResponse,
    WorkspaceData,
)

ALPHA_ID = "11111111-1111-4111-8111-111111111111"
BETA_ID = "22222222-2222-4222-8222-222222222222"
DRAFT_ID = "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"
ACTIVE_ID = "bbbbbbbb-bbbb-4bbb-8bbb-bbbbbbbbbbbb"
CLOSED_ID = "cccccccc-cccc-4ccc-8ccc-cccccccccccc"

ADMIN = Identity(user_id="admin-1", role="admin")
HR_ALPHA = Identity(user_id="hr-alpha", role="hr", company_id=ALPHA_ID)

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def tool_use(name: str, tool_input: dict[str, Any] | None = None, *, call_id: str | None = None):
    return {
        "type": "tool_use",
        "id": call_id or f"toolu_{uuid4().hex[:12]}",
        "name": name,
        "input": tool_input or {},
    }


def reply(*blocks: dict[str, Any] | str, input_tokens: int = 10, output_tokens: int = 5):
    """Build a ModelResponse from text strings and tool_use blocks."""
    content = [
        {"type": "text", "text": block} if isinstance(block, str) else block for block in blocks
    ]
    return ModelResponse(
        content=content,
        tool_calls=[
            ToolCall(id=block["id"], name=block["name"], input=block["input"])
            for block in content
            if block["type"] == "tool_use"
        ],
        stop_reason="tool_use" if any(b["type"] == "tool_use" for b in content) else "end_turn",
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


class ScriptedChatClient:
    """Returns queued responses in order and records every request."""

    def __init__(self, responses: list[ModelResponse | Callable[[], ModelResponse]]) -> None:
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def create_message(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_tokens: int,
    ) -> ModelResponse:
        self.calls.append(
            {
                "system": system,
                "messages": copy.deepcopy(messages),
                "tools": tools,
                "max_tokens": max_tokens,
            }
        )
        if not self.responses:
            raise AssertionError("ScriptedChatClient ran out of responses")
        nxt = self.responses.pop(0)
        return nxt() if callable(nxt) else nxt


def make_workspace() -> InMemorySurveyWorkspace:
    def day(n: int) -> datetime:
        return datetime(2025, 1, n, tzinfo=UTC)

    data = WorkspaceData(
        companies=[
            Company(id=ALPHA_ID, name="Alpha LLC", industry="Mining"),
            Company(id=BETA_ID, name="Beta LLC", industry="Retail"),
        ],
        employees=[
            Employee(id="emp-1", full_name="Bat Erdene", company_id=ALPHA_ID, department="Ops"),
            Employee(id="emp-2", full_name="Saraa Dorj", company_id=ALPHA_ID, department="Finance"),
            Employee(id="emp-3", full_name="Tuya Bold", company_id=BETA_ID, department="Sales"),
        ],
        surveys=[
            Survey(id=CLOSED_ID, title="Onboarding Feedback", status="closed", scope="company",
                   company_id=ALPHA_ID, created_at=day(1)),
            Survey(id=ACTIVE_ID, title="Annual Satisfaction", status="active", scope="holding",
                   created_at=day(2)),
            Survey(id=DRAFT_ID, title="Engagement Survey 2025", status="draft", scope="holding",
                   created_at=day(3)),
        ],
        company_assignments=[
            CompanyAssignment(survey_id=ACTIVE_ID, company_id=ALPHA_ID),
            CompanyAssignment(survey_id=ACTIVE_ID, company_id=BETA_ID),
        ],
        assignments=[
            EmployeeAssignment(survey_id=ACTIVE_ID, employee_id="emp-1"),
            EmployeeAssignment(survey_id=ACTIVE_ID, employee_id="emp-2"),
            EmployeeAssignment(survey_id=ACTIVE_ID, employee_id="emp-3"),
            EmployeeAssignment(survey_id=CLOSED_ID, employee_id="emp-1"),
            EmployeeAssignment(survey_id=CLOSED_ID, employee_id="emp-2"),
        ],
        responses=[
            SurveyResponse(survey_id=ACTIVE_ID, employee_id="emp-1", status="completed"),
            SurveyResponse(survey_id=ACTIVE_ID, employee_id="emp-2", status="partial"),
            SurveyResponse(survey_id=CLOSED_ID, employee_id="emp-1", status="completed"),
            SurveyResponse(survey_id=CLOSED_ID, employee_id="emp-2", status="completed"),
        ],
        invitations=[
            Invitation(survey_id=ACTIVE_ID, employee_id="emp-1", status="completed",
                       sent_at=day(2), clicked_at=day(3), completed_at=day(3)),
            Invitation(survey_id=ACTIVE_ID, employee_id="emp-2", status="delivered",
                       sent_at=day(2), clicked_at=day(4)),
            Invitation(survey_id=ACTIVE_ID, employee_id="emp-3", status="bounced", sent_at=day(2)),
        ],
    )
    return InMemorySurveyWorkspace(data, app_base_url="https://surveys.example.test")
