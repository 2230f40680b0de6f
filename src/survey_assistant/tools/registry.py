"""Static tool catalog: names, input schemas and the confirmable set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from survey_assistant.tools.schemas import (
    AddSurveyQuestionsInput,
    AssignSurveyToCompaniesInput,
    CreateSurveyInput,
    GetCompaniesInput,
    GetInvitationStatusInput,
    GetNonRespondentsInput,
    GetSurveyProgressInput,
    GetSurveysInput,
    SendSurveyInvitationsInput,
    SurveyLookupInput,
)


@dataclass(frozen=True)
class ToolSpec:
    input_model: type[BaseModel]
    description: str
    confirmable: bool = False


TOOL_SPECS: dict[str, ToolSpec] = {
    "get_survey_progress": ToolSpec(
        input_model=GetSurveyProgressInput,
        description=(
            "Get survey completion progress and statistics. Can look up by survey ID, "
            "title (fuzzy match), or get the latest survey. For holding-level surveys, "
            "returns per-company breakdown."
        ),
    ),
    "get_non_respondents": ToolSpec(
        input_model=GetNonRespondentsInput,
        description=(
            "Get a list of employees who have not completed a specific survey. Returns "
            "employee names, emails, departments. Useful when the user asks who hasn't "
            "responded or who is still pending."
        ),
    ),
    "get_invitation_status": ToolSpec(
        input_model=GetInvitationStatusInput,
        description=(
            "Get email invitation delivery statistics for a survey. Shows how many "
            "invitations were sent, delivered, clicked, completed, failed, or bounced."
        ),
    ),
    "get_surveys": ToolSpec(
        input_model=GetSurveysInput,
        description=(
            "List surveys with optional status filter. Use this when the user wants to "
            "see what surveys exist, how many there are, or browse by status."
        ),
    ),
    "send_reminders": ToolSpec(
        input_model=SurveyLookupInput,
        description=(
            "Send reminder emails to employees who have not completed a survey. This "
            "action requires user confirmation before executing. Always call "
            "get_non_respondents first to know who needs reminders, then call this tool."
        ),
        confirmable=True,
    ),
    "activate_survey": ToolSpec(
        input_model=SurveyLookupInput,
        description=(
            'Activate a draft survey, changing its status from "draft" to "active". '
            "Only draft surveys can be activated. This action requires user confirmation."
        ),
        confirmable=True,
    ),
    "close_survey": ToolSpec(
        input_model=SurveyLookupInput,
        description=(
            'Close an active survey, changing its status from "active" to "closed". '
            "Only active surveys can be closed. Closed surveys no longer accept "
            "responses. This action requires user confirmation."
        ),
        confirmable=True,
    ),
    "get_report_data": ToolSpec(
        input_model=SurveyLookupInput,
        description=(
            "Get report data and a link to the report page for a survey. Returns question "
            "count, response count, completion rate, and the report URL. Use when the "
            "user asks to generate, view, or download a report."
        ),
    ),
    "trigger_sentiment_analysis": ToolSpec(
        input_model=SurveyLookupInput,
        description=(
            "Trigger AI sentiment analysis on completed survey responses. Only admins and "
            "specialists can use this. This action requires user confirmation."
        ),
        confirmable=True,
    ),
    "get_sentiment_results": ToolSpec(
        input_model=SurveyLookupInput,
        description=(
            "Get the results of a previously run sentiment analysis for a survey. Returns "
            "analysis status, completion time, and results data."
        ),
    ),
    "get_companies": ToolSpec(
        input_model=GetCompaniesInput,
        description=(
            "List all companies in the holding with their employee counts. Use this "
            "before assigning a survey to companies. Admin and specialist only."
        ),
    ),
    "create_survey": ToolSpec(
        input_model=CreateSurveyInput,
        description=(
            "Create a new survey in draft status. The survey starts as a draft and is "
            "invisible to employees until activated. Admin and specialist only. For "
            "company-scope surveys, provide a companyId."
        ),
    ),
    "add_survey_questions": ToolSpec(
        input_model=AddSurveyQuestionsInput,
        description=(
            "Add a batch of questions (1-50) to a draft survey. Only works on draft "
            "surveys. For choice-type questions (multiple_choice, single_choice), "
            "provide at least 2 options."
        ),
    ),
    "assign_survey_to_companies": ToolSpec(
        input_model=AssignSurveyToCompaniesInput,
        description=(
            "Assign a holding-scope draft survey to one or more companies. This also "
            "creates employee assignments for all employees in those companies. This "
            "action requires user confirmation. Use get_companies first."
        ),
        confirmable=True,
    ),
    "send_survey_invitations": ToolSpec(
        input_model=SendSurveyInvitationsInput,
        description=(
            "Send magic-link email invitations to employees assigned to a survey. Only "
            "works on active surveys. This action requires user confirmation. "
            "Optionally filter by a specific company."
        ),
        confirmable=True,
    ),
}

CONFIRMABLE_TOOLS: frozenset[str] = frozenset(
    name for name, spec in TOOL_SPECS.items() if spec.confirmable
)


def is_valid_tool_name(name: str) -> bool:
    return name in TOOL_SPECS


def schema_for(name: str) -> type[BaseModel]:
    """Input model for a registered tool; unknown names raise KeyError."""
    return TOOL_SPECS[name].input_model


def is_confirmable(name: str) -> bool:
    return name in CONFIRMABLE_TOOLS


def tool_definitions() -> list[dict[str, Any]]:
    return [
        {
            "name": name,
            "description": spec.description,
            "input_schema": spec.input_model.model_json_schema(by_alias=True),
        }
        for name, spec in TOOL_SPECS.items()
    ]


def list_tools() -> list[dict[str, Any]]:
    return [
        {"name": name, "confirmable": spec.confirmable} for name, spec in sorted(TOOL_SPECS.items())
    ]
