"""Strict Pydantic schemas for tool inputs."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

Uuid = Annotated[
    str,
    StringConstraints(
        pattern=r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
    ),
]

SurveyStatusFilter = Literal["draft", "active", "closed", "all"]
SurveyScope = Literal["holding", "company"]
QuestionType = Literal["text", "scale", "multiple_choice", "single_choice", "rating", "date"]


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class SurveyLookupInput(StrictModel):
    """Target a survey by id, by (partial) title, or the most recent one."""

    survey_id: Uuid | None = Field(
        default=None, alias="surveyId", description="UUID of the survey."
    )
    title: str | None = Field(
        default=None,
        min_length=1,
        description="Survey title or partial title for fuzzy matching.",
    )
    latest: bool | None = Field(
        default=None, description="Set to true to target the most recently created survey."
    )


class GetSurveyProgressInput(SurveyLookupInput):
    title: str | None = Field(
        default=None,
        min_length=2,
        description="Survey title or partial title for fuzzy matching.",
    )


class GetInvitationStatusInput(GetSurveyProgressInput):
    pass


class GetNonRespondentsInput(GetSurveyProgressInput):
    limit: int | None = Field(
        default=None,
        ge=1,
        le=200,
        description="Maximum number of employees to return (1-200, default 50).",
    )


class GetSurveysInput(StrictModel):
    status: SurveyStatusFilter | None = Field(
        default=None, description='Filter by survey status. Default is "all".'
    )
    limit: int | None = Field(
        default=None,
        ge=1,
        le=50,
        description="Maximum number of surveys to return (1-50, default 10).",
    )


class GetCompaniesInput(StrictModel):
    pass


class CreateSurveyInput(StrictModel):
    title: str = Field(min_length=2, max_length=200, description="Survey title.")
    scope: SurveyScope = Field(
        default="holding",
        description='"holding" spans all companies, "company" is for a single company.',
    )
    description: str | None = Field(default=None, max_length=2000)
    deadline: str | None = Field(
        default=None, description='Optional deadline in ISO 8601 format (e.g. "2025-03-15T00:00:00Z").'
    )
    company_id: Uuid | None = Field(
        default=None,
        alias="companyId",
        description="Required for company-scope surveys. UUID of the target company.",
    )


class QuestionInput(StrictModel):
    question_code: str = Field(min_length=1, max_length=50)
    question_text: str = Field(min_length=2, max_length=1000)
    type: QuestionType
    options: list[str] | None = Field(
        default=None,
        description="Answer options (required for multiple_choice and single_choice, min 2).",
    )
    section_name: str | None = Field(default=None, max_length=200)
    is_required: bool = True
    description: str | None = Field(default=None, max_length=500)


class AddSurveyQuestionsInput(StrictModel):
    survey_id: Uuid = Field(alias="surveyId", description="UUID of the draft survey.")
    questions: list[QuestionInput] = Field(min_length=1, max_length=50)


class AssignSurveyToCompaniesInput(StrictModel):
    survey_id: Uuid = Field(alias="surveyId", description="UUID of the holding-scope draft survey.")
    company_ids: list[Uuid] = Field(
        alias="companyIds", min_length=1, description="Company UUIDs to assign the survey to."
    )


class SendSurveyInvitationsInput(StrictModel):
    survey_id: Uuid = Field(alias="surveyId", description="UUID of the active survey.")
    company_id: Uuid | None = Field(
        default=None,
        alias="companyId",
        description="Only invite employees of this company.",
    )
