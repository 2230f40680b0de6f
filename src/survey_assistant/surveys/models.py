"""Survey workspace records."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

SurveyStatus = Literal["draft", "active", "closed"]
SurveyScope = Literal["holding", "company"]
ResponseStatus = Literal["pending", "partial", "completed"]
InvitationStatus = Literal["sent", "delivered", "completed", "failed", "bounced"]
AnalysisStatus = Literal["pending", "processing", "completed", "failed"]


class Company(BaseModel):
    id: str
    name: str
    industry: str | None = None


class Employee(BaseModel):
    id: str
    full_name: str
    company_id: str
    email: str | None = None
    department: str | None = None
    role: str = "employee"


class Survey(BaseModel):
    id: str
    title: str
    status: SurveyStatus = "draft"
    scope: SurveyScope = "holding"
    company_id: str | None = None
    description: str | None = None
    deadline: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class Question(BaseModel):
    id: str
    survey_id: str
    question_code: str
    question_text: str
    type: str
    options: list[str] = Field(default_factory=list)
    section_name: str | None = None
    question_order: int
    is_required: bool = True
    description: str | None = None


class CompanyAssignment(BaseModel):
    survey_id: str
    company_id: str
    assigned_by: str | None = None


class EmployeeAssignment(BaseModel):
    survey_id: str
    employee_id: str
    assigned_by: str | None = None


class SurveyResponse(BaseModel):
    survey_id: str
    employee_id: str
    status: ResponseStatus = "pending"


class Invitation(BaseModel):
    survey_id: str
    employee_id: str
    status: InvitationStatus = "sent"
    sent_at: datetime | None = None
    clicked_at: datetime | None = None
    completed_at: datetime | None = None


class Reminder(BaseModel):
    survey_id: str
    employee_id: str
    sent_by: str | None = None
    sent_at: datetime


class SentimentAnalysis(BaseModel):
    id: str
    survey_id: str
    status: AnalysisStatus = "pending"
    requested_by: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    results: Any = None
    error_message: str | None = None


class WorkspaceData(BaseModel):
    """Everything the in-memory workspace holds; also the JSON seed format."""

    companies: list[Company] = Field(default_factory=list)
    employees: list[Employee] = Field(default_factory=list)
    surveys: list[Survey] = Field(default_factory=list)
    questions: list[Question] = Field(default_factory=list)
    company_assignments: list[CompanyAssignment] = Field(default_factory=list)
    assignments: list[EmployeeAssignment] = Field(default_factory=list)
    responses: list[SurveyResponse] = Field(default_factory=list)
    invitations: list[Invitation] = Field(default_factory=list)
    reminders: list[Reminder] = Field(default_factory=list)
    analyses: list[SentimentAnalysis] = Field(default_factory=list)
