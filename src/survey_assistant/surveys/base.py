"""Survey workspace interface consumed by tool executors and action handlers."""

from __future__ import annotations

from typing import Any, Protocol

from survey_assistant.storage.models import Identity
from survey_assistant.surveys.models import Survey
from survey_assistant.tools.schemas import (
    AddSurveyQuestionsInput,
    CreateSurveyInput,
    GetNonRespondentsInput,
    GetSurveysInput,
    SurveyLookupInput,
)


class SurveyWorkspace(Protocol):
    def get_survey(self, survey_id: str) -> Survey | None: ...

    def get_survey_progress(
        self, identity: Identity, lookup: SurveyLookupInput
    ) -> dict[str, Any]: ...

    def get_non_respondents(
        self,
        identity: Identity,
        lookup: GetNonRespondentsInput | SurveyLookupInput,
        *,
        unlimited: bool = False,
    ) -> dict[str, Any]: ...

    def get_invitation_status(
        self, identity: Identity, lookup: SurveyLookupInput
    ) -> dict[str, Any]: ...

    def get_surveys(self, identity: Identity, query: GetSurveysInput) -> dict[str, Any]: ...

    def get_report_data(self, identity: Identity, lookup: SurveyLookupInput) -> dict[str, Any]: ...

    def check_sentiment_analysis(
        self, identity: Identity, lookup: SurveyLookupInput
    ) -> dict[str, Any]: ...

    def get_sentiment_results(
        self, identity: Identity, lookup: SurveyLookupInput
    ) -> dict[str, Any]: ...

    def get_companies(self, identity: Identity) -> dict[str, Any]: ...

    def count_company_employees(self, company_ids: list[str]) -> int: ...

    def count_assignments(self, survey_id: str, company_id: str | None = None) -> int: ...

    def company_names(self, company_ids: list[str]) -> list[str]: ...

    def create_survey(self, identity: Identity, payload: CreateSurveyInput) -> dict[str, Any]: ...

    def add_survey_questions(
        self, identity: Identity, payload: AddSurveyQuestionsInput
    ) -> dict[str, Any]: ...

    def check_assignable(self, identity: Identity, survey_id: str) -> Survey: ...

    def check_invitable(self, survey_id: str) -> Survey: ...

    def activate_survey(self, identity: Identity, survey_id: str) -> dict[str, Any]: ...

    def close_survey(self, identity: Identity, survey_id: str) -> dict[str, Any]: ...

    def assign_survey_to_companies(
        self, identity: Identity, survey_id: str, company_ids: list[str]
    ) -> dict[str, Any]: ...

    def send_reminders(
        self, identity: Identity, survey_id: str, employee_ids: list[str] | None = None
    ) -> dict[str, Any]: ...

    def start_sentiment_analysis(self, identity: Identity, survey_id: str) -> dict[str, Any]: ...

    def send_invitations(
        self, identity: Identity, survey_id: str, company_id: str | None = None
    ) -> dict[str, Any]: ...
