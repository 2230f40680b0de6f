"""Per-request tool executors bound to the caller's identity and session.

Read and draft-editing tools call the workspace directly. Confirmable tools
only pre-validate and then record a pending proposal through the
confirmation gate; the change itself happens in `surveys.actions` once the
user confirms.
"""

from __future__ import annotations

from typing import Any

from survey_assistant.agent.confirmation import ConfirmationGate
from survey_assistant.agent.loop import ToolExecutor
from survey_assistant.storage.models import Identity
from survey_assistant.surveys.base import SurveyWorkspace
from survey_assistant.tools.results import PendingConfirmation, PlainResult
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


def build_executors(
    *,
    workspace: SurveyWorkspace,
    gate: ConfirmationGate,
    identity: Identity,
    session_id: str,
) -> dict[str, ToolExecutor]:
    async def propose(
        action_type: str,
        survey_id: str,
        message: str,
        tool_input: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PendingConfirmation:
        task_id = await gate.create_pending_task(
            session_id=session_id,
            identity=identity,
            title=message,
            tool_name=action_type,
            tool_input=tool_input or {"surveyId": survey_id},
            metadata=metadata,
        )
        return PendingConfirmation(
            task_id=task_id,
            action_type=action_type,
            survey_id=survey_id,
            message=message,
            metadata=dict(metadata or {}),
        )

    async def get_survey_progress(payload: GetSurveyProgressInput) -> PlainResult:
        return PlainResult(workspace.get_survey_progress(identity, payload))

    async def get_non_respondents(payload: GetNonRespondentsInput) -> PlainResult:
        return PlainResult(workspace.get_non_respondents(identity, payload))

    async def get_invitation_status(payload: GetInvitationStatusInput) -> PlainResult:
        return PlainResult(workspace.get_invitation_status(identity, payload))

    async def get_surveys(payload: GetSurveysInput) -> PlainResult:
        return PlainResult(workspace.get_surveys(identity, payload))

    async def get_report_data(payload: SurveyLookupInput) -> PlainResult:
        return PlainResult(workspace.get_report_data(identity, payload))

    async def get_sentiment_results(payload: SurveyLookupInput) -> PlainResult:
        return PlainResult(workspace.get_sentiment_results(identity, payload))

    async def get_companies(payload: GetCompaniesInput) -> PlainResult:
        return PlainResult(workspace.get_companies(identity))

    async def create_survey(payload: CreateSurveyInput) -> PlainResult:
        return PlainResult(workspace.create_survey(identity, payload))

    async def add_survey_questions(payload: AddSurveyQuestionsInput) -> PlainResult:
        return PlainResult(workspace.add_survey_questions(identity, payload))

    async def send_reminders(payload: SurveyLookupInput) -> PlainResult | PendingConfirmation:
        pending = workspace.get_non_respondents(identity, payload, unlimited=True)
        employee_ids = [item["employee_id"] for item in pending["employees"]]
        if not employee_ids:
            return PlainResult(
                {
                    "survey_id": pending["survey_id"],
                    "survey_title": pending["survey_title"],
                    "message": (
                        f'Everyone has completed "{pending["survey_title"]}". '
                        "No reminders needed."
                    ),
                    "reminders_needed": 0,
                }
            )
        return await propose(
            "send_reminders",
            pending["survey_id"],
            f'Send reminders to {len(employee_ids)} employees for "{pending["survey_title"]}".',
            tool_input={"surveyId": pending["survey_id"], "employeeIds": employee_ids},
            metadata={"recipients": len(employee_ids)},
        )

    async def activate_survey(payload: SurveyLookupInput) -> PendingConfirmation:
        summary = workspace.get_survey_progress(identity, payload)["summary"]
        if summary["status"] != "draft":
            raise ValueError(
                f'Cannot activate "{summary["title"]}": it is currently "{summary["status"]}". '
                "Only draft surveys can be activated."
            )
        return await propose(
            "activate_survey",
            summary["survey_id"],
            f'Activate survey "{summary["title"]}" (change status from draft to active).',
        )

    async def close_survey(payload: SurveyLookupInput) -> PendingConfirmation:
        summary = workspace.get_survey_progress(identity, payload)["summary"]
        if summary["status"] != "active":
            raise ValueError(
                f'Cannot close "{summary["title"]}": it is currently "{summary["status"]}". '
                "Only active surveys can be closed."
            )
        return await propose(
            "close_survey",
            summary["survey_id"],
            (
                f'Close survey "{summary["title"]}" ({summary["total_completed"]}/'
                f'{summary["total_assigned"]} completed, {summary["completion_rate"]}% rate). '
                "No more responses will be accepted."
            ),
            metadata={"completion_rate": summary["completion_rate"]},
        )

    async def trigger_sentiment_analysis(
        payload: SurveyLookupInput,
    ) -> PlainResult | PendingConfirmation:
        check = workspace.check_sentiment_analysis(identity, payload)
        if check["status"] != "ready":
            return PlainResult(
                {
                    "survey_id": check["survey_id"],
                    "survey_title": check["survey_title"],
                    "analysis_id": check["analysis_id"],
                    "status": check["status"],
                    "message": check["message"],
                }
            )
        return await propose(
            "trigger_sentiment_analysis",
            check["survey_id"],
            (
                f"Run sentiment analysis on {check['responses_count']} responses for "
                f'"{check["survey_title"]}".'
            ),
            metadata={"responses_count": check["responses_count"]},
        )

    async def assign_survey_to_companies(
        payload: AssignSurveyToCompaniesInput,
    ) -> PendingConfirmation:
        survey = workspace.check_assignable(identity, payload.survey_id)
        names = ", ".join(workspace.company_names(payload.company_ids))
        employee_count = workspace.count_company_employees(payload.company_ids)
        return await propose(
            "assign_survey_to_companies",
            survey.id,
            (
                f'Assign survey "{survey.title}" to {len(payload.company_ids)} companies '
                f"({names}). This will create assignments for ~{employee_count} employees."
            ),
            tool_input={"surveyId": survey.id, "companyIds": list(payload.company_ids)},
            metadata={"employee_count": employee_count},
        )

    async def send_survey_invitations(payload: SendSurveyInvitationsInput) -> PendingConfirmation:
        survey = workspace.check_invitable(payload.survey_id)
        count = workspace.count_assignments(survey.id, payload.company_id)
        if count == 0:
            raise ValueError(
                f'No employee assignments found for survey "{survey.title}". '
                "Assign companies first."
            )
        return await propose(
            "send_survey_invitations",
            survey.id,
            f'Send email invitations to {count} employees for survey "{survey.title}".',
            tool_input={"surveyId": survey.id, "companyId": payload.company_id},
            metadata={"recipients": count},
        )

    return {
        "get_survey_progress": get_survey_progress,
        "get_non_respondents": get_non_respondents,
        "get_invitation_status": get_invitation_status,
        "get_surveys": get_surveys,
        "send_reminders": send_reminders,
        "activate_survey": activate_survey,
        "close_survey": close_survey,
        "get_report_data": get_report_data,
        "trigger_sentiment_analysis": trigger_sentiment_analysis,
        "get_sentiment_results": get_sentiment_results,
        "get_companies": get_companies,
        "create_survey": create_survey,
        "add_survey_questions": add_survey_questions,
        "assign_survey_to_companies": assign_survey_to_companies,
        "send_survey_invitations": send_survey_invitations,
    }
