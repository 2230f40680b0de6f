"""Real-execution routines for confirmed survey actions."""

from __future__ import annotations

from typing import Any

from survey_assistant.agent.confirmation import ActionRegistry
from survey_assistant.storage.models import Identity
from survey_assistant.surveys.base import SurveyWorkspace


def _survey_id(step_input: dict[str, Any]) -> str:
    survey_id = step_input.get("surveyId")
    if not survey_id:
        raise ValueError("Invalid action input: missing surveyId")
    return str(survey_id)


def build_action_registry(workspace: SurveyWorkspace) -> ActionRegistry:
    registry = ActionRegistry()

    async def send_reminders(identity: Identity, step_input: dict[str, Any]) -> dict[str, Any]:
        return workspace.send_reminders(
            identity, _survey_id(step_input), list(step_input.get("employeeIds") or [])
        )

    async def activate_survey(identity: Identity, step_input: dict[str, Any]) -> dict[str, Any]:
        return workspace.activate_survey(identity, _survey_id(step_input))

    async def close_survey(identity: Identity, step_input: dict[str, Any]) -> dict[str, Any]:
        return workspace.close_survey(identity, _survey_id(step_input))

    async def trigger_sentiment_analysis(
        identity: Identity, step_input: dict[str, Any]
    ) -> dict[str, Any]:
        return workspace.start_sentiment_analysis(identity, _survey_id(step_input))

    async def assign_survey_to_companies(
        identity: Identity, step_input: dict[str, Any]
    ) -> dict[str, Any]:
        company_ids = step_input.get("companyIds")
        if not company_ids:
            raise ValueError("Invalid action input: missing surveyId or companyIds")
        return workspace.assign_survey_to_companies(
            identity, _survey_id(step_input), list(company_ids)
        )

    async def send_survey_invitations(
        identity: Identity, step_input: dict[str, Any]
    ) -> dict[str, Any]:
        return workspace.send_invitations(
            identity, _survey_id(step_input), step_input.get("companyId")
        )

    registry.register("send_reminders", send_reminders, "Reminders sent successfully.")
    registry.register("activate_survey", activate_survey, "Survey activated successfully.")
    registry.register("close_survey", close_survey, "Survey closed successfully.")
    registry.register(
        "trigger_sentiment_analysis",
        trigger_sentiment_analysis,
        "Sentiment analysis triggered successfully.",
    )
    registry.register(
        "assign_survey_to_companies",
        assign_survey_to_companies,
        "Survey assigned to companies successfully.",
    )
    registry.register(
        "send_survey_invitations", send_survey_invitations, "Invitations sent successfully."
    )
    return registry
