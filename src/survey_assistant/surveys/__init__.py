"""Survey workspace, tool executors and confirmed-action handlers."""

from survey_assistant.surveys.actions import build_action_registry
from survey_assistant.surveys.base import SurveyWorkspace
from survey_assistant.surveys.executors import build_executors
from survey_assistant.surveys.memory import InMemorySurveyWorkspace
from survey_assistant.surveys.models import WorkspaceData

__all__ = [
    "InMemorySurveyWorkspace",
    "SurveyWorkspace",
    "WorkspaceData",
    "build_action_registry",
    "build_executors",
]
