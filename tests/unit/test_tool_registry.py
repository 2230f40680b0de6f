from __future__ import annotations

import pytest
from pydantic import ValidationError

from survey_assistant.tools import (
    CONFIRMABLE_TOOLS,
    TOOL_SPECS,
    is_confirmable,
    is_valid_tool_name,
    list_tools,
    schema_for,
    tool_definitions,
)
from survey_assistant.tools.schemas import AddSurveyQuestionsInput, SurveyLookupInput


def test_registry_lists_fifteen_tools_with_six_confirmable() -> None:
    assert len(TOOL_SPECS) == 15
    assert CONFIRMABLE_TOOLS == {
        "send_reminders",
        "activate_survey",
        "close_survey",
        "trigger_sentiment_analysis",
        "assign_survey_to_companies",
        "send_survey_invitations",
    }


def test_name_checks_are_exact() -> None:
    assert is_valid_tool_name("get_surveys")
    assert not is_valid_tool_name("GET_SURVEYS")
    assert not is_valid_tool_name("get_surveys ")
    assert is_confirmable("close_survey")
    assert not is_confirmable("get_survey_progress")
    assert not is_confirmable("delete_everything")


def test_schema_for_unknown_tool_raises_key_error() -> None:
    assert schema_for("activate_survey") is SurveyLookupInput
    with pytest.raises(KeyError):
        schema_for("delete_everything")


def test_tool_definitions_expose_aliased_json_schema() -> None:
    definitions = {item["name"]: item for item in tool_definitions()}

    assert set(definitions) == set(TOOL_SPECS)
    lookup = definitions["activate_survey"]["input_schema"]
    assert set(lookup["properties"]) == {"surveyId", "title", "latest"}
    assert lookup["additionalProperties"] is False
    assign = definitions["assign_survey_to_companies"]["input_schema"]
    assert set(assign["required"]) == {"surveyId", "companyIds"}
    assert all(item["description"] for item in definitions.values())


def test_list_tools_flags_confirmable_entries() -> None:
    listed = {item["name"]: item["confirmable"] for item in list_tools()}
    assert listed["send_reminders"] is True
    assert listed["get_companies"] is False


def test_lookup_schema_rejects_unknown_keys_and_bad_uuid() -> None:
    with pytest.raises(ValidationError):
        SurveyLookupInput.model_validate({"surveyId": "not-a-uuid"})
    with pytest.raises(ValidationError):
        SurveyLookupInput.model_validate({"title": "x", "force": True})
    parsed = SurveyLookupInput.model_validate({"latest": True})
    assert parsed.latest is True


def test_question_batch_bounds() -> None:
    question = {"question_code": "Q1", "question_text": "How are you?", "type": "text"}
    parsed = AddSurveyQuestionsInput.model_validate(
        {"surveyId": "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa", "questions": [question]}
    )
    assert parsed.questions[0].is_required is True

    with pytest.raises(ValidationError):
        AddSurveyQuestionsInput.model_validate(
            {"surveyId": "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa", "questions": []}
        )
    with pytest.raises(ValidationError):
        AddSurveyQuestionsInput.model_validate(
            {
                "surveyId": "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa",
                "questions": [{**question, "type": "essay"}],
            }
        )
