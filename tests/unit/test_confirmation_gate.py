from __future__ import annotations

import asyncio
from typing import Any

import pytest

from survey_assistant.agent.confirmation import (
    CANCELLED_MESSAGE,
    ActionRegistry,
    ConfirmationGate,
)
from survey_assistant.errors import (
    ActionConflictError,
    ActionExecutionError,
    ActionNotFoundError,
    InvalidActionError,
    UnsupportedActionError,
)
from survey_assistant.storage.memory import InMemoryTranscriptStore
from survey_assistant.storage.models import Identity
from survey_assistant.surveys.actions import build_action_registry
from tests.fakes import ACTIVE_ID, ADMIN, DRAFT_ID, make_workspace


def _gate(actions: ActionRegistry | None = None):
    store = InMemoryTranscriptStore()
    workspace = make_workspace()
    gate = ConfirmationGate(store, actions or build_action_registry(workspace))
    session_id = store.get_or_create_session(ADMIN)
    return gate, store, workspace, session_id


def _propose(gate: ConfirmationGate, session_id: str, tool_name: str, tool_input: dict[str, Any]):
    return asyncio.run(
        gate.create_pending_task(
            session_id=session_id,
            identity=ADMIN,
            title=f"{tool_name} proposal",
            tool_name=tool_name,
            tool_input=tool_input,
            metadata={"source": "test"},
        )
    )


def test_proposal_is_stored_pending_with_one_step() -> None:
    gate, store, workspace, session_id = _gate()
    task_id = _propose(gate, session_id, "activate_survey", {"surveyId": DRAFT_ID})

    task = store.get_task(task_id)
    assert task.status == "pending"
    assert task.created_by == ADMIN.user_id
    assert task.metadata == {"source": "test"}
    [step] = store.get_task_steps(task_id)
    assert step.status == "pending"
    assert step.tool_name == "activate_survey"
    assert step.tool_input == {"surveyId": DRAFT_ID}
    assert workspace.get_survey(DRAFT_ID).status == "draft"


def test_confirm_runs_action_once_and_completes_task() -> None:
    gate, store, workspace, session_id = _gate()
    task_id = _propose(gate, session_id, "activate_survey", {"surveyId": DRAFT_ID})

    resolution = asyncio.run(gate.resolve(task_id, True, ADMIN))

    assert resolution.message == "Survey activated successfully."
    assert resolution.result["new_status"] == "active"
    assert workspace.get_survey(DRAFT_ID).status == "active"
    assert store.get_task(task_id).status == "completed"
    assert [step.status for step in store.get_task_steps(task_id)] == ["completed"]

    with pytest.raises(ActionConflictError) as excinfo:
        asyncio.run(gate.resolve(task_id, True, ADMIN))
    assert excinfo.value.status == "completed"


def test_cancel_skips_steps_and_is_idempotent() -> None:
    gate, store, workspace, session_id = _gate()
    task_id = _propose(gate, session_id, "close_survey", {"surveyId": ACTIVE_ID})

    first = asyncio.run(gate.resolve(task_id, False, ADMIN))
    second = asyncio.run(gate.resolve(task_id, False, ADMIN))

    assert first.message == second.message == CANCELLED_MESSAGE
    assert first.result is None
    assert store.get_task(task_id).status == "canceled"
    assert [step.status for step in store.get_task_steps(task_id)] == ["skipped"]
    assert workspace.get_survey(ACTIVE_ID).status == "active"

    with pytest.raises(ActionConflictError):
        asyncio.run(gate.resolve(task_id, True, ADMIN))


def test_cancel_after_completion_is_a_conflict() -> None:
    gate, store, _, session_id = _gate()
    task_id = _propose(gate, session_id, "close_survey", {"surveyId": ACTIVE_ID})
    asyncio.run(gate.resolve(task_id, True, ADMIN))

    with pytest.raises(ActionConflictError, match="already completed"):
        asyncio.run(gate.resolve(task_id, False, ADMIN))


def test_concurrent_confirmations_execute_at_most_once() -> None:
    calls: list[str] = []
    actions = ActionRegistry()

    async def slow_close(identity: Identity, step_input: dict[str, Any]) -> dict[str, Any]:
        calls.append(step_input["surveyId"])
        await asyncio.sleep(0.01)
        return {"closed": True}

    for name in ("send_reminders", "activate_survey", "trigger_sentiment_analysis",
                 "assign_survey_to_companies", "send_survey_invitations"):
        actions.register(name, slow_close, "ok")
    actions.register("close_survey", slow_close, "Survey closed successfully.")
    gate, store, _, session_id = _gate(actions)
    task_id = _propose(gate, session_id, "close_survey", {"surveyId": ACTIVE_ID})

    async def both():
        return await asyncio.gather(
            gate.resolve(task_id, True, ADMIN),
            gate.resolve(task_id, True, ADMIN),
            return_exceptions=True,
        )

    outcomes = asyncio.run(both())

    assert calls == [ACTIVE_ID]
    successes = [item for item in outcomes if not isinstance(item, Exception)]
    conflicts = [item for item in outcomes if isinstance(item, ActionConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert store.get_task(task_id).status == "completed"


def test_handler_failure_marks_task_failed() -> None:
    gate, store, workspace, session_id = _gate()
    # The draft survey cannot be closed, so the real execution fails.
    task_id = _propose(gate, session_id, "close_survey", {"surveyId": DRAFT_ID})

    with pytest.raises(ActionExecutionError, match="Cannot close survey"):
        asyncio.run(gate.resolve(task_id, True, ADMIN))

    assert store.get_task(task_id).status == "failed"
    [step] = store.get_task_steps(task_id)
    assert step.status == "failed"
    assert "Cannot close survey" in step.error
    assert workspace.get_survey(DRAFT_ID).status == "draft"


def test_missing_survey_id_fails_the_action() -> None:
    gate, store, _, session_id = _gate()
    task_id = _propose(gate, session_id, "activate_survey", {})

    with pytest.raises(ActionExecutionError, match="missing surveyId"):
        asyncio.run(gate.resolve(task_id, True, ADMIN))
    assert store.get_task(task_id).status == "failed"


def test_unknown_or_foreign_action_is_not_found() -> None:
    gate, _, _, session_id = _gate()
    task_id = _propose(gate, session_id, "activate_survey", {"surveyId": DRAFT_ID})
    stranger = Identity(user_id="someone-else", role="admin")

    with pytest.raises(ActionNotFoundError):
        asyncio.run(gate.resolve("does-not-exist", True, ADMIN))
    with pytest.raises(ActionNotFoundError):
        asyncio.run(gate.resolve(task_id, True, stranger))
    with pytest.raises(ActionNotFoundError):
        asyncio.run(gate.resolve(task_id, False, stranger))


def test_task_without_steps_is_invalid() -> None:
    gate, store, _, session_id = _gate()
    task_id = _propose(gate, session_id, "activate_survey", {"surveyId": DRAFT_ID})
    store._steps[task_id] = []

    with pytest.raises(InvalidActionError, match="No steps found"):
        asyncio.run(gate.resolve(task_id, True, ADMIN))
    assert store.get_task(task_id).status == "pending"


def test_unregistered_tool_is_unsupported_and_stays_pending() -> None:
    gate, store, _, session_id = _gate(ActionRegistry())
    task_id = _propose(gate, session_id, "activate_survey", {"surveyId": DRAFT_ID})

    with pytest.raises(UnsupportedActionError, match="activate_survey"):
        asyncio.run(gate.resolve(task_id, True, ADMIN))
    assert store.get_task(task_id).status == "pending"


def test_resolved_action_conflicts_before_handler_lookup() -> None:
    gate, store, _, session_id = _gate()
    task_id = _propose(gate, session_id, "activate_survey", {"surveyId": DRAFT_ID})
    asyncio.run(gate.resolve(task_id, True, ADMIN))
    gate.actions = ActionRegistry()

    with pytest.raises(ActionConflictError) as excinfo:
        asyncio.run(gate.resolve(task_id, True, ADMIN))
    assert excinfo.value.status == "completed"


def test_registry_completeness_check() -> None:
    registry = ActionRegistry()
    assert "close_survey" in registry.missing()
    with pytest.raises(RuntimeError, match="close_survey"):
        registry.ensure_complete()

    build_action_registry(make_workspace()).ensure_complete()
