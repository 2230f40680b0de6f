from __future__ import annotations

import json

import pytest

from survey_assistant.api.main import UNAVAILABLE_MESSAGE
from survey_assistant.errors import StorageError
from tests.fakes import ACTIVE_ID, ADMIN, ADMIN_HEADERS, ALPHA_ID, reply, tool_use


def _propose_close(client) -> str:
    response = client.post(
        "/chat", json={"message": "close the annual survey"}, headers=ADMIN_HEADERS
    )
    frames = [json.loads(frame[6:]) for frame in response.text.split("\n\n") if frame]
    [pending] = [frame for frame in frames if frame["type"] == "action_pending"]
    return pending["action"]["id"]


def _close_client(make_client):
    return make_client(
        [
            reply(tool_use("close_survey", {"surveyId": ACTIVE_ID})),
            reply("Confirm to close Annual Satisfaction."),
        ]
    )


def test_confirm_executes_the_proposed_action(make_client, workspace, store) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)
    assert workspace.get_survey(ACTIVE_ID).status == "active"

    response = client.post(
        "/confirm-action", json={"actionId": action_id, "confirmed": True}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Survey closed successfully."
    assert body["result"]["new_status"] == "closed"
    assert workspace.get_survey(ACTIVE_ID).status == "closed"
    assert store.get_task(action_id).status == "completed"


def test_second_confirmation_conflicts(make_client) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)
    payload = {"actionId": action_id, "confirmed": True}

    first = client.post("/confirm-action", json=payload, headers=ADMIN_HEADERS)
    second = client.post("/confirm-action", json=payload, headers=ADMIN_HEADERS)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json() == {"error": f"Action {action_id} is already completed."}


def test_cancel_is_idempotent_and_blocks_later_confirmation(make_client, workspace) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)
    cancel = {"actionId": action_id, "confirmed": False}

    first = client.post("/confirm-action", json=cancel, headers=ADMIN_HEADERS)
    second = client.post("/confirm-action", json=cancel, headers=ADMIN_HEADERS)
    confirm = client.post(
        "/confirm-action", json={"actionId": action_id, "confirmed": True}, headers=ADMIN_HEADERS
    )

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json() == {"message": "Action cancelled."}
    assert confirm.status_code == 409
    assert workspace.get_survey(ACTIVE_ID).status == "active"


def test_confirmed_defaults_to_cancel(make_client, store) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)

    response = client.post("/confirm-action", json={"actionId": action_id}, headers=ADMIN_HEADERS)

    assert response.json() == {"message": "Action cancelled."}
    assert store.get_task(action_id).status == "canceled"


def test_failed_execution_returns_500_and_marks_task_failed(make_client, workspace, store) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)
    # Someone closes the survey between proposal and confirmation.
    workspace.close_survey(ADMIN, ACTIVE_ID)

    response = client.post(
        "/confirm-action", json={"actionId": action_id, "confirmed": True}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 500
    assert "Cannot close survey" in response.json()["error"]
    assert store.get_task(action_id).status == "failed"


def test_other_users_cannot_see_or_resolve_the_action(make_client) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)
    other = {"X-User-Id": "hr-alpha", "X-User-Role": "hr", "X-Company-Id": ALPHA_ID}

    confirm = client.post(
        "/confirm-action", json={"actionId": action_id, "confirmed": True}, headers=other
    )
    lookup = client.get(f"/actions/{action_id}", headers=other)

    assert confirm.status_code == 404
    assert confirm.json() == {"error": "Action not found"}
    assert lookup.status_code == 404


def test_action_lookup_returns_task_and_steps(make_client) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)

    response = client.get(f"/actions/{action_id}", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["task"]["task_id"] == action_id
    assert body["task"]["status"] == "pending"
    assert [step["tool_name"] for step in body["steps"]] == ["close_survey"]
    assert body["steps"][0]["tool_input"] == {"surveyId": ACTIVE_ID}


def test_confirm_action_request_validation(make_client) -> None:
    client = make_client()

    unauthenticated = client.post("/confirm-action", json={"actionId": "x", "confirmed": True})
    bad_json = client.post("/confirm-action", content=b"not json", headers=ADMIN_HEADERS)
    missing = client.post("/confirm-action", json={"confirmed": True}, headers=ADMIN_HEADERS)
    unknown = client.post(
        "/confirm-action", json={"actionId": "nope", "confirmed": True}, headers=ADMIN_HEADERS
    )

    assert unauthenticated.status_code == 401
    assert bad_json.status_code == 400
    assert bad_json.json() == {"error": "Invalid JSON body"}
    assert missing.status_code == 400
    assert missing.json() == {"error": "Missing actionId"}
    assert unknown.status_code == 404
    assert client.get("/actions/nope").status_code == 401


def test_store_failure_returns_json_error(
    make_client, store, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = make_client()

    def _unavailable(task_id: str):
        raise StorageError("connection refused")

    monkeypatch.setattr(store, "get_task", _unavailable)

    confirm = client.post(
        "/confirm-action", json={"actionId": "x", "confirmed": True}, headers=ADMIN_HEADERS
    )
    lookup = client.get("/actions/x", headers=ADMIN_HEADERS)

    assert confirm.status_code == 503
    assert confirm.json() == {"error": UNAVAILABLE_MESSAGE}
    assert lookup.status_code == 503
    assert lookup.json() == {"error": UNAVAILABLE_MESSAGE}


def test_store_failure_while_recording_failure_returns_json_error(
    make_client, workspace, store, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = _close_client(make_client)
    action_id = _propose_close(client)
    workspace.close_survey(ADMIN, ACTIVE_ID)
    transition = store.transition_task

    def _flaky_transition(task_id: str, **kwargs):
        if kwargs["to_status"] == "failed":
            raise StorageError("connection lost")
        return transition(task_id, **kwargs)

    monkeypatch.setattr(store, "transition_task", _flaky_transition)

    response = client.post(
        "/confirm-action", json={"actionId": action_id, "confirmed": True}, headers=ADMIN_HEADERS
    )

    assert response.status_code == 503
    assert response.json() == {"error": UNAVAILABLE_MESSAGE}
    assert "connection" not in response.text
