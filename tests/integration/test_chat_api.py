from __future__ import annotations

import json

from survey_assistant.errors import ModelCallError
from tests.fakes import ACTIVE_ID, ADMIN_HEADERS, ALPHA_ID, DRAFT_ID, reply, tool_use


def _events(body: str) -> list[dict]:
    frames = [frame for frame in body.split("\n\n") if frame]
    assert all(frame.startswith("data: ") for frame in frames)
    return [json.loads(frame[len("data: "):]) for frame in frames]


def test_health_and_tool_listing(make_client) -> None:
    client = make_client()

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    tools = client.get("/tools").json()["tools"]
    assert len(tools) == 15
    assert {"name": "close_survey", "confirmable": True} in tools


def test_chat_requires_identity(make_client, store) -> None:
    client = make_client()

    response = client.post("/chat", json={"message": "hi"})

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("text/event-stream")
    assert _events(response.text) == [{"type": "error", "message": "Unauthorized"}]
    assert store._sessions == {}


def test_chat_rejects_roles_outside_the_assistant(make_client, store) -> None:
    client = make_client()

    response = client.post(
        "/chat",
        json={"message": "hi"},
        headers={"X-User-Id": "emp-1", "X-User-Role": "employee"},
    )

    assert response.status_code == 403
    assert _events(response.text) == [{"type": "error", "message": "Forbidden"}]
    assert store._sessions == {}


def test_chat_rejects_bad_bodies_with_single_error_frame(make_client, store) -> None:
    client = make_client()

    bad_json = client.post("/chat", content=b"{not json", headers=ADMIN_HEADERS)
    empty = client.post("/chat", json={"message": "   "}, headers=ADMIN_HEADERS)

    assert bad_json.status_code == 400
    assert _events(bad_json.text) == [{"type": "error", "message": "Invalid JSON body"}]
    assert empty.status_code == 400
    assert _events(empty.text) == [{"type": "error", "message": "Message cannot be empty"}]
    assert store._sessions == {}
    assert client.chat_client.calls == []


def test_chat_streams_tool_results_text_and_done(make_client, store) -> None:
    client = make_client(
        [
            reply(tool_use("get_survey_progress", {"title": "Annual"})),
            reply("Annual Satisfaction is 33% complete (1 of 3)."),
        ]
    )

    response = client.post(
        "/chat",
        json={"message": "How is the annual survey going?", "locale": "en"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == 200
    events = _events(response.text)
    assert [event["type"] for event in events] == ["tool_result", "text", "done"]
    progress = events[0]
    assert progress["tool"] == "get_survey_progress"
    assert progress["data"]["summary"]["completion_rate"] == 33
    assert events[1]["content"].startswith("Annual Satisfaction")
    session_id = events[2]["sessionId"]
    assert store.get_session(session_id).user_id == "admin-1"


def test_hr_user_sees_only_their_company(make_client) -> None:
    client = make_client(
        [reply(tool_use("get_non_respondents", {"surveyId": ACTIVE_ID})), reply("One pending.")]
    )

    response = client.post(
        "/chat",
        json={"message": "Who has not answered?"},
        headers={"X-User-Id": "hr-alpha", "X-User-Role": "hr", "X-Company-Id": ALPHA_ID},
    )

    data = _events(response.text)[0]["data"]
    assert data["count"] == 1
    assert [item["employee_id"] for item in data["employees"]] == ["emp-2"]


def test_session_continues_across_turns(make_client) -> None:
    client = make_client([reply("Hello!"), reply("Still here.")])

    first = _events(client.post("/chat", json={"message": "hi"}, headers=ADMIN_HEADERS).text)
    session_id = first[-1]["sessionId"]
    second = _events(
        client.post(
            "/chat", json={"message": "again", "sessionId": session_id}, headers=ADMIN_HEADERS
        ).text
    )

    assert second[-1]["sessionId"] == session_id
    assert client.chat_client.calls[1]["messages"][:2] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello!"},
    ]


def test_proposal_streams_action_pending_and_changes_nothing(make_client, workspace) -> None:
    client = make_client(
        [
            reply(tool_use("activate_survey", {"title": "Engagement"})),
            reply("Shall I activate Engagement Survey 2025?"),
        ]
    )

    events = _events(
        client.post("/chat", json={"message": "activate it"}, headers=ADMIN_HEADERS).text
    )

    assert [event["type"] for event in events] == ["tool_result", "text", "action_pending", "done"]
    action = events[2]["action"]
    assert action["type"] == "activate_survey"
    assert action["surveyId"] == DRAFT_ID
    assert action["id"] == events[0]["data"]["taskId"]
    assert client.chat_client.calls[1]["max_tokens"] == 1024
    assert workspace.get_survey(DRAFT_ID).status == "draft"


def test_model_failure_ends_stream_with_one_error(make_client) -> None:
    def _unavailable():
        raise ModelCallError("Model request failed with status 529: overloaded")

    client = make_client([_unavailable])

    response = client.post("/chat", json={"message": "hi"}, headers=ADMIN_HEADERS)

    assert response.status_code == 200
    events = _events(response.text)
    assert events == [
        {"type": "error", "message": "Model request failed with status 529: overloaded"}
    ]
