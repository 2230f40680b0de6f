from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from survey_assistant.api.main import create_app
from survey_assistant.config.settings import Settings
from survey_assistant.llm.client import ModelResponse
from survey_assistant.storage.memory import InMemoryTranscriptStore
from survey_assistant.surveys.memory import InMemorySurveyWorkspace
from tests.fakes import ScriptedChatClient, make_workspace


@pytest.fixture
def store() -> InMemoryTranscriptStore:
    return InMemoryTranscriptStore()


@pytest.fixture
def workspace() -> InMemorySurveyWorkspace:
    return make_workspace()


@pytest.fixture
def make_client(
    store: InMemoryTranscriptStore, workspace: InMemorySurveyWorkspace
) -> Iterator[Callable[..., TestClient]]:
    """Builds a TestClient whose model replies are scripted per test."""
    clients: list[TestClient] = []

    def _make(
        responses: list[ModelResponse] | None = None, *, turn_timeout_s: float = 10.0
    ) -> TestClient:
        chat_client = ScriptedChatClient(responses or [])
        app = create_app(
            storage=store,
            settings_override=Settings(
                database_url="",
                anthropic_api_key="",
                turn_timeout_s=turn_timeout_s,
                app_base_url="https://surveys.example.test",
            ),
            chat_client=chat_client,
            workspace=workspace,
        )
        test_client = TestClient(app)
        test_client.chat_client = chat_client
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        test_client.close()
