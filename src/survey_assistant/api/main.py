"""FastAPI app entrypoint for the survey assistant."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from survey_assistant.agent.confirmation import ActionRegistry, ConfirmationGate
from survey_assistant.agent.loop import AgentLoop
from survey_assistant.agent.service import ChatService
from survey_assistant.api.auth import identity_from_headers, require_chat_role, require_identity
from survey_assistant.api.streaming import error_response, sse_response, stream_events
from survey_assistant.config.settings import Settings, get_settings
from survey_assistant.errors import (
    ActionConflictError,
    ActionExecutionError,
    ActionNotFoundError,
    AuthenticationError,
    AuthorizationError,
    InfrastructureError,
    InvalidActionError,
    UnsupportedActionError,
)
from survey_assistant.llm.client import ChatModelClient, build_chat_client
from survey_assistant.storage.base import TranscriptStore
from survey_assistant.storage.models import Identity
from survey_assistant.storage.postgres import PostgresTranscriptStore
from survey_assistant.surveys.actions import build_action_registry
from survey_assistant.surveys.base import SurveyWorkspace
from survey_assistant.surveys.executors import build_executors
from survey_assistant.surveys.memory import InMemorySurveyWorkspace
from survey_assistant.tools import list_tools

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "The service is temporarily unavailable. Please try again."


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    session_id: str | None = Field(default=None, alias="sessionId")
    locale: str | None = None


class ConfirmActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action_id: str | None = Field(default=None, alias="actionId")
    confirmed: bool = False


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _build_workspace(settings: Settings) -> SurveyWorkspace:
    if settings.survey_seed_path:
        return InMemorySurveyWorkspace.from_json(
            settings.survey_seed_path, app_base_url=settings.app_base_url
        )
    return InMemorySurveyWorkspace(app_base_url=settings.app_base_url)


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    workspace: SurveyWorkspace,
    actions: ActionRegistry,
    chat_client: ChatModelClient | None,
    storage_override: TranscriptStore | None,
) -> None:
    if not hasattr(app.state, "storage"):
        database_url = settings.resolved_database_url()
        if storage_override is None and not database_url:
            raise RuntimeError(
                "Missing database URL. Set SURVEY_ASSISTANT_DATABASE_URL "
                "or DATABASE_URL before starting the app."
            )
        app.state.storage = storage_override or PostgresTranscriptStore(database_url)
        app.state.storage.migrate()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "gate"):
        app.state.gate = ConfirmationGate(app.state.storage, actions)

    if not hasattr(app.state, "service"):
        gate = app.state.gate
        agent = (
            AgentLoop(
                chat_client,
                max_rounds=settings.max_tool_rounds,
                max_tokens=settings.llm_max_tokens,
                confirmation_max_tokens=settings.llm_confirmation_max_tokens,
            )
            if chat_client is not None
            else None
        )
        app.state.service = ChatService(
            store=app.state.storage,
            agent=agent,
            executor_factory=lambda identity, session_id: build_executors(
                workspace=workspace, gate=gate, identity=identity, session_id=session_id
            ),
            history_limit=settings.history_limit,
        )


def create_app(
    *,
    storage: TranscriptStore | None = None,
    settings_override: Settings | None = None,
    chat_client: ChatModelClient | None = None,
    workspace: SurveyWorkspace | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    survey_workspace = workspace or _build_workspace(settings)
    actions = build_action_registry(survey_workspace)
    actions.ensure_complete()
    model_client = chat_client or build_chat_client(settings)

    def _init(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            workspace=survey_workspace,
            actions=actions,
            chat_client=model_client,
            storage_override=storage,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _init(app)
        yield

    app_lifespan = lifespan if storage is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if storage is not None:
        _init(app)

    def _runtime(request: Request) -> Any:
        if not hasattr(request.app.state, "service"):
            _init(request.app)
        return request.app.state

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/tools")
    def tools() -> dict[str, list[dict[str, Any]]]:
        return {"tools": list_tools()}

    @app.post("/chat")
    async def chat(
        request: Request,
        identity: Identity | None = Depends(identity_from_headers),
    ) -> Response:
        try:
            caller = require_chat_role(identity)
        except AuthenticationError as exc:
            return error_response(str(exc), 401)
        except AuthorizationError as exc:
            return error_response(str(exc), 403)

        try:
            payload = ChatRequest.model_validate_json(await request.body())
        except ValidationError:
            return error_response("Invalid JSON body", 400)
        message = payload.message.strip()
        if not message:
            return error_response("Message cannot be empty", 400)

        service: ChatService = _runtime(request).service

        async def run(emit):
            return await service.run_turn(
                identity=caller,
                message=message,
                emit=emit,
                session_id=payload.session_id,
                locale=payload.locale,
            )

        return sse_response(stream_events(run, timeout_s=settings.turn_timeout_s))

    @app.post("/confirm-action")
    async def confirm_action(
        request: Request,
        identity: Identity | None = Depends(identity_from_headers),
    ) -> JSONResponse:
        try:
            caller = require_identity(identity)
        except AuthenticationError as exc:
            return _error(str(exc), 401)

        try:
            payload = ConfirmActionRequest.model_validate_json(await request.body())
        except ValidationError:
            return _error("Invalid JSON body", 400)
        if not payload.action_id:
            return _error("Missing actionId", 400)

        gate: ConfirmationGate = _runtime(request).gate
        try:
            resolution = await gate.resolve(payload.action_id, payload.confirmed, caller)
        except ActionNotFoundError as exc:
            return _error(str(exc), 404)
        except (InvalidActionError, UnsupportedActionError) as exc:
            return _error(str(exc), 400)
        except ActionConflictError as exc:
            return _error(str(exc), 409)
        except ActionExecutionError as exc:
            return _error(str(exc), 500)
        except InfrastructureError:
            logger.exception("confirm_action event=storage_failed action_id=%s", payload.action_id)
            return _error(UNAVAILABLE_MESSAGE, 503)

        body: dict[str, Any] = {"message": resolution.message}
        if payload.confirmed:
            body["result"] = resolution.result
        return JSONResponse(body)

    @app.get("/actions/{action_id}")
    async def get_action(
        action_id: str,
        request: Request,
        identity: Identity | None = Depends(identity_from_headers),
    ) -> JSONResponse:
        try:
            caller = require_identity(identity)
        except AuthenticationError as exc:
            return _error(str(exc), 401)

        store: TranscriptStore = _runtime(request).storage
        try:
            task = await asyncio.to_thread(store.get_task, action_id)
            if task is None or task.created_by != caller.user_id:
                return _error("Action not found", 404)
            steps = await asyncio.to_thread(store.get_task_steps, action_id)
        except InfrastructureError:
            logger.exception("get_action event=storage_failed action_id=%s", action_id)
            return _error(UNAVAILABLE_MESSAGE, 503)
        return JSONResponse(
            {
                "task": task.model_dump(mode="json"),
                "steps": [step.model_dump(mode="json") for step in steps],
            }
        )

    return app


app = create_app()
