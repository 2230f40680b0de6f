"""Exception types shared by the agent loop, confirmation gate and API layer.

Tool-level errors are recovered inside the agent loop and fed back to the model
as error tool-results. Infrastructure errors abort the whole turn.
"""

from __future__ import annotations


class SurveyAssistantError(Exception):
    """Base class for all errors raised by this package."""


# Infrastructure: fatal to the current turn.


class InfrastructureError(SurveyAssistantError):
    """A backing service (model API, database) failed."""


class ModelCallError(InfrastructureError):
    """The language-model request failed or returned an unusable payload."""


class StorageError(InfrastructureError):
    """The transcript/task store failed to complete an operation."""


# Tool-level domain errors: recovered inside the loop.


class SurveyNotFoundError(SurveyAssistantError):
    """No survey matched the lookup; carries close title matches when known."""

    def __init__(self, message: str, suggestions: list[str] | None = None) -> None:
        super().__init__(message)
        self.suggestions = list(suggestions or [])


class PermissionDeniedError(SurveyAssistantError):
    """The caller's role or company does not allow the requested operation."""


class SurveyStateError(SurveyAssistantError):
    """The survey is in a state that does not allow the requested operation."""


# Confirmation gate errors.


class ActionNotFoundError(SurveyAssistantError):
    """The action id is unknown or belongs to another user."""


class ActionConflictError(SurveyAssistantError):
    """The action is no longer pending and cannot transition as requested."""

    def __init__(self, action_id: str, status: str) -> None:
        super().__init__(f"Action {action_id} is already {status}.")
        self.action_id = action_id
        self.status = status


class InvalidActionError(SurveyAssistantError):
    """The stored action cannot be replayed (for example, it has no steps)."""


class UnsupportedActionError(SurveyAssistantError):
    """No real-execution routine is registered for the action's tool."""


class ActionExecutionError(SurveyAssistantError):
    """The real-execution routine raised while performing the action."""


# HTTP surface.


class AuthenticationError(SurveyAssistantError):
    """The request carries no verified identity."""


class AuthorizationError(SurveyAssistantError):
    """The identity is known but its role may not use the assistant."""
