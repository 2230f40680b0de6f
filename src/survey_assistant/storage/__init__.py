"""Transcript store backends and models."""

from survey_assistant.storage.base import TranscriptStore
from survey_assistant.storage.memory import InMemoryTranscriptStore
from survey_assistant.storage.models import (
    Identity,
    MessageRecord,
    SessionRecord,
    TaskRecord,
    TaskStepRecord,
    ToolRunRecord,
)
from survey_assistant.storage.postgres import PostgresTranscriptStore

__all__ = [
    "Identity",
    "InMemoryTranscriptStore",
    "MessageRecord",
    "PostgresTranscriptStore",
    "SessionRecord",
    "TaskRecord",
    "TaskStepRecord",
    "ToolRunRecord",
    "TranscriptStore",
]
