"""Caller identity forwarded by the authenticating gateway."""

from __future__ import annotations

from fastapi import Header

from survey_assistant.errors import AuthenticationError, AuthorizationError
from survey_assistant.storage.models import Identity

CHAT_ROLES = frozenset({"admin", "specialist", "hr"})


def identity_from_headers(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_company_id: str | None = Header(default=None),
) -> Identity | None:
    """FastAPI dependency; returns None when the request carries no user id."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        return None
    return Identity(
        user_id=user_id,
        role=(x_user_role or "hr").strip().lower(),
        company_id=(x_company_id or "").strip() or None,
    )


def require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise AuthenticationError("Unauthorized")
    return identity


def require_chat_role(identity: Identity | None) -> Identity:
    identity = require_identity(identity)
    if identity.role not in CHAT_ROLES:
        raise AuthorizationError("Forbidden")
    return identity
