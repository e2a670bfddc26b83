"""FastAPI dependencies resolving shared components from application state."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request

from .errors import AuthError
from .services.auth import AuthService, UserIdentity, extract_token
from .services.completion_client import TyphonClient
from .services.facebook import FacebookService
from .services.orchestration import ConversationOrchestrator
from .services.transcript import TranscriptSink


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


def get_completion_client(request: Request) -> TyphonClient:
    return request.app.state.completion_client


def get_transcript_sink(request: Request) -> TranscriptSink:
    return request.app.state.transcript_sink


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth


def get_facebook(request: Request) -> FacebookService:
    return request.app.state.facebook


def request_token(
    authorization: Optional[str] = Header(default=None),
    x_auth_token: Optional[str] = Header(default=None),
) -> Optional[str]:
    """Token from ``Authorization: Bearer`` or the ``x-auth-token`` header."""

    return extract_token(authorization, x_auth_token)


def optional_user(
    token: Optional[str] = Depends(request_token),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[UserIdentity]:
    return auth.verify(token)


def require_user(user: Optional[UserIdentity] = Depends(optional_user)) -> UserIdentity:
    if user is None:
        raise AuthError("Unauthorized")
    return user
