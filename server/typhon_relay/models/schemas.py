"""Pydantic models describing request and response payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionMessageRequest(BaseModel):
    """Payload for ``POST /ai-typhon/session/{session_id}/message``."""

    content: Optional[str] = Field(default=None, description="Message text appended to the session")
    role: str = Field(default="user", description="Role of the appended message")
    system: Optional[str] = Field(default=None, description="System prompt, inserted once per session")
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    repetition_penalty: Optional[float] = None
    stream: Optional[bool] = None


class ChatMessage(BaseModel):
    role: str
    content: str


class SessionMessageResponse(CamelModel):
    success: bool = True
    session_id: str
    session_key: str
    path_used: str
    reply: str
    history_size: int
    raw: Any = None


class SessionHistoryResponse(CamelModel):
    success: bool = True
    session_id: str
    session_key: str
    messages: List[ChatMessage]


class SessionClearedResponse(CamelModel):
    success: bool = True
    session_id: str
    session_key: str
    cleared: bool


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


class ProxyRequest(BaseModel):
    method: str = "POST"
    path: str = "/"
    data: Any = None
    params: Optional[Dict[str, Any]] = None


class PinLoginRequest(BaseModel):
    pin: Optional[str] = Field(default=None, description="Six-digit PIN")


class ChatLogRequest(CamelModel):
    user_message: Optional[str] = None
    bot_reply: Optional[str] = None
    user_sent_at: Optional[str] = None
    bot_replied_at: Optional[str] = None
    player_name: Optional[str] = None


class FacebookPostRequest(BaseModel):
    message: Optional[str] = None
    link: Optional[str] = None


class FacebookCredentials(CamelModel):
    page_id: Optional[str] = None
    access_token: Optional[str] = None
    graph_version: Optional[str] = None
