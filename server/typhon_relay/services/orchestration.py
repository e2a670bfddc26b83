"""Session-based conversation orchestrator."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from ..errors import ValidationError
from .auth import UserIdentity
from .completion_client import CompletionResult
from .reply_extraction import extract_reply
from .session_store import Message, SessionStore, make_session_key
from .transcript import TranscriptEntry, TranscriptPair, TranscriptSink, utc_now_iso

logger = logging.getLogger(__name__)

SUBMITTABLE_ROLES = {"user", "assistant"}


class CompletionClient(Protocol):
    async def complete(self, payload: dict[str, Any]) -> CompletionResult: ...


@dataclass
class ModelParams:
    """Optional sampling parameters passed through to the provider."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    repetition_penalty: Optional[float] = None
    stream: Optional[bool] = None


@dataclass
class SubmitResult:
    reply: str
    session_key: str
    history_size: int
    raw: Any
    path_used: str


@dataclass
class _Exchange:
    session_id: str
    user: Optional[UserIdentity]
    role: str
    content: str
    reply: str
    model: str
    path_used: str
    user_sent_at: str
    bot_replied_at: str


def _log_sink_failure(exc: BaseException) -> None:
    logger.warning("Failed to append chat transcript: %s", exc, exc_info=exc)


def build_generation_request(messages: list[Message], params: ModelParams, default_model: str) -> dict[str, Any]:
    return {
        "model": params.model or default_model,
        "messages": [dict(message) for message in messages],
        "temperature": params.temperature,
        "max_tokens": params.max_tokens,
        "top_p": params.top_p,
        "repetition_penalty": params.repetition_penalty,
        "stream": params.stream,
    }


class ConversationOrchestrator:
    """Appends turns to a session, asks the provider for a reply and logs the exchange.

    The user's turn is recorded before the provider is called and is kept when the
    call fails. Transcript writes run as detached tasks; their failures go to
    ``on_sink_error`` and never reach the caller.
    """

    def __init__(
        self,
        store: SessionStore,
        client: CompletionClient,
        sink: TranscriptSink,
        *,
        default_model: str,
        on_sink_error: Callable[[BaseException], None] = _log_sink_failure,
    ) -> None:
        self._store = store
        self._client = client
        self._sink = sink
        self._default_model = default_model
        self._on_sink_error = on_sink_error
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def store(self) -> SessionStore:
        return self._store

    async def submit(
        self,
        user: Optional[UserIdentity],
        session_id: str,
        content: Any,
        *,
        role: str = "user",
        system_prompt: Optional[str] = None,
        params: Optional[ModelParams] = None,
    ) -> SubmitResult:
        if not isinstance(content, str) or not content:
            raise ValidationError("content is required (string)")
        if role not in SUBMITTABLE_ROLES:
            raise ValidationError(f"role must be one of: {', '.join(sorted(SUBMITTABLE_ROLES))}")
        params = params or ModelParams()

        key = make_session_key(session_id, user)
        user_sent_at = utc_now_iso()
        async with self._store.lock(key):
            messages = self._store.get(key)
            if system_prompt and not any(message["role"] == "system" for message in messages):
                messages.insert(0, {"role": "system", "content": system_prompt})
            messages.append({"role": role, "content": content})  # type: ignore[typeddict-item]
            self._store.trim(key, keep_last=1)

            payload = build_generation_request(messages, params, self._default_model)
            result = await self._client.complete(payload)

            reply = extract_reply(result.data)
            if reply:
                messages.append({"role": "assistant", "content": reply})
                self._store.trim(key, keep_last=2)
            history_size = len(messages)

        self._schedule_transcript(
            _Exchange(
                session_id=session_id,
                user=user,
                role=role,
                content=content,
                reply=reply,
                model=payload["model"] or "",
                path_used=result.path_used or "",
                user_sent_at=user_sent_at,
                bot_replied_at=utc_now_iso(),
            )
        )
        return SubmitResult(
            reply=reply,
            session_key=key,
            history_size=history_size,
            raw=result.data,
            path_used=result.path_used,
        )

    def history(self, user: Optional[UserIdentity], session_id: str) -> tuple[str, list[Message]]:
        key = make_session_key(session_id, user)
        return key, [dict(message) for message in self._store.get(key)]  # type: ignore[misc]

    def clear(self, user: Optional[UserIdentity], session_id: str) -> tuple[str, bool]:
        key = make_session_key(session_id, user)
        return key, self._store.clear(key)

    def _schedule_transcript(self, exchange: _Exchange) -> None:
        task = asyncio.create_task(self._write_transcript(exchange))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_transcript(self, exchange: _Exchange) -> None:
        user = exchange.user or UserIdentity()
        entries = [
            TranscriptEntry(
                timestamp=exchange.user_sent_at,
                session_id=exchange.session_id,
                user_id=user.entry_id,
                role=exchange.role,
                content=exchange.content,
                model=exchange.model,
                path_used=exchange.path_used,
            ),
            TranscriptEntry(
                timestamp=exchange.bot_replied_at,
                session_id=exchange.session_id,
                user_id=user.entry_id,
                role="assistant",
                content=exchange.reply,
                model=exchange.model,
                path_used=exchange.path_used,
            ),
        ]
        pair = TranscriptPair(
            player_name=user.player_name if exchange.user else "",
            user_message=exchange.content,
            user_sent_at=exchange.user_sent_at,
            bot_reply=exchange.reply,
            bot_replied_at=exchange.bot_replied_at,
        )
        try:
            await self._sink.append_entries(entries)
            await self._sink.append_pair(pair)
        except Exception as exc:
            self._on_sink_error(exc)

    async def drain(self) -> None:
        """Wait for outstanding transcript writes."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
