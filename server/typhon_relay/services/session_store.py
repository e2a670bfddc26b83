"""Process-lifetime conversation history keyed by session and user."""
from __future__ import annotations

import asyncio
import logging
from typing import Literal, Optional, TypedDict

from .auth import UserIdentity

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]


class Message(TypedDict):
    role: Role
    content: str


def user_key(user: Optional[UserIdentity]) -> str:
    """Resolve the identity component of a session key.

    Priority: name, then id, then ``PIN-<pin>``, then ``anonymous``.
    """

    if user is None:
        return "anonymous"
    if user.name:
        return str(user.name)
    if user.id:
        return str(user.id)
    if user.pin:
        return f"PIN-{user.pin}"
    return "anonymous"


def make_session_key(session_id: str, user: Optional[UserIdentity]) -> str:
    return f"{session_id}::{user_key(user)}"


class SessionStore:
    """In-memory mapping from session key to an ordered message list.

    Lists are created on first access and handed out by reference, so callers
    mutate history in place. ``lock`` returns a per-key lock that serializes the
    read-append-call-append sequence of a single session.
    """

    def __init__(self, max_messages: int = 0) -> None:
        self._sessions: dict[str, list[Message]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._max_messages = max(0, max_messages)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def keys(self) -> list[str]:
        return list(self._sessions)

    def get(self, key: str) -> list[Message]:
        messages = self._sessions.get(key)
        if messages is None:
            messages = self._sessions[key] = []
        return messages

    def clear(self, key: str) -> bool:
        # The key's lock outlives its history; a submit may be queued on it.
        return self._sessions.pop(key, None) is not None

    def lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def trim(self, key: str, keep_last: int = 1) -> int:
        """Drop the oldest conversation turns beyond ``max_messages``.

        The leading system message and the newest ``keep_last`` messages are
        never dropped, so the bound is soft when it is smaller than those.
        After trimming, history never opens with an assistant message.
        Returns the number of messages removed.
        """

        if not self._max_messages:
            return 0
        messages = self.get(key)
        start = 1 if messages and messages[0]["role"] == "system" else 0
        protected_from = max(start, len(messages) - max(keep_last, 0))
        end = start
        while len(messages) - (end - start) > self._max_messages and end < protected_from:
            end += 1
        # Drop whole turns: an orphaned assistant reply goes with its question.
        while end < protected_from and messages[end]["role"] == "assistant":
            end += 1
        removed = end - start
        if removed:
            del messages[start:end]
            logger.info("Trimmed %d message(s) from session %s", removed, key)
        return removed

    def close(self) -> None:
        logger.info("Discarding %d in-memory session(s)", len(self._sessions))
        self._sessions.clear()
        self._locks.clear()
