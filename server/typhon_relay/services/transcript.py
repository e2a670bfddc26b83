"""Durable transcript backends for completed exchanges."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Sequence

from supabase import Client, create_client

from ..config import Settings
from ..errors import ConfigError, SinkError
from .sheets import SheetsGateway

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class TranscriptEntry:
    """One message of an exchange, one row in the entries log."""

    timestamp: str
    session_id: str
    user_id: str
    role: str
    content: str
    model: str
    path_used: str

    def as_row(self) -> list[str]:
        return [
            self.timestamp or utc_now_iso(),
            self.session_id,
            self.user_id,
            self.role,
            self.content,
            self.model,
            self.path_used,
        ]


@dataclass(slots=True)
class TranscriptPair:
    """A user message and the bot reply to it, one row in the pair log."""

    player_name: str
    user_message: str
    user_sent_at: str
    bot_reply: str
    bot_replied_at: str

    def as_row(self) -> list[str]:
        return [
            self.player_name,
            self.user_message,
            self.user_sent_at or utc_now_iso(),
            self.bot_reply,
            self.bot_replied_at or utc_now_iso(),
        ]


class TranscriptSink(Protocol):
    async def append_entries(self, entries: Sequence[TranscriptEntry]) -> dict[str, int]: ...

    async def append_pair(self, pair: Optional[TranscriptPair]) -> dict[str, int]: ...


class NullTranscriptSink:
    """Accepts and discards everything."""

    async def append_entries(self, entries: Sequence[TranscriptEntry]) -> dict[str, int]:
        return {"appended": 0}

    async def append_pair(self, pair: Optional[TranscriptPair]) -> dict[str, int]:
        return {"appended": 0}


class SheetsTranscriptSink:
    """Appends transcript rows to two tabs of a Google spreadsheet."""

    def __init__(self, gateway: SheetsGateway, *, entries_sheet: str, pairs_sheet: str) -> None:
        self._gateway = gateway
        self._entries_sheet = entries_sheet
        self._pairs_sheet = pairs_sheet
        self._lock = asyncio.Lock()

    async def _append(self, sheet: str, rows: list[list[str]]) -> None:
        def write() -> None:
            self._gateway.ensure_sheet(sheet)
            self._gateway.append_rows(sheet, rows)

        async with self._lock:
            try:
                await asyncio.to_thread(write)
            except Exception as exc:
                raise SinkError(f"Failed to append {len(rows)} row(s) to sheet {sheet!r}: {exc}") from exc

    async def append_entries(self, entries: Sequence[TranscriptEntry]) -> dict[str, int]:
        if not entries:
            return {"appended": 0}
        rows = [entry.as_row() for entry in entries]
        await self._append(self._entries_sheet, rows)
        return {"appended": len(rows)}

    async def append_pair(self, pair: Optional[TranscriptPair]) -> dict[str, int]:
        if pair is None:
            return {"appended": 0}
        await self._append(self._pairs_sheet, [pair.as_row()])
        return {"appended": 1}


class SupabaseTranscriptSink:
    """Inserts transcript rows into ``chat_entries`` and ``chat_pairs`` tables."""

    def __init__(
        self,
        *,
        url: Optional[str],
        service_role_key: Optional[str],
        client_factory: Optional[Callable[[], Client]] = None,
    ) -> None:
        self._url = url
        self._key = service_role_key
        self._client_factory = client_factory or (lambda: create_client(self._url, self._key))
        self._client: Client | None = None
        self._lock = asyncio.Lock()

    def _ensure_client(self) -> Client:
        if not (self._url and self._key):
            raise ConfigError("Supabase credentials missing; transcript backend disabled")
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def _insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(
                    lambda: self._ensure_client().table(table).insert(rows).execute()
                )
            except Exception as exc:
                raise SinkError(f"Supabase insert into {table} failed: {exc}") from exc

    async def append_entries(self, entries: Sequence[TranscriptEntry]) -> dict[str, int]:
        if not entries:
            return {"appended": 0}
        await self._insert("chat_entries", [asdict(entry) for entry in entries])
        return {"appended": len(entries)}

    async def append_pair(self, pair: Optional[TranscriptPair]) -> dict[str, int]:
        if pair is None:
            return {"appended": 0}
        await self._insert("chat_pairs", [asdict(pair)])
        return {"appended": 1}


def build_transcript_sink(config: Settings, gateway: Optional[SheetsGateway] = None) -> TranscriptSink:
    """Pick the transcript backend named by ``TRANSCRIPT_BACKEND``."""

    backend = config.transcript_backend
    if backend == "sheets":
        return SheetsTranscriptSink(
            gateway or SheetsGateway(config=config),
            entries_sheet=config.chat_sheet_name,
            pairs_sheet=config.chat_pair_sheet_name,
        )
    if backend == "supabase":
        return SupabaseTranscriptSink(
            url=config.supabase_url, service_role_key=config.supabase_service_role_key
        )
    if backend in {"none", "off", ""}:
        return NullTranscriptSink()
    raise ConfigError(f"Unknown TRANSCRIPT_BACKEND {backend!r}")
