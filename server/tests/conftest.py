from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

import httpx
import pytest

from typhon_relay.config import Settings
from typhon_relay.errors import SinkError
from typhon_relay.services.completion_client import TyphonClient
from typhon_relay.services.transcript import TranscriptEntry, TranscriptPair


class RecordingSink:
    """Transcript sink double that keeps rows in memory or fails on demand."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.entries: list[TranscriptEntry] = []
        self.pairs: list[TranscriptPair] = []

    async def append_entries(self, entries: Sequence[TranscriptEntry]) -> dict[str, int]:
        if self.fail:
            raise SinkError("sheet unavailable")
        self.entries.extend(entries)
        return {"appended": len(entries)}

    async def append_pair(self, pair: Optional[TranscriptPair]) -> dict[str, int]:
        if self.fail:
            raise SinkError("sheet unavailable")
        if pair is None:
            return {"appended": 0}
        self.pairs.append(pair)
        return {"appended": 1}


class FakeRows:
    def __init__(self, rows: list[list[Any]]) -> None:
        self.rows = rows
        self.reads: list[str] = []

    def read_rows(self, range_: str) -> list[list[Any]]:
        self.reads.append(range_)
        return self.rows


def chat_response(content: str) -> dict[str, Any]:
    return {"id": "cmpl-1", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        aityphon_base_url="https://typhoon.test",
        aityphon_api_key="test-key",
        aityphon_model="typhoon-test",
        aityphon_chat_paths=("/v1/chat/completions",),
        transcript_backend="none",
        env_file=str(tmp_path / ".env"),
    )


@pytest.fixture
def make_client(test_settings) -> Callable[[Callable[[httpx.Request], httpx.Response]], TyphonClient]:
    def factory(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> TyphonClient:
        return TyphonClient(config=test_settings, transport=httpx.MockTransport(handler), **kwargs)

    return factory
