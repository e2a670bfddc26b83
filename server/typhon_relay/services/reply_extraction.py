"""Best-effort assistant text extraction from provider payloads."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional

Extractor = Callable[[Any], Optional[str]]


def from_chat_choices(response: Any) -> Optional[str]:
    """OpenAI-compatible ``choices[0].message.content``."""

    if not isinstance(response, Mapping):
        return None
    choices = response.get("choices")
    if isinstance(choices, Sequence) and not isinstance(choices, (str, bytes)) and choices:
        first = choices[0]
        message = first.get("message") if isinstance(first, Mapping) else None
        if isinstance(message, Mapping) and isinstance(message.get("content"), str):
            return message["content"]
    return None


def top_level_text(field: str) -> Extractor:
    def extract(response: Any) -> Optional[str]:
        if isinstance(response, Mapping) and isinstance(response.get(field), str):
            return response[field]
        return None

    extract.__name__ = f"top_level_{field}"
    return extract


DEFAULT_EXTRACTORS: tuple[Extractor, ...] = (
    from_chat_choices,
    top_level_text("output_text"),
    top_level_text("text"),
)


def extract_reply(response: Any, extractors: Sequence[Extractor] = DEFAULT_EXTRACTORS) -> str:
    """Return the first text any extractor finds, or an empty string."""

    for extractor in extractors:
        text = extractor(response)
        if text is not None:
            return text
    return ""
