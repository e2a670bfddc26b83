"""Configuration helpers for the relay service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


_SERVER_DIR = Path(__file__).resolve().parent.parent


def _csv(value: Optional[str]) -> tuple[str, ...]:
    return tuple(part.strip() for part in (value or "").split(",") if part.strip())


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Values are read once when the module is imported. Facebook credentials are the
    exception: they can be rotated at runtime, so the Graph API service re-reads them
    from the process environment on every call.
    """

    aityphon_base_url: Optional[str] = os.getenv("AITYPHON_BASE_URL")
    aityphon_api_key: Optional[str] = os.getenv("AITYPHON_API_KEY")
    aityphon_model: str = os.getenv("AITYPHON_MODEL", "typhoon-v2.5-30b-a3b-instruct")
    aityphon_timeout: float = float(os.getenv("AITYPHON_TIMEOUT", "60"))
    aityphon_chat_paths: tuple[str, ...] = _csv(
        os.getenv("AITYPHON_CHAT_PATHS", "/v1/chat/completions,/chat/completions")
    )

    # Spreadsheet-backed transcript log and PIN directory
    google_spreadsheet_id: Optional[str] = os.getenv("GOOGLE_SPREADSHEET_ID")
    google_service_account_file: Optional[str] = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE")
    chat_sheet_name: str = os.getenv("CHAT_SHEET_NAME", "Chats")
    chat_pair_sheet_name: str = os.getenv("CHAT_SHEET3_NAME", "Sheet3")
    users_sheet_name: str = os.getenv("USERS_SHEET_NAME", "Users")

    transcript_backend: str = os.getenv("TRANSCRIPT_BACKEND", "sheets").strip().lower()
    supabase_url: Optional[str] = os.getenv("SUPABASE_URL")
    supabase_service_role_key: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    session_max_messages: int = int(os.getenv("SESSION_MAX_MESSAGES", "200"))
    auth_token_ttl_seconds: int = int(os.getenv("AUTH_TOKEN_TTL_SECONDS", "43200"))
    allow_origins: tuple[str, ...] = _csv(os.getenv("ALLOW_ORIGINS"))

    # File rewritten by PATCH /facebook/token
    env_file: str = os.getenv("RELAY_ENV_FILE", str(_SERVER_DIR / ".env"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    port: int = int(os.getenv("PORT", "3000"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
