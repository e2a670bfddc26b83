"""Explicit transcript logging for frontends that talk to the model directly."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from ..dependencies import get_transcript_sink, optional_user
from ..errors import ValidationError
from ..models import schemas
from ..services.auth import UserIdentity
from ..services.transcript import TranscriptPair, TranscriptSink, utc_now_iso

router = APIRouter(tags=["chat-log"])


@router.post("/log")
async def log_chat_pair(
    payload: schemas.ChatLogRequest,
    user: Optional[UserIdentity] = Depends(optional_user),
    sink: TranscriptSink = Depends(get_transcript_sink),
) -> Dict[str, Any]:
    """Append one user/bot pair. Unlike session logging, failures are reported."""

    if not payload.user_message:
        raise ValidationError("userMessage is required (string)")
    if not payload.bot_reply:
        raise ValidationError("botReply is required (string)")

    player_name = payload.player_name or (user.player_name if user else "")
    result = await sink.append_pair(
        TranscriptPair(
            player_name=player_name,
            user_message=payload.user_message,
            user_sent_at=payload.user_sent_at or utc_now_iso(),
            bot_reply=payload.bot_reply,
            bot_replied_at=payload.bot_replied_at or utc_now_iso(),
        )
    )
    return {"success": True, "appended": result["appended"]}
