"""Typhoon completion endpoints: session chat, passthrough chat and raw proxy."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..dependencies import get_completion_client, get_orchestrator, require_user
from ..errors import ValidationError
from ..models import schemas
from ..services.auth import UserIdentity
from ..services.completion_client import TyphonClient
from ..services.orchestration import ConversationOrchestrator, ModelParams
from ..services.reply_extraction import extract_reply

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai-typhon"])


@router.get("/ping")
async def ping(client: TyphonClient = Depends(get_completion_client)) -> JSONResponse:
    """Report whether the provider is configured."""

    info = client.ping()
    if not client.configured:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Missing Typhon config",
                "info": info,
                "requiredEnv": ["AITYPHON_BASE_URL", "AITYPHON_API_KEY"],
            },
        )
    return JSONResponse(content={"success": True, "message": "Typhon config ready", "info": info})


@router.post("/generate")
async def generate(
    payload: schemas.GenerateRequest,
    client: TyphonClient = Depends(get_completion_client),
) -> Dict[str, Any]:
    if not payload.prompt:
        raise ValidationError("Missing prompt")
    result = await client.generate_text(payload.prompt, payload.options)
    return {
        "success": True,
        "pathUsed": result.path_used,
        "reply": extract_reply(result.data),
        "result": result.data,
    }


@router.post("/chat")
async def chat(
    payload: Optional[Dict[str, Any]] = Body(default=None),
    client: TyphonClient = Depends(get_completion_client),
) -> Dict[str, Any]:
    """Forward a chat completion payload as-is, without session history."""

    payload = payload or {}
    if not isinstance(payload.get("messages"), list) and not payload.get("prompt"):
        raise ValidationError("Body must include messages[] or prompt")
    result = await client.complete(payload)
    return {"success": True, "pathUsed": result.path_used, "result": result.data}


@router.post("/proxy")
async def proxy(
    payload: schemas.ProxyRequest,
    client: TyphonClient = Depends(get_completion_client),
) -> Dict[str, Any]:
    result = await client.proxy(payload.method, payload.path, payload.data, payload.params)
    return {"success": True, "result": result}


@router.get("/proxy")
async def proxy_usage(client: TyphonClient = Depends(get_completion_client)) -> JSONResponse:
    return JSONResponse(
        status_code=405,
        content={
            "success": False,
            "message": "Use POST /ai-typhon/proxy with JSON body",
            "howTo": "Send method, path, data, params in JSON body",
            "example": {
                "method": "POST",
                "path": "/v1/chat/completions",
                "data": {
                    "model": client.model,
                    "messages": [{"role": "user", "content": "Say hello in Thai"}],
                },
            },
        },
    )


@router.post("/session/{session_id}/message", response_model=schemas.SessionMessageResponse)
async def post_session_message(
    session_id: str,
    payload: schemas.SessionMessageRequest,
    user: UserIdentity = Depends(require_user),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> schemas.SessionMessageResponse:
    """Append a message to the caller's session and return the assistant reply."""

    result = await orchestrator.submit(
        user,
        session_id,
        payload.content,
        role=payload.role,
        system_prompt=payload.system,
        params=ModelParams(
            model=payload.model,
            temperature=payload.temperature,
            max_tokens=payload.max_tokens,
            top_p=payload.top_p,
            repetition_penalty=payload.repetition_penalty,
            stream=payload.stream,
        ),
    )
    return schemas.SessionMessageResponse(
        session_id=session_id,
        session_key=result.session_key,
        path_used=result.path_used,
        reply=result.reply,
        history_size=result.history_size,
        raw=result.raw,
    )


@router.get("/session/{session_id}/history", response_model=schemas.SessionHistoryResponse)
async def get_session_history(
    session_id: str,
    user: UserIdentity = Depends(require_user),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> schemas.SessionHistoryResponse:
    session_key, messages = orchestrator.history(user, session_id)
    return schemas.SessionHistoryResponse(
        session_id=session_id,
        session_key=session_key,
        messages=[schemas.ChatMessage(**message) for message in messages],
    )


@router.delete("/session/{session_id}", response_model=schemas.SessionClearedResponse)
async def clear_session(
    session_id: str,
    user: UserIdentity = Depends(require_user),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> schemas.SessionClearedResponse:
    session_key, existed = orchestrator.clear(user, session_id)
    logger.info("Cleared session %s (existed=%s)", session_key, existed)
    return schemas.SessionClearedResponse(session_id=session_id, session_key=session_key, cleared=existed)
