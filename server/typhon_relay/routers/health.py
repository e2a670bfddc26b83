"""Liveness endpoints."""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/")
async def root() -> dict[str, str]:
    """Lightweight health endpoint for service discovery."""
    return {"service": "typhon-relay", "status": "ok"}


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sessions": len(request.app.state.orchestrator.store),
    }
