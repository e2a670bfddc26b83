"""PIN login endpoints."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from ..dependencies import get_auth_service, request_token, require_user
from ..models import schemas
from ..services.auth import AuthService, UserIdentity

router = APIRouter(tags=["auth"])


@router.post("/pin/login")
async def pin_login(
    payload: schemas.PinLoginRequest,
    auth: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    issued = await auth.login(payload.pin)
    expires_at = datetime.fromtimestamp(issued.expires_at, tz=timezone.utc)
    return {
        "success": True,
        "token": issued.token,
        "user": issued.user.as_dict(),
        "expiresAt": expires_at.isoformat(),
    }


@router.get("/me")
async def me(user: UserIdentity = Depends(require_user)) -> Dict[str, Any]:
    return {"success": True, "user": user.as_dict()}


@router.post("/logout")
async def logout(
    token: Optional[str] = Depends(request_token),
    auth: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    return {"success": True, "revoked": auth.logout(token)}
