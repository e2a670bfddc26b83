"""Facebook page publishing endpoints."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from ..dependencies import get_facebook, require_user
from ..errors import ValidationError
from ..models import schemas
from ..services.facebook import FacebookService, current_graph_config, mask_token

router = APIRouter(tags=["facebook"], dependencies=[Depends(require_user)])


def _verify_response(result: Dict[str, Any], override: bool) -> JSONResponse:
    if not result["ok"]:
        error = result.get("error") or {}
        return JSONResponse(
            status_code=result.get("status") or 500,
            content={"success": False, "error": error.get("message") or "verify failed", "details": result},
        )
    return JSONResponse(
        content={
            "success": True,
            "data": result["data"],
            "graphVersion": result["graphVersion"],
            "used": result.get("used"),
            "override": override,
        }
    )


@router.post("/post")
async def post_to_feed(
    payload: schemas.FacebookPostRequest,
    facebook: FacebookService = Depends(get_facebook),
) -> Dict[str, Any]:
    message = (payload.message or "").strip()
    if not message:
        raise ValidationError("message is required")
    result = await facebook.post_to_page_feed(message, payload.link)
    return {"success": True, "result": result}


@router.get("/token")
async def get_token() -> Dict[str, Any]:
    config = current_graph_config(require=False)
    return {
        "success": True,
        "pageId": config.page_id,
        "accessTokenMasked": mask_token(config.access_token),
        "graphVersion": config.graph_version,
    }


@router.patch("/token")
async def update_token(
    payload: schemas.FacebookCredentials,
    facebook: FacebookService = Depends(get_facebook),
) -> Dict[str, Any]:
    if not payload.page_id and not payload.access_token:
        raise ValidationError("Nothing to update")
    config = facebook.update_credentials(
        page_id=payload.page_id,
        access_token=payload.access_token,
        graph_version=payload.graph_version,
    )
    return {
        "success": True,
        "pageId": config.page_id,
        "graphVersion": config.graph_version,
        "accessTokenMasked": mask_token(config.access_token),
    }


@router.get("/verify")
async def verify_with_query(
    page_id: Optional[str] = Query(default=None, alias="pageId"),
    access_token: Optional[str] = Query(default=None, alias="accessToken"),
    graph_version: Optional[str] = Query(default=None, alias="graphVersion"),
    facebook: FacebookService = Depends(get_facebook),
) -> JSONResponse:
    result = await facebook.verify_page_access(
        page_id=page_id, access_token=access_token, graph_version=graph_version
    )
    return _verify_response(result, override=bool(page_id or access_token or graph_version))


@router.post("/verify")
async def verify_with_body(
    payload: Optional[schemas.FacebookCredentials] = Body(default=None),
    facebook: FacebookService = Depends(get_facebook),
) -> JSONResponse:
    payload = payload or schemas.FacebookCredentials()
    result = await facebook.verify_page_access(
        page_id=payload.page_id,
        access_token=payload.access_token,
        graph_version=payload.graph_version,
    )
    return _verify_response(result, override=True)
