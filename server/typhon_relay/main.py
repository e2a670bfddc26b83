"""FastAPI application entrypoint for the Typhoon relay."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings as default_settings
from .errors import GraphAPIError, RelayError, UpstreamError
from .routers import ai_typhon, auth, chat_log, facebook, health
from .services.auth import AuthService, PinDirectory, TokenStore
from .services.completion_client import TyphonClient
from .services.facebook import FacebookService
from .services.orchestration import ConversationOrchestrator
from .services.session_store import SessionStore
from .services.sheets import SheetsGateway
from .services.transcript import TranscriptSink, build_transcript_sink

logging.basicConfig(level=default_settings.log_level)
logger = logging.getLogger(__name__)


def _error_body(exc: RelayError) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": exc.message}
    if isinstance(exc, UpstreamError):
        body["upstream"] = exc.data
        body["attempts"] = exc.attempts
    if isinstance(exc, GraphAPIError):
        body["details"] = exc.details
    return body


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


def jsonable_errors(errors: list[Any]) -> list[dict[str, Any]]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in errors
    ]


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message, "details": jsonable_errors(errors)},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Typhoon relay starting (model=%s)", app.state.completion_client.model)
    yield
    await app.state.orchestrator.drain()
    await app.state.completion_client.aclose()
    app.state.orchestrator.store.close()
    logger.info("Typhoon relay stopped")


def create_app(
    *,
    config: Optional[Settings] = None,
    completion_client: Optional[TyphonClient] = None,
    transcript_sink: Optional[TranscriptSink] = None,
    auth_service: Optional[AuthService] = None,
    facebook_service: Optional[FacebookService] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """Instantiate and configure the FastAPI application.

    Collaborators default to the environment-configured implementations; tests pass
    fakes instead.
    """

    config = config or default_settings
    application = FastAPI(
        title="Typhoon Relay",
        description="Session-aware relay between a chat frontend and the Typhoon completion API.",
        version="0.1.0",
        lifespan=lifespan,
    )

    gateway = SheetsGateway(config=config)
    client = completion_client or TyphonClient(config=config)
    sink = transcript_sink or build_transcript_sink(config, gateway)
    store = session_store if session_store is not None else SessionStore(max_messages=config.session_max_messages)

    application.state.settings = config
    application.state.completion_client = client
    application.state.transcript_sink = sink
    application.state.orchestrator = ConversationOrchestrator(
        store, client, sink, default_model=client.model
    )
    application.state.auth = auth_service or AuthService(
        PinDirectory(gateway, config.users_sheet_name),
        TokenStore(ttl_seconds=config.auth_token_ttl_seconds),
    )
    application.state.facebook = facebook_service or FacebookService(env_file=config.env_file)

    # No configured origins means development mode: allow every origin.
    origins = list(config.allow_origins) or ["*"]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "x-auth-token"],
    )
    application.add_exception_handler(RelayError, relay_error_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)

    application.include_router(health.router)
    application.include_router(ai_typhon.router, prefix="/ai-typhon")
    application.include_router(auth.router, prefix="/auth")
    application.include_router(chat_log.router, prefix="/chat")
    application.include_router(facebook.router, prefix="/facebook")

    # Aliases used by the web frontend.
    application.include_router(ai_typhon.router, prefix="/api/chat/ai-typhon")
    application.include_router(auth.router, prefix="/api/login/auth")
    application.include_router(chat_log.router, prefix="/api/chat")
    application.include_router(facebook.router, prefix="/api/facebook")

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)
