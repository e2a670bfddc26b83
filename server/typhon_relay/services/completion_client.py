"""HTTP client for the Typhoon chat completion API."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

import httpx

from ..config import Settings, settings as default_settings
from ..errors import ConfigError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# Statuses that mean "wrong endpoint", so the next candidate path is tried.
_PATH_MISS_STATUSES = {404, 405}


@dataclass
class CompletionResult:
    data: Any
    path_used: str
    attempts: list[dict[str, Any]] = field(default_factory=list)


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(data: Any, status: int) -> str:
    if isinstance(data, Mapping):
        error = data.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        if isinstance(data.get("message"), str):
            return data["message"]
        if isinstance(data.get("detail"), str):
            return data["detail"]
    return f"Typhoon API responded with HTTP {status}"


class TyphonClient:
    """Async wrapper over an OpenAI-compatible completion endpoint.

    Chat requests are posted to each configured path in turn until one exists;
    the winning path and every attempt are returned for diagnostics.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        chat_paths: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        config = config or default_settings
        self._base_url = (base_url or config.aityphon_base_url or "").strip().rstrip("/")
        self._api_key = (api_key or config.aityphon_api_key or "").strip()
        self.model = model or config.aityphon_model
        self._chat_paths = tuple(chat_paths or config.aityphon_chat_paths) or ("/v1/chat/completions",)
        self._timeout = timeout or config.aityphon_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    def ping(self) -> dict[str, Any]:
        return {
            "hasBaseUrl": bool(self._base_url),
            "hasApiKey": bool(self._api_key),
            "model": self.model,
        }

    def _ensure_client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise ConfigError("AITYPHON_BASE_URL and AITYPHON_API_KEY must be set")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> httpx.Response:
        client = self._ensure_client()
        try:
            return await client.request(method.upper(), path, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error("Typhoon request %s %s failed: %s", method.upper(), path, exc)
            raise UpstreamError(502, f"Typhoon API unreachable: {exc}") from exc

    async def complete(self, payload: Mapping[str, Any]) -> CompletionResult:
        """Send a chat completion request.

        ``None`` values are dropped so unset sampling parameters never reach the
        provider. A missing model falls back to the configured default.
        """

        body = {key: value for key, value in payload.items() if value is not None}
        body.setdefault("model", self.model)
        attempts: list[dict[str, Any]] = []
        for path in self._chat_paths:
            response = await self._request("POST", path, json=body)
            attempts.append({"path": path, "status": response.status_code})
            if response.status_code in _PATH_MISS_STATUSES:
                logger.info("Typhoon path %s returned %s; trying next", path, response.status_code)
                continue
            data = _decode(response)
            if response.is_error:
                message = _error_message(data, response.status_code)
                logger.error("Typhoon chat completion failed (%s): %s", response.status_code, message)
                raise UpstreamError(response.status_code, message, data=data, attempts=attempts)
            return CompletionResult(data=data, path_used=path, attempts=attempts)

        raise UpstreamError(404, "No chat completion endpoint found", attempts=attempts)

    async def generate_text(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> CompletionResult:
        payload: dict[str, Any] = dict(options or {})
        payload["messages"] = [{"role": "user", "content": prompt}]
        return await self.complete(payload)

    async def proxy(
        self,
        method: str,
        path: str,
        data: Any = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Forward an arbitrary request and return the decoded body unchanged."""

        if not isinstance(path, str) or not path.startswith("/"):
            raise ValidationError('Path must start with "/"')
        response = await self._request(method or "POST", path, json=data, params=params)
        body = _decode(response)
        if response.is_error:
            raise UpstreamError(
                response.status_code,
                _error_message(body, response.status_code),
                data=body,
                attempts=[{"path": path, "status": response.status_code}],
            )
        return body

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
