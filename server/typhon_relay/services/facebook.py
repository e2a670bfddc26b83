"""Facebook Graph API page publishing."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

import httpx
from dotenv import set_key

from ..errors import ConfigError, GraphAPIError

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"
DEFAULT_GRAPH_VERSION = "v19.0"


@dataclass
class GraphConfig:
    page_id: str
    access_token: str
    graph_version: str


def mask_token(token: Optional[str]) -> str:
    if not token:
        return ""
    if len(token) <= 8:
        return "********"
    return f"{token[:4]}...{token[-4:]}"


def current_graph_config(require: bool = True) -> GraphConfig:
    """Read page credentials from the process environment at call time."""

    config = GraphConfig(
        page_id=os.getenv("FACEBOOK_PAGE_ID", "").strip(),
        access_token=os.getenv("FACEBOOK_ACCESS_TOKEN", "").strip(),
        graph_version=os.getenv("FACEBOOK_GRAPH_VERSION", DEFAULT_GRAPH_VERSION).strip() or DEFAULT_GRAPH_VERSION,
    )
    if require:
        if not config.page_id:
            raise ConfigError("FACEBOOK_PAGE_ID is not set")
        if not config.access_token:
            raise ConfigError("FACEBOOK_ACCESS_TOKEN is not set")
    return config


class FacebookService:
    """Posts to a page feed and checks that page credentials work."""

    def __init__(
        self,
        *,
        env_file: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: str = GRAPH_BASE_URL,
    ) -> None:
        self._env_file = env_file
        self._transport = transport
        self._base_url = base_url.rstrip("/")

    def _page_url(self, config: GraphConfig, edge: str = "") -> str:
        url = f"{self._base_url}/{config.graph_version}/{quote(config.page_id, safe='')}"
        return f"{url}/{edge}" if edge else url

    async def post_to_page_feed(self, message: str, link: Optional[str] = None) -> dict[str, Any]:
        config = current_graph_config()
        url = self._page_url(config, "feed")
        params = {"message": message, "access_token": config.access_token}
        if link:
            params["link"] = link
        async with httpx.AsyncClient(timeout=20.0, transport=self._transport) as client:
            try:
                resp = await client.post(url, params=params)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise self._graph_error(exc.response, url, config) from exc
            except httpx.HTTPError as exc:
                raise GraphAPIError(
                    500,
                    f"Facebook Graph API error (n/a): {exc}",
                    {"requestUrl": url, "graphVersion": config.graph_version},
                ) from exc
        data = resp.json()
        logger.info("Published post %s to page %s", data.get("id"), config.page_id)
        return data

    @staticmethod
    def _graph_error(response: httpx.Response, url: str, config: GraphConfig) -> GraphAPIError:
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text
        error = data.get("error", {}) if isinstance(data, dict) else {}
        message = error.get("message") or response.reason_phrase
        return GraphAPIError(
            response.status_code,
            f"Facebook Graph API error ({response.status_code}): {message}",
            {
                "code": error.get("code"),
                "type": error.get("type"),
                "fbtrace_id": error.get("fbtrace_id"),
                "data": data,
                "requestUrl": url,
                "graphVersion": config.graph_version,
            },
        )

    async def verify_page_access(
        self,
        *,
        page_id: Optional[str] = None,
        access_token: Optional[str] = None,
        graph_version: Optional[str] = None,
    ) -> dict[str, Any]:
        """Fetch the page's id and name; overrides are used without persisting them."""

        base = current_graph_config(require=not (page_id and access_token))
        config = GraphConfig(
            page_id=(page_id or base.page_id).strip(),
            access_token=(access_token or base.access_token).strip(),
            graph_version=(graph_version or base.graph_version).strip(),
        )
        url = self._page_url(config)
        params = {"access_token": config.access_token, "fields": "id,name"}
        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            try:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                try:
                    data = exc.response.json()
                except ValueError:
                    data = {}
                error = data.get("error") if isinstance(data, dict) else None
                return {
                    "ok": False,
                    "status": exc.response.status_code,
                    "error": error or {"message": str(exc)},
                    "requestUrl": url,
                    "graphVersion": config.graph_version,
                }
            except httpx.HTTPError as exc:
                return {
                    "ok": False,
                    "status": None,
                    "error": {"message": str(exc)},
                    "requestUrl": url,
                    "graphVersion": config.graph_version,
                }
        return {
            "ok": True,
            "data": resp.json(),
            "graphVersion": config.graph_version,
            "used": {"pageId": config.page_id, "graphVersion": config.graph_version},
        }

    def update_credentials(
        self,
        *,
        page_id: Optional[str] = None,
        access_token: Optional[str] = None,
        graph_version: Optional[str] = None,
    ) -> GraphConfig:
        """Persist new credentials to the env file and apply them to this process."""

        updates = {
            "FACEBOOK_PAGE_ID": page_id,
            "FACEBOOK_ACCESS_TOKEN": access_token,
            "FACEBOOK_GRAPH_VERSION": graph_version,
        }
        env_path = Path(self._env_file) if self._env_file else Path.cwd() / ".env"
        env_path.touch(exist_ok=True)
        for key, value in updates.items():
            if value is None:
                continue
            normalized = str(value).replace("\n", "\\n")
            set_key(str(env_path), key, normalized, quote_mode="never")
            os.environ[key] = normalized
        logger.info("Updated Facebook credentials in %s", env_path)
        return current_graph_config(require=False)
