from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import chat_response
from typhon_relay.config import Settings
from typhon_relay.errors import ConfigError, UpstreamError, ValidationError
from typhon_relay.services.completion_client import TyphonClient


def _run(coro):  # noqa: ANN001
    return asyncio.run(coro)


def test_complete_drops_unset_fields_and_fills_model(make_client):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=chat_response("hello"))

    client = make_client(handler)
    result = _run(client.complete({"model": None, "messages": [{"role": "user", "content": "hi"}], "top_p": None}))

    body = json.loads(seen[0].content)
    assert body == {"messages": [{"role": "user", "content": "hi"}], "model": "typhoon-test"}
    assert seen[0].headers["Authorization"] == "Bearer test-key"
    assert result.path_used == "/v1/chat/completions"
    assert result.data["choices"][0]["message"]["content"] == "hello"


def test_complete_falls_through_missing_paths(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/chat/completions":
            return httpx.Response(404, json={"detail": "Not Found"})
        return httpx.Response(200, json={"output_text": "fallback"})

    client = make_client(handler, chat_paths=["/v1/chat/completions", "/chat/completions"])
    result = _run(client.complete({"messages": []}))

    assert result.path_used == "/chat/completions"
    assert result.attempts == [
        {"path": "/v1/chat/completions", "status": 404},
        {"path": "/chat/completions", "status": 200},
    ]


def test_complete_raises_upstream_error_with_body(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "rate limited", "type": "rate_limit"}})

    client = make_client(handler)
    with pytest.raises(UpstreamError) as excinfo:
        _run(client.complete({"messages": []}))

    error = excinfo.value
    assert error.status_code == 429
    assert error.message == "rate limited"
    assert error.data["error"]["type"] == "rate_limit"
    assert error.attempts == [{"path": "/v1/chat/completions", "status": 429}]


def test_complete_reports_when_no_path_exists(make_client):
    client = make_client(lambda request: httpx.Response(405))
    with pytest.raises(UpstreamError) as excinfo:
        _run(client.complete({"messages": []}))
    assert excinfo.value.status_code == 404


def test_transport_failure_maps_to_bad_gateway(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(UpstreamError) as excinfo:
        _run(client.complete({"messages": []}))
    assert excinfo.value.status_code == 502


def test_missing_configuration_is_reported():
    client = TyphonClient(config=Settings(aityphon_base_url=None, aityphon_api_key=None))
    assert client.configured is False
    assert client.ping()["hasApiKey"] is False
    with pytest.raises(ConfigError):
        _run(client.complete({"messages": []}))


def test_proxy_passes_request_through(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/v1/models"
        assert request.url.params["limit"] == "5"
        return httpx.Response(200, json={"data": [{"id": "typhoon-test"}]})

    client = make_client(handler)
    result = _run(client.proxy("get", "/v1/models", params={"limit": 5}))
    assert result == {"data": [{"id": "typhoon-test"}]}


def test_proxy_rejects_relative_path(make_client):
    client = make_client(lambda request: httpx.Response(200))
    with pytest.raises(ValidationError):
        _run(client.proxy("POST", "v1/models"))


def test_generate_text_wraps_prompt(make_client):
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"text": "poem"})

    client = make_client(handler)
    result = _run(client.generate_text("Write a poem", {"temperature": 0.5}))

    assert seen[0]["messages"] == [{"role": "user", "content": "Write a poem"}]
    assert seen[0]["temperature"] == 0.5
    assert result.data == {"text": "poem"}
