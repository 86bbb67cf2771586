import json

import httpx
import pytest

from conftest import GATEWAY_URL
from qqgate import (
    AuthError,
    Credential,
    GatewayConnectionError,
    ProtocolError,
    QQClient,
    QQGateConfig,
    TokenCache,
)


async def test_resolve_endpoint_returns_url(client, api):
    assert await client.resolve_endpoint() == GATEWAY_URL

    request = api.calls("/gateway")[0]
    assert request.method == "GET"
    assert request.headers["Authorization"] == "QQBot tok-1"


@pytest.mark.parametrize(
    "route",
    [
        (200, {"shards": 1}),
        (200, {"url": 42}),
        (200, "<html>"),
        (500, {"message": "internal"}),
    ],
)
async def test_resolve_endpoint_protocol_errors(client, api, route):
    api.routes["/gateway"] = route

    with pytest.raises(ProtocolError):
        await client.resolve_endpoint()


@pytest.mark.parametrize("status", [401, 403])
async def test_resolve_endpoint_rejected(client, api, status):
    api.routes["/gateway"] = (status, {"message": "unauthorized"})

    with pytest.raises(AuthError):
        await client.resolve_endpoint()


async def test_resolve_endpoint_transport_failure(client, api):
    api.routes["/gateway"] = httpx.ConnectError("connection refused")

    with pytest.raises(GatewayConnectionError):
        await client.resolve_endpoint()


async def test_resolve_endpoint_propagates_token_failure(client, api):
    api.routes["/app/getAppAccessToken"] = (500, {"message": "internal"})

    with pytest.raises(AuthError):
        await client.resolve_endpoint()
    assert api.calls("/gateway") == []


async def test_send_posts_content(client, api):
    await client.send("hello", "c1")

    request = api.calls("/channels/c1/messages")[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "QQBot tok-1"
    assert json.loads(request.content) == {"content": "hello"}


async def test_send_failure_carries_status(client, api):
    api.routes["/channels/c1/messages"] = (400, {"message": "bad request"})

    with pytest.raises(ProtocolError, match="400"):
        await client.send("hello", "c1")


async def test_health_check_ok(client):
    assert await client.health_check() is True


@pytest.mark.parametrize(
    "path, route",
    [
        ("/users/@me", (500, {"message": "internal"})),
        ("/users/@me", (401, {"message": "unauthorized"})),
        ("/users/@me", httpx.ReadTimeout("timed out")),
        ("/app/getAppAccessToken", (500, {"message": "internal"})),
        ("/app/getAppAccessToken", httpx.ConnectError("connection refused")),
    ],
)
async def test_health_check_never_raises(client, api, path, route):
    api.routes[path] = route

    assert await client.health_check() is False


async def test_invalid_api_base_fails_health_check(http, clock):
    config = QQGateConfig(app_id="app-1", app_secret="secret-1", api_base="https://api\x00.example")
    tokens = TokenCache(http, config, clock=clock)
    tokens.credential = Credential(token="tok-1", expires_at=clock.now + 3600)
    client = QQClient(http, config, tokens=tokens)

    with pytest.raises(GatewayConnectionError):
        await client.resolve_endpoint()
    assert await client.health_check() is False


async def test_invalid_api_base_without_token_fails_health_check(http, clock):
    config = QQGateConfig(app_id="app-1", app_secret="secret-1", api_base="https://api\x00.example")
    client = QQClient(http, config, tokens=TokenCache(http, config, clock=clock))

    assert await client.health_check() is False


async def test_requests_share_cached_token(client, api):
    await client.resolve_endpoint()
    await client.health_check()
    await client.send("hi", "c1")

    assert len(api.calls("/app/getAppAccessToken")) == 1
