"""Shared fixtures: a fake REST API, a fake gateway connection and a settable clock."""

import asyncio
import json

import httpx
import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from qqgate import QQClient, QQGateConfig, TokenCache

GATEWAY_URL = "wss://gateway.example/websocket"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeApi:
    """httpx.MockTransport handler standing in for the bot REST API."""

    def __init__(self) -> None:
        self.routes: dict[str, object] = {
            "/app/getAppAccessToken": (200, {"access_token": "tok-1", "expires_in": "7200"}),
            "/gateway": (200, {"url": GATEWAY_URL}),
            "/users/@me": (200, {"id": "bot", "username": "qqgate"}),
        }
        self.requests: list[httpx.Request] = []
        self.token_delay = 0.0

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/app/getAppAccessToken" and self.token_delay:
            await asyncio.sleep(self.token_delay)

        route = self.routes.get(path)
        if route is None and path.startswith("/channels/"):
            route = (200, {"id": "sent-1"})
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(route, Exception):
            raise route

        status, body = route
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


class FakeConnection:
    """In-memory gateway connection with the ClientConnection surface the session uses."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.fail_send = False
        self.closed = False

    async def __aenter__(self) -> "FakeConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

    async def send(self, message: str) -> None:
        if self.fail_send:
            raise ConnectionClosedError(None, None)
        self.sent.append(json.loads(message))

    async def recv(self) -> str | bytes:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    def feed(self, frame: dict | str | bytes) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self.incoming.put_nowait(frame)

    def close_ok(self) -> None:
        self.incoming.put_nowait(
            ConnectionClosedOK(Close(1000, "bye"), Close(1000, "bye"), rcvd_then_sent=True)
        )

    def close_error(self) -> None:
        self.incoming.put_nowait(ConnectionClosedError(None, None))

    def sent_ops(self, op: int) -> list[dict]:
        return [frame for frame in self.sent if frame["op"] == op]


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def config() -> QQGateConfig:
    return QQGateConfig(app_id="app-1", app_secret="secret-1")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
async def http(api):
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        yield client


@pytest.fixture
def tokens(http, config, clock) -> TokenCache:
    return TokenCache(http, config, clock=clock)


@pytest.fixture
def client(http, config, tokens) -> QQClient:
    return QQClient(http, config, tokens=tokens)


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()
