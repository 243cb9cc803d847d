from __future__ import annotations

import json
from typing import Any

import pytest
import pytest_asyncio
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator

from accounts.services import issue_token
from core.hub import RealtimeHub
from messaging.routing import websocket_urlpatterns


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeSocket:
    """Stands in for a consumer wherever the hub only needs the socket surface."""

    def __init__(self, state: str = "open") -> None:
        self.state = state
        self.sent: list[dict[str, Any]] = []
        self.closed_with: tuple[int, str] | None = None

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    async def send(self, text_data: str | None = None, bytes_data: bytes | None = None) -> None:
        self.sent.append(json.loads(text_data))

    async def send_frame(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)

    async def terminate(self, code: int, reason: str = "") -> None:
        self.state = "closing"
        self.closed_with = (code, reason)

    def types(self) -> list[str]:
        return [frame["type"] for frame in self.sent]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def hub(clock: FakeClock):
    hub = RealtimeHub(clock=clock)
    yield hub
    await hub.stop()


@pytest.fixture
def make_socket():
    return FakeSocket


@pytest.fixture
def token():
    return lambda user_id: issue_token(user_id)


@pytest_asyncio.fixture
async def connect(hub: RealtimeHub, token):
    """Opens a communicator against an isolated hub and collects it for cleanup."""

    application = URLRouter(websocket_urlpatterns(hub))
    opened: list[WebsocketCommunicator] = []

    async def _connect(path: str, user_id: Any = None, subprotocols: list[str] | None = None):
        if user_id is not None and subprotocols is None:
            separator = "&" if "?" in path else "?"
            path = f"{path}{separator}token={token(user_id)}"
        communicator = WebsocketCommunicator(application, path, subprotocols=subprotocols)
        connected, subprotocol = await communicator.connect()
        assert connected
        opened.append(communicator)
        return communicator

    yield _connect

    for communicator in opened:
        try:
            await communicator.disconnect()
        except Exception:
            pass

    # Groups joined by these consumers must not leak into the next test's event loop
    layer = get_channel_layer()
    if layer is not None and hasattr(layer, "flush"):
        await layer.flush()
