"""
Shared fixtures for kickpy tests.

Provides a fake Kick platform served by aiohttp's test server: the OAuth
token endpoint, the user and channel lookups, and the chat websocket.
"""

import asyncio
import json
import time
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import WSMsgType, test_utils, web
from kickpy import KickAPI


class FakeKick:
    """In-process stand-in for the Kick OAuth, REST and chat endpoints."""

    def __init__(self) -> None:
        self.username = "streamer"
        self.chatroom: dict[str, Any] | None = {"id": 42}
        self.expires_in = 3600
        self.token_status = 200
        self.omit_refresh_token = False
        self.chat_delay = 0.0

        self.token_requests: list[dict[str, str]] = []
        self.auth_headers: list[str | None] = []
        self.channel_lookups = 0
        self.chat_connections = 0
        self.chat_paths: list[str] = []
        self.sockets: list[web.WebSocketResponse] = []
        self.frames: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

        self.base_url = ""
        self.chat_url = ""

        self.app = web.Application()
        self.app.router.add_post("/oauth/token", self._token)
        self.app.router.add_get("/api/v2/user/me", self._user_me)
        self.app.router.add_get("/api/v2/channels/{username}", self._channel)
        self.app.router.add_get("/chat/{chatroom_id}", self._chat)

    async def _token(self, request: web.Request) -> web.Response:
        form = dict(await request.post())
        self.token_requests.append(form)
        if self.token_status != 200:
            return web.json_response(
                {"error": "invalid_grant", "error_description": "Bad code"},
                status=self.token_status,
            )
        n = len(self.token_requests)
        body: dict[str, Any] = {
            "access_token": f"access-{n}",
            "expires_in": self.expires_in,
            "token_type": "Bearer",
        }
        if not self.omit_refresh_token:
            body["refresh_token"] = f"refresh-{n}"
        return web.json_response(body)

    async def _user_me(self, request: web.Request) -> web.Response:
        self.auth_headers.append(request.headers.get("Authorization"))
        return web.json_response({"username": self.username})

    async def _channel(self, request: web.Request) -> web.Response:
        self.channel_lookups += 1
        self.auth_headers.append(request.headers.get("Authorization"))
        return web.json_response(
            {"slug": request.match_info["username"], "chatroom": self.chatroom}
        )

    async def _chat(self, request: web.Request) -> web.WebSocketResponse:
        if self.chat_delay:
            await asyncio.sleep(self.chat_delay)
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.chat_connections += 1
        self.chat_paths.append(request.path)
        self.sockets.append(ws)

        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                await self.frames.put(json.loads(msg.data))
        return ws

    async def push(self, frame: dict[str, Any] | str) -> None:
        """Send a frame to the most recent chat connection."""
        raw = frame if isinstance(frame, str) else json.dumps(frame)
        await self.sockets[-1].send_str(raw)

    async def push_message(self, sender: str, content: str) -> None:
        await self.push(
            {
                "event": "message",
                "data": {
                    "sender": {"username": sender},
                    "message": {"content": content},
                },
            }
        )

    async def next_frame(self, event: str, timeout: float = 2.0) -> dict[str, Any]:
        """Wait for the next frame from the bot with the given event name."""
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            frame = await asyncio.wait_for(self.frames.get(), max(remaining, 0.01))
            if frame.get("event") == event:
                return frame

    async def drop_connections(self) -> None:
        """Close every open chat connection from the server side."""
        for ws in list(self.sockets):
            if not ws.closed:
                await ws.close()


@pytest_asyncio.fixture
async def kick():
    """A running fake Kick platform."""
    fake = FakeKick()
    server = test_utils.TestServer(fake.app)
    await server.start_server()
    fake.base_url = f"http://{server.host}:{server.port}"
    fake.chat_url = f"ws://{server.host}:{server.port}/chat/{{chatroom_id}}"
    yield fake
    await server.close()


@pytest.fixture
def api(kick):
    """A KickAPI client pointed at the fake platform."""
    return KickAPI(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri="http://localhost:3000/callback",
        oauth_url=kick.base_url,
        api_url=kick.base_url,
        timeout=5.0,
    )


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout expires."""

    async def _wait_until(predicate, timeout: float = 2.0) -> None:
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait_until
