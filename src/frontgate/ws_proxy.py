"""WebSocket relay to the backend origin.

The upstream connection is opened before the client handshake is accepted, so
a dead backend refuses the upgrade instead of accepting and dropping it. Once
both sides are open, frames are pumped in both directions until either side
closes; the other side is then closed with the same code.
"""

from __future__ import annotations

import asyncio

import websockets
from fastapi import WebSocket
from loguru import logger
from starlette.websockets import WebSocketDisconnect, WebSocketState

from .config import Settings
from .proxy import request_path, strip_hop_by_hop, upstream_target


# Handshake headers the websockets client writes itself
GENERATED_HANDSHAKE_HEADERS = frozenset({"host", "user-agent"})

# Close codes that are reserved and must not be sent on the wire
RESERVED_CLOSE_CODES = frozenset({1004, 1005, 1006, 1015})

NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011


def sendable_close_code(code: int | None, default: int = NORMAL_CLOSURE) -> int:
    """Map a received close code onto one that can be sent to the other side."""
    if code is None or code in RESERVED_CLOSE_CODES or not 1000 <= code < 5000:
        return default
    return code


class WebSocketRelay:
    """Relays a client WebSocket to ``settings.ws_backend_url``."""

    def __init__(self, settings: Settings):
        self.base_url = settings.ws_backend_url
        self.open_timeout = settings.PROXY_CONNECT_TIMEOUT
        self.max_size = settings.WS_MAX_MESSAGE_SIZE

    def upstream_url(self, websocket: WebSocket) -> str:
        return upstream_target(
            self.base_url,
            request_path(websocket.scope),
            websocket.scope.get("query_string", b""),
        )

    async def connect_upstream(self, websocket: WebSocket, url: str):
        headers = [
            (name, value)
            for name, value in strip_hop_by_hop(websocket.headers.items())
            if name.lower() not in GENERATED_HANDSHAKE_HEADERS
            and not name.lower().startswith("sec-websocket-")
        ]
        kwargs = {}
        if "user-agent" in websocket.headers:
            kwargs["user_agent_header"] = websocket.headers["user-agent"]

        # Host comes from the URL, so the backend sees its own origin.
        return await websockets.connect(
            url,
            subprotocols=websocket.scope.get("subprotocols") or None,
            additional_headers=headers,
            open_timeout=self.open_timeout,
            max_size=self.max_size,
            ping_interval=None,
            **kwargs,
        )

    async def relay(self, websocket: WebSocket) -> None:
        url = self.upstream_url(websocket)

        try:
            upstream = await self.connect_upstream(websocket, url)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.warning(f"WebSocket upstream {url} unavailable: {type(e).__name__}: {e}")
            await websocket.close(code=INTERNAL_ERROR)
            return

        upstream_code = NORMAL_CLOSURE
        try:
            await websocket.accept(subprotocol=upstream.subprotocol)
            logger.info(f"WebSocket relay opened: {websocket.url.path} -> {url}")

            to_backend = asyncio.create_task(self._client_to_backend(websocket, upstream))
            to_client = asyncio.create_task(self._backend_to_client(websocket, upstream))
            try:
                done, pending = await asyncio.wait(
                    {to_backend, to_client},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                for task in (to_backend, to_client):
                    task.cancel()
                await asyncio.gather(to_backend, to_client, return_exceptions=True)

            client_code = _task_result(to_backend)
            if to_backend in done and client_code is not None:
                # Client hung up first
                upstream_code = sendable_close_code(client_code)
                logger.info(f"WebSocket relay closed by client ({client_code}): {url}")
            else:
                default = NORMAL_CLOSURE if to_client in done and _task_result(to_client) is not None else INTERNAL_ERROR
                code = sendable_close_code(upstream.close_code, default)
                await _close_client(websocket, code)
                logger.info(f"WebSocket relay closed by backend ({upstream.close_code}): {url}")
        finally:
            # No-op if the backend already closed
            await upstream.close(code=upstream_code)

    async def _client_to_backend(self, websocket: WebSocket, upstream) -> int:
        """Pump client frames upstream; returns the client's close code."""
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return message.get("code", NORMAL_CLOSURE)
            if message.get("bytes") is not None:
                await upstream.send(message["bytes"])
            elif message.get("text") is not None:
                await upstream.send(message["text"])

    async def _backend_to_client(self, websocket: WebSocket, upstream) -> int | None:
        """Pump backend frames to the client until the backend closes cleanly."""
        async for message in upstream:
            if isinstance(message, bytes):
                await websocket.send_bytes(message)
            else:
                await websocket.send_text(message)
        return upstream.close_code


def _task_result(task: asyncio.Task):
    """Result of a finished pump, or None if it failed or was cancelled."""
    if task.cancelled():
        return None
    error = task.exception()
    if error is not None:
        logger.debug(f"WebSocket pump ended with {type(error).__name__}: {error}")
        return None
    return task.result()


async def _close_client(websocket: WebSocket, code: int) -> None:
    if (
        websocket.client_state != WebSocketState.CONNECTED
        or websocket.application_state != WebSocketState.CONNECTED
    ):
        return
    try:
        await websocket.close(code=code)
    except (RuntimeError, OSError, WebSocketDisconnect) as e:
        # Client went away between the state check and the close frame
        logger.debug(f"WebSocket client already closed: {e}")
