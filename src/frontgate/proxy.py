"""HTTP reverse proxy to the backend origin.

Requests are streamed to the backend unchanged except for hop-by-hop headers
and the Host header, which is rewritten to the backend's host. Responses are
streamed back undecoded. Failures surface as 502/504 and are never retried.
"""

from __future__ import annotations

from collections.abc import Iterable

import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse
from loguru import logger
from starlette.background import BackgroundTask
from starlette.types import Receive, Scope, Send

from .config import Settings
from .exceptions import UpstreamTimeoutError, UpstreamUnavailableError

# RFC 7230 section 6.1
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)


def strip_hop_by_hop(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop hop-by-hop headers, including any named in ``Connection``."""
    headers = list(headers)
    dropped = set(HOP_BY_HOP_HEADERS)
    for name, value in headers:
        if name.lower() == "connection":
            dropped.update(token.strip().lower() for token in value.split(",") if token.strip())
    return [(name, value) for name, value in headers if name.lower() not in dropped]


def upstream_target(base_url: str, request_path: str, query_string: bytes | str = b"") -> str:
    """Join the backend base URL with the original path and raw query."""
    if isinstance(query_string, bytes):
        query_string = query_string.decode("latin-1")
    url = base_url + request_path
    if query_string:
        url += "?" + query_string
    return url


def request_path(scope: dict) -> str:
    """Original, still percent-encoded request path."""
    raw_path = scope.get("raw_path")
    if raw_path:
        return raw_path.decode("latin-1").split("?", 1)[0]
    return scope["path"]


def create_backend_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client for all proxied HTTP requests."""
    timeout = httpx.Timeout(settings.PROXY_READ_TIMEOUT, connect=settings.PROXY_CONNECT_TIMEOUT)
    return httpx.AsyncClient(timeout=timeout, follow_redirects=False)


class HTTPForwarder:
    """Forwards requests to ``settings.BACKEND_URL`` over a shared httpx client.

    Instances are ASGI apps, so a route built on one accepts every method,
    including extension methods such as PROPFIND.
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.base_url = settings.BACKEND_URL
        self.backend_host = settings.backend_host

    def build_request(self, request: Request) -> httpx.Request:
        url = upstream_target(self.base_url, request_path(request.scope), request.scope.get("query_string", b""))

        headers = [
            (name, value)
            for name, value in strip_hop_by_hop(request.headers.items())
            if name.lower() != "host"
        ]
        headers.append(("host", self.backend_host))

        has_body = "content-length" in request.headers or "transfer-encoding" in request.headers
        content = request.stream() if has_body else None

        # Built directly rather than via client.build_request so the client's
        # default headers (User-Agent, Accept-Encoding) are not injected.
        return httpx.Request(
            request.method,
            url,
            headers=headers,
            content=content,
            extensions={"timeout": self.client.timeout.as_dict()},
        )

    async def forward(self, request: Request) -> StreamingResponse:
        upstream_request = self.build_request(request)
        url = str(upstream_request.url)
        logger.debug(f"Proxy {request.method} {request.url.path} -> {url}")

        try:
            upstream = await self.client.send(upstream_request, stream=True)
        except httpx.TimeoutException as e:
            logger.warning(f"Proxy {request.method} {url} timed out: {type(e).__name__}")
            raise UpstreamTimeoutError(url, e) from e
        except httpx.RequestError as e:
            logger.warning(f"Proxy {request.method} {url} failed: {type(e).__name__}: {e}")
            raise UpstreamUnavailableError(url, e) from e

        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        # Raw list keeps repeated headers such as Set-Cookie
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in strip_hop_by_hop(upstream.headers.multi_items())
        ]
        return response

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = await self.forward(Request(scope, receive, send))
        await response(scope, receive, send)
