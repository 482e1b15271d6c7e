"""Pytest configuration and shared fixtures."""

import socket

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from frontgate.config import Settings
from frontgate.server import create_app


# ============================================================================
# Static Build
# ============================================================================

INDEX_HTML = b"<!doctype html><html><body><div id=\"root\"></div></body></html>"
APP_JS = b"console.log('app');\n"


@pytest.fixture
def static_dir(tmp_path):
    """Create a minimal built single-page app."""
    build = tmp_path / "build"
    (build / "static").mkdir(parents=True)
    (build / "index.html").write_bytes(INDEX_HTML)
    (build / "static" / "app.js").write_bytes(APP_JS)
    return build


@pytest.fixture
def settings(static_dir):
    """Settings pointing at a fake backend and the temporary build."""
    return Settings(
        _env_file=None,
        BACKEND_URL="http://backend.test",
        STATIC_DIR=static_dir,
    )


# ============================================================================
# Mock Backend
# ============================================================================

class BodyStream(httpx.AsyncByteStream):
    """Unread response body, streamed the way a network response would be."""

    def __init__(self, body: bytes):
        self.body = body

    async def __aiter__(self):
        if self.body:
            yield self.body


class MockBackend:
    """Records proxied requests and answers them with ``respond``.

    ``respond`` may build responses with ``json=`` or ``content=``; the body is
    handed back as an unread stream so the gateway can relay it with
    ``aiter_raw``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.respond = lambda request: httpx.Response(200, json={"ok": True})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.respond(request)
        return httpx.Response(
            response.status_code,
            headers=response.headers.multi_items(),
            stream=BodyStream(response.content),
        )

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def backend():
    return MockBackend()


@pytest.fixture
def backend_client(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend), follow_redirects=False)


@pytest.fixture
def app(settings, backend_client):
    return create_app(settings, backend_client=backend_client)


@pytest.fixture
async def client(app):
    """Async HTTP client talking to the gateway in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://frontend.test") as ac:
        yield ac


# ============================================================================
# Test Utilities
# ============================================================================

def unused_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
