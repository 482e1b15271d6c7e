"""
frontgate - main server

Routes, first match wins:
- /api, /api/*  -> HTTP proxy to BACKEND_URL
- /ws, /ws/*    -> WebSocket relay to BACKEND_URL with ws/wss scheme
                   (plain HTTP on /ws is proxied like /api)
- /healthz      -> liveness (shadows a client-side route of that name)
- anything else -> static file from STATIC_DIR, else index.html
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.routing import Route

from .config import Settings, load_settings
from .exceptions import FrontgateException
from .proxy import HTTPForwarder, create_backend_client
from .schemas import ErrorResponse, HealthResponse
from .static import SPAStaticFiles
from .ws_proxy import WebSocketRelay


def create_app(
    settings: Optional[Settings] = None,
    backend_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Create and configure the gateway application."""
    settings = settings or load_settings()
    client = backend_client or create_backend_client(settings)
    forwarder = HTTPForwarder(client, settings)
    relay = WebSocketRelay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info(f"Frontend server running on port {settings.PORT}")
        logger.info(f"Proxying API requests to: {settings.BACKEND_URL}")
        yield
        await client.aclose()
        logger.info("Frontend server shutting down")

    app = FastAPI(
        title="frontgate",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.forwarder = forwarder
    app.state.relay = relay

    @app.exception_handler(FrontgateException)
    async def frontgate_exception_handler(request: Request, exc: FrontgateException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=exc.message).model_dump(),
        )

    # =========================================================================
    # API proxy
    # =========================================================================

    # Route on an ASGI endpoint: no method list, every method is forwarded
    app.router.routes.append(Route("/api", forwarder))
    app.router.routes.append(Route("/api/{path:path}", forwarder))

    # =========================================================================
    # WebSocket proxy
    # =========================================================================

    @app.websocket("/ws")
    @app.websocket("/ws/{path:path}")
    async def proxy_ws(websocket: WebSocket):
        await relay.relay(websocket)

    app.router.routes.append(Route("/ws", forwarder))
    app.router.routes.append(Route("/ws/{path:path}", forwarder))

    # Health check. Shadows any client-side route named /healthz.
    @app.get("/healthz", response_model=HealthResponse, tags=["health"])
    async def health_check():
        return HealthResponse(backend=settings.BACKEND_URL)

    # Static files + SPA fallback (must be last)
    app.mount("/", SPAStaticFiles(directory=settings.STATIC_DIR), name="static")
    logger.debug(f"Serving static files from {settings.STATIC_DIR}")

    return app


# =============================================================================
# CLI Entry Point
# =============================================================================

def run():
    """Run the gateway with settings from the environment."""
    import uvicorn

    from .log import setup_logging

    settings = load_settings()
    setup_logging(settings.LOG_LEVEL)
    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
    )


if __name__ == "__main__":
    run()
