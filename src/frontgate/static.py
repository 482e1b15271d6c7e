"""Static asset serving with a single-page-application fallback."""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose


class SPAStaticFiles(StaticFiles):
    """StaticFiles that answers every miss with the entry document.

    Unknown paths belong to the client-side router, so they get ``index.html``
    with a 200 instead of a 404.
    """

    def __init__(self, directory: str | Path, index: str = "index.html"):
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning(f"Static directory {directory} does not exist")
        elif not (directory / index).is_file():
            logger.warning(f"No {index} in {directory}; client-side routes will 404")
        super().__init__(directory=str(directory), html=True, check_dir=False)
        self.index = index

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            # Upgrades are only relayed under /ws
            await WebSocketClose()(scope, receive, send)
            return
        await super().__call__(scope, receive, send)

    async def check_config(self) -> None:
        # A missing build is logged at startup; requests then get a plain 404
        if self.directory is not None and not Path(self.directory).is_dir():
            return
        await super().check_config()

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            response = await super().get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                raise
        else:
            # A built 404.html comes back with status 404; treat it as a miss
            if response.status_code != 404:
                return response
        return await super().get_response(self.index, scope)
