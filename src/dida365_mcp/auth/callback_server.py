"""Local HTTP listener that receives the OAuth redirect.

One instance handles one authorization attempt: ``wait_for_callback()`` binds
the fixed callback port, waits for ``/callback?code=...&state=...`` and
produces exactly one outcome (a ``CallbackResult`` or an ``AuthError``). The
listener is shut down in every case: after a short grace period on success so
the browser can load the confirmation page, immediately otherwise.
"""

from __future__ import annotations

import asyncio
import errno
import html
import logging
import secrets
import socket
import sys
from dataclasses import dataclass
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response

from dida365_mcp.config import CALLBACK_PATH
from dida365_mcp.errors import AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

PAGES_DIR = Path(__file__).parent / "pages"

STATIC_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".css": "text/css; charset=utf-8",
    ".js": "application/javascript",
}

DEFAULT_CALLBACK_TIMEOUT = 300.0
SUCCESS_CLOSE_DELAY = 2.0


@dataclass(frozen=True)
class CallbackResult:
    code: str
    state: str


def resolve_static_path(root: Path, relative: str) -> Path | None:
    """Map a ``/static/<relative>`` request onto a file under ``root``.

    Returns None for traversal attempts, paths escaping ``root``, missing
    files and unsupported asset types.
    """
    if not relative or ".." in relative or "\\" in relative or relative.startswith("/"):
        return None

    base = root.resolve()
    candidate = (base / relative).resolve()
    if not candidate.is_relative_to(base):
        return None
    if candidate.suffix.lower() not in STATIC_CONTENT_TYPES or not candidate.is_file():
        return None
    return candidate


def create_callback_app(server: OAuthCallbackServer) -> FastAPI:
    """Build the ASGI app serving the callback route, outcome pages and assets."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(CALLBACK_PATH)
    async def oauth_callback(
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ):
        return server.handle_callback(code, state, error, error_description)

    @app.get("/static/{asset_path:path}")
    async def static_asset(asset_path: str):
        path = resolve_static_path(server.static_dir, asset_path)
        if path is None:
            return server.not_found_page()
        return FileResponse(
            path,
            media_type=STATIC_CONTENT_TYPES[path.suffix.lower()],
            headers={"Cache-Control": "public, max-age=3600"},
        )

    @app.get("/{other_path:path}")
    async def not_found(other_path: str):
        return server.not_found_page()

    return app


class OAuthCallbackServer:
    """Single-use OAuth redirect listener bound to a fixed host/port."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8521,
        pages_dir: Path = PAGES_DIR,
        success_close_delay: float = SUCCESS_CLOSE_DELAY,
    ):
        self.host = host
        self.port = port
        self.pages_dir = pages_dir
        self.static_dir = pages_dir / "static"
        self.success_close_delay = success_close_delay
        self.app = create_callback_app(self)

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._future: asyncio.Future[CallbackResult] | None = None
        self._expected_state: str | None = None
        self._delayed_close: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._server is not None and self._server.started

    @property
    def is_waiting(self) -> bool:
        return self._future is not None and not self._future.done()

    async def wait_for_callback(
        self, expected_state: str, timeout: float = DEFAULT_CALLBACK_TIMEOUT
    ) -> CallbackResult:
        """Start listening and wait for the authorization redirect.

        Raises:
            AuthError: PROVIDER_DENIED, MISSING_PARAMETERS, CSRF_MISMATCH,
                PORT_IN_USE, CALLBACK_TIMEOUT or CALLBACK_CLOSED.
            RuntimeError: if this instance is already waiting.
        """
        if self.is_waiting:
            raise RuntimeError("Callback server is already waiting for an authorization callback")
        if self._delayed_close is not None:
            await self.close()

        self._future = asyncio.get_running_loop().create_future()
        self._expected_state = expected_state

        succeeded = False
        try:
            await self._start()
            try:
                result = await asyncio.wait_for(self._future, timeout)
            except asyncio.TimeoutError:
                raise AuthError(
                    AuthErrorKind.CALLBACK_TIMEOUT,
                    f"Authorization timeout ({int(timeout)} seconds)",
                ) from None
            succeeded = True
            return result
        finally:
            if succeeded:
                self._delayed_close = asyncio.create_task(self._close_after(self.success_close_delay))
            else:
                if not self._future.done():
                    self._future.cancel()
                await self._shutdown()

    async def close(self) -> None:
        """Stop the listener. A pending success grace period is waited out."""
        delayed = self._delayed_close
        if delayed is not None and delayed is not asyncio.current_task() and not delayed.done():
            # asyncio.wait leaves the grace task running if close() itself is cancelled
            await asyncio.wait([delayed])
        await self._shutdown()

    # -- request handling ----------------------------------------------------

    def handle_callback(
        self,
        code: str | None,
        state: str | None,
        error: str | None,
        error_description: str | None,
    ) -> Response:
        future = self._future
        if future is None or future.done():
            return self.error_page("No authorization is in progress. Request a new authorization link.")

        if error:
            message = f"Authorization failed: {error_description or error}"
            future.set_exception(
                AuthError(
                    AuthErrorKind.PROVIDER_DENIED,
                    message,
                    detail={"error": error, "error_description": error_description},
                )
            )
            return self.error_page(message)

        if not code or not state:
            future.set_exception(
                AuthError(AuthErrorKind.MISSING_PARAMETERS, "Missing code or state parameter")
            )
            return self.error_page("Missing required parameters (code or state)")

        expected = self._expected_state or ""
        if not secrets.compare_digest(state.encode("utf-8"), expected.encode("utf-8")):
            future.set_exception(
                AuthError(AuthErrorKind.CSRF_MISMATCH, "CSRF validation failed: state mismatch")
            )
            return self.error_page("Invalid state parameter (CSRF protection)")

        future.set_result(CallbackResult(code=code, state=state))
        return self.success_page()

    def _read_page(self, name: str) -> str | None:
        path = self.pages_dir / name
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Failed to read %s: %s", path, e)
            return None

    def success_page(self) -> Response:
        page = self._read_page("success.html")
        if page is None:
            return PlainTextResponse("Internal Server Error", status_code=500)
        return HTMLResponse(page)

    def error_page(self, message: str) -> Response:
        page = self._read_page("error.html")
        if page is None:
            return PlainTextResponse("Internal Server Error", status_code=500)
        return HTMLResponse(page.replace("{{ERROR_MESSAGE}}", html.escape(message)), status_code=400)

    def not_found_page(self) -> Response:
        page = self._read_page("404.html")
        if page is None:
            return PlainTextResponse("Not Found", status_code=404)
        return HTMLResponse(page, status_code=404)

    # -- lifecycle -----------------------------------------------------------

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            if e.errno == errno.EADDRINUSE:
                raise AuthError(
                    AuthErrorKind.PORT_IN_USE,
                    f"Port {self.port} is already in use. "
                    "Please close other applications using this port.",
                ) from e
            raise AuthError(
                AuthErrorKind.NETWORK_ERROR,
                f"Could not bind callback server to {self.host}:{self.port}: {e}",
            ) from e
        return sock

    async def _start(self) -> None:
        sock = self._bind()

        # log_config=None keeps uvicorn off stdout, which carries the MCP protocol
        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=1,
        )
        server = uvicorn.Server(config)
        self._server = server
        self._serve_task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started:
            if self._serve_task.done():
                sock.close()
                raise AuthError(AuthErrorKind.NETWORK_ERROR, "Callback server failed to start")
            await asyncio.sleep(0.01)

        logger.info("OAuth callback server listening on http://%s:%d", self.host, self.port)

    async def _close_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._shutdown()

    async def _shutdown(self) -> None:
        server, task = self._server, self._serve_task
        self._server = None
        self._serve_task = None
        if asyncio.current_task() is self._delayed_close:
            self._delayed_close = None

        if self._future is not None and not self._future.done():
            self._future.set_exception(
                AuthError(
                    AuthErrorKind.CALLBACK_CLOSED,
                    "Callback server closed before authorization completed",
                )
            )

        if server is None:
            return

        server.should_exit = True
        if task is not None:
            try:
                await task
            except Exception as e:
                logger.warning("Callback server did not shut down cleanly: %s", e)
        logger.info("OAuth callback server closed")
