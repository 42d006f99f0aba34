# OAuth Manager — Dida365 OAuth 2.0 authorization code flow.
# Created: 2026-10-19
#
# Orchestrates the callback listener, the token exchange, the token manager
# and the status state machine. The agent asks for an authorization URL and
# gets it back immediately; the user's browser round trip and the code
# exchange complete in a background task.

from __future__ import annotations

import asyncio
import logging
import secrets
import time
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from dida365_mcp.auth.callback_server import OAuthCallbackServer
from dida365_mcp.auth.state import AuthState, AuthStateMachine, AuthStatusInfo
from dida365_mcp.auth.token_manager import TokenManager
from dida365_mcp.auth.token_store import TokenRecord, TokenStore, ValidationContext
from dida365_mcp.config import OAuthConfig
from dida365_mcp.errors import AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


@dataclass(frozen=True)
class PendingAuthorization:
    """The one authorization request currently waiting for its callback."""

    state: str
    authorization_url: str
    started_at: float


def generate_state() -> str:
    """Random 256-bit CSRF state value."""
    return secrets.token_hex(32)


class OAuthManager:
    """Authorization lifecycle for the tool layer.

    Supports:
    - Authorization URL generation (idempotent while a request is pending)
    - Background callback handling and code exchange
    - Valid-token lookup with status correction
    - Status reporting and local revocation
    """

    def __init__(
        self,
        config: OAuthConfig,
        token_manager: TokenManager | None = None,
        callback_server_factory: Callable[[], OAuthCallbackServer] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.context = ValidationContext.create(config.client_id, config.client_secret, config.region)
        self.tokens = token_manager or TokenManager(
            TokenStore(config.token_file), self.context, expiry_buffer=config.expiry_buffer
        )
        self.state = AuthStateMachine(self.tokens, pending_timeout=config.auth_timeout)
        self._callback_server_factory = callback_server_factory or self._default_callback_server
        self._transport = transport

        self._pending: PendingAuthorization | None = None
        self._callback_server: OAuthCallbackServer | None = None
        self._flow_task: asyncio.Task | None = None
        self._flow_lock = asyncio.Lock()

        if self.tokens.is_token_valid():
            self.state.set_authorized()
            logger.info("Found valid token on startup")
        elif self.tokens.has_token():
            logger.info("Found expired token on startup, re-authorization required")
        else:
            logger.info("No token found on startup, authorization required")

    def _default_callback_server(self) -> OAuthCallbackServer:
        return OAuthCallbackServer(host=self.config.callback_host, port=self.config.callback_port)

    @property
    def pending(self) -> PendingAuthorization | None:
        return self._pending

    # -- authorization flow --------------------------------------------------

    def build_authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": self.config.scope,
            "state": state,
        }
        return f"{self.config.auth_endpoint}?{urllib.parse.urlencode(params)}"

    async def get_authorization_url(self) -> str:
        """Start an authorization flow, or return the URL of the pending one.

        Returns immediately; the callback and code exchange run in the
        background and are reflected in ``get_auth_status()``. Concurrent
        callers are serialized so only one listener ever holds the port.
        """
        async with self._flow_lock:
            if self._pending is not None and self.state.is_pending():
                return self._pending.authorization_url

            if self._pending is not None or self._callback_server is not None:
                # Timed out or otherwise stale: the fixed port must be freed first
                logger.info("Cleaning up stale authorization attempt")
                await self._cancel_flow()

            state = generate_state()
            url = self.build_authorization_url(state)
            server = self._callback_server_factory()

            self._pending = PendingAuthorization(
                state=state, authorization_url=url, started_at=time.time()
            )
            self._callback_server = server
            self.state.start_auth_flow()
            self._flow_task = asyncio.create_task(self._complete_authorization(server, state))
            return url

    async def _complete_authorization(self, server: OAuthCallbackServer, state: str) -> None:
        pending = self._pending
        try:
            result = await server.wait_for_callback(state, timeout=self.config.auth_timeout)
            logger.info("Received authorization callback, exchanging code for token")
            record = await self.exchange_code(result.code)
            self.tokens.set_token(record)
            self.state.set_authorized()
            logger.info("Authorization completed successfully")
        except AuthError as e:
            logger.error("Authorization failed (%s): %s", e.kind.value, e)
            self.state.set_error(str(e))
        except Exception as e:
            logger.exception("Authorization failed")
            self.state.set_error(str(e) or e.__class__.__name__)
        finally:
            await server.close()
            if self._callback_server is server:
                self._callback_server = None
            if self._pending is pending:
                self._pending = None
            if self._flow_task is asyncio.current_task():
                self._flow_task = None

    async def exchange_code(self, code: str) -> TokenRecord:
        """Exchange an authorization code for an access token.

        Raises:
            AuthError: TOKEN_EXCHANGE_REJECTED on a non-2xx response (body in
                ``detail``), NETWORK_ERROR on transport failure.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.config.http_timeout, transport=self._transport
            ) as client:
                resp = await client.post(self.config.token_endpoint, data=data)
        except httpx.TransportError as e:
            raise AuthError(
                AuthErrorKind.NETWORK_ERROR, f"Token exchange request failed: {e}"
            ) from e

        if not resp.is_success:
            raise AuthError(
                AuthErrorKind.TOKEN_EXCHANGE_REJECTED,
                f"Token exchange failed: {resp.status_code} {resp.text}",
                detail=resp.text,
            )

        try:
            payload = resp.json()
            access_token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(
                AuthErrorKind.TOKEN_EXCHANGE_REJECTED,
                "Token endpoint returned an unexpected response",
                detail=resp.text,
            ) from e

        return TokenRecord.issued(
            self.context,
            access_token=access_token,
            expires_in=float(payload.get("expires_in") or DEFAULT_EXPIRES_IN),
            scope=payload.get("scope") or self.config.scope,
            token_type=payload.get("token_type") or "Bearer",
        )

    async def _cancel_flow(self) -> None:
        task, server = self._flow_task, self._callback_server
        self._flow_task = None
        self._callback_server = None
        self._pending = None

        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if server is not None:
            await server.close()

    # -- tool-layer contract -------------------------------------------------

    async def get_valid_access_token(self) -> str:
        """Return a usable access token or raise ``AuthError``.

        Corrects the status as a side effect: authorized on success,
        expired/not_authorized on failure. A pending flow is left untouched.
        """
        try:
            token = self.tokens.get_valid_access_token()
        except AuthError:
            if not self.state.is_pending():
                if self.tokens.has_token():
                    self.state.set_expired()
                else:
                    self.state.set_not_authorized()
            raise

        if not self.state.is_pending() and not self.state.is_authorized():
            self.state.set_authorized()
        return token

    def get_auth_status(self) -> AuthStatusInfo:
        info = self.state.get_status_info()
        if info.state is AuthState.PENDING and self._pending is not None:
            info.auth_url = self._pending.authorization_url
        return info

    def invalidate_token(self) -> None:
        """Drop a token the API has rejected (HTTP 401)."""
        logger.warning("Token rejected by the API, clearing it")
        self.tokens.clear_token()
        if not self.state.is_pending():
            self.state.set_not_authorized()

    async def revoke_authorization(self) -> None:
        """Clear the local token and abandon any in-flight flow.

        Local only: the provider's revoke endpoint is never called.
        """
        async with self._flow_lock:
            await self._cancel_flow()
            self.tokens.clear_token()
            self.state.set_not_authorized()
        logger.info("Authorization revoked, token cleared")

    def is_authorized(self) -> bool:
        return self.state.is_authorized() and self.tokens.has_token()

    def is_pending(self) -> bool:
        return self.state.is_pending()

    async def aclose(self) -> None:
        """Shut down any running flow (process exit)."""
        async with self._flow_lock:
            await self._cancel_flow()
